"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

Middleware wraps the router: each layer sees the request on the way in and
the response on the way out.

    ┌─────────────────────────────────────────────────────────┐
    │  LoggingMiddleware                                      │
    │  ┌───────────────────────────────────────────────────┐  │
    │  │  (further middleware)                             │  │
    │  │  ┌─────────────────────────────────────────────┐  │  │
    │  │  │         FINAL HANDLER (router.handle)       │  │  │
    │  │  └─────────────────────────────────────────────┘  │  │
    │  └───────────────────────────────────────────────────┘  │
    └─────────────────────────────────────────────────────────┘

First added is outermost. The request flows inward in the order added,
the response flows back out in reverse.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterator, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# The next middleware, or the router itself at the end of the chain
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

        class Timing(Middleware):
            def __call__(self, request, next):
                start = time.perf_counter()
                response = next(request)          # continue the chain
                response.set_header("X-Time", f"{time.perf_counter() - start:.4f}")
                return response

    A middleware that returns without calling next() short-circuits the
    chain; the router never sees the request and it is not counted.
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request.

        Args:
            request: The incoming request.
            next: The rest of the chain.

        Returns:
            The response, from next() or produced here.
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered list of middleware that can wrap a final handler.

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())
        handler = pipeline.wrap(router.handle)
        response = handler(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append middleware (innermost so far). Returns self for chaining."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        """Add several middleware at once."""
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around handler.

        Wrapping runs in reverse so the first-added middleware ends up
        outermost:  [A, B, C] + h  →  A(B(C(h)))
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._bind(middleware, current)
        return current

    @staticmethod
    def _bind(middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._middleware)
