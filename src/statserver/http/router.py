"""
=============================================================================
URL ROUTER
=============================================================================

The router maps (method, path) to a handler and counts every request it
sees.

=============================================================================
ORDERED, FIRST-MATCH RULES
=============================================================================

Routes are checked top to bottom in registration order. The first route
whose method and path match wins:

    ┌────┬────────┬──────────┬─────────┬─────────────────────────────┐
    │ #  │ Method │ Path     │ Kind    │ Handler                     │
    ├────┼────────┼──────────┼─────────┼─────────────────────────────┤
    │ 1  │ GET    │ /        │ exact   │ root                        │
    │ 2  │ GET    │ /health  │ exact   │ health                      │
    │ 3  │ GET    │ /stats   │ exact   │ stats                       │
    │ 4  │ GET    │ /echo/   │ prefix  │ echo  (message = remainder) │
    │ -  │ any    │ any      │ -       │ not found (fallback)        │
    └────┴────────┴──────────┴─────────┴─────────────────────────────┘

Two kinds of route:

    EXACT   path == route.path
    PREFIX  path.startswith(route.path)
            the remainder is captured verbatim as one path parameter:

                "/echo/hello"   → {"message": "hello"}
                "/echo/"        → {"message": ""}
                "/echo/a/b%20c" → {"message": "a/b%20c"}

No trailing-slash stripping, no decoding: "/health/" does not match
"/health".

=============================================================================
EVERY REQUEST IS COUNTED
=============================================================================

handle() increments the StatsTracker exactly once BEFORE picking a route.
404s count. /stats counts itself, so the number it reports includes the
request asking for it.

=============================================================================
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import logging

from ..core.stats import StatsTracker
from .payloads import JsonMessage, Reply
from .request import HTTPRequest
from .response import DEFAULT_SERVER_NAME, HTTPResponse, build_response
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


Handler = Callable[[HTTPRequest], Reply]


@dataclass
class Route:
    """
    A registered route.

        Route(method="GET", path="/echo/", handler=echo,
              prefix=True, param="message", name="echo")
    """

    path: str
    method: Optional[str]
    handler: Handler
    prefix: bool = False
    param: Optional[str] = None
    name: Optional[str] = None

    def match(self, method: str, path: str) -> Optional[Dict[str, str]]:
        """
        Check this route against a request.

        Returns:
            Captured path parameters (possibly empty) on a match,
            None otherwise.
        """
        if self.method is not None and self.method != method:
            return None

        if self.prefix:
            if not path.startswith(self.path):
                return None
            remainder = path[len(self.path):]
            return {self.param: remainder} if self.param else {}

        if path != self.path:
            return None
        return {}

    @property
    def pattern(self) -> str:
        """Display form used in the startup banner ("/echo/:message")."""
        if self.prefix and self.param:
            return f"{self.path}:{self.param}"
        return self.path


@dataclass
class RouteMatch:
    """Result of a successful route match."""

    route: Route
    params: Dict[str, str]


class Router:
    """
    Ordered request router with request counting.

    Usage:
        stats = StatsTracker()
        router = Router(stats, server_name="statserver/1.0")

        @router.get("/")
        def index(request):
            return Reply(HTTPStatus.OK, JsonMessage.now("hi", router.server_name))

        @router.get("/echo/", prefix=True, param="message")
        def echo(request):
            return Reply(HTTPStatus.OK, JsonMessage.now(
                "Echo: " + request.path_params["message"], router.server_name))

        response = router.handle(request)   # -> HTTPResponse
    """

    def __init__(
        self,
        stats: StatsTracker,
        server_name: str = DEFAULT_SERVER_NAME,
        fallback: Optional[Handler] = None,
    ):
        """
        Args:
            stats: Shared tracker incremented once per handled request.
            server_name: Server header value for built responses.
            fallback: Handler for requests no route matches. Defaults to a
                      404 "Not Found" message.
        """
        self.stats = stats
        self.server_name = server_name
        self._routes: List[Route] = []
        self._named_routes: Dict[str, Route] = {}
        self._fallback: Handler = fallback or self._default_not_found

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Optional[str] = None,
        prefix: bool = False,
        param: Optional[str] = None,
        name: Optional[str] = None
    ) -> Route:
        """
        Append a route. Earlier routes take precedence over later ones.

        Args:
            path: Exact path, or the prefix when prefix=True.
            handler: Function taking the request, returning a Reply.
            method: HTTP method (None matches any method).
            prefix: Match on path prefix instead of equality.
            param: Name under which the prefix remainder is captured.
            name: Optional route name.

        Returns:
            The registered Route.
        """
        if param and not prefix:
            raise ValueError("param is only meaningful for prefix routes")

        route = Route(
            path=path,
            method=method.upper() if method else None,
            handler=handler,
            prefix=prefix,
            param=param,
            name=name,
        )
        self._routes.append(route)

        if name:
            self._named_routes[name] = route

        logger.debug(f"Registered route {route.method or 'ANY'} {route.pattern}")
        return route

    def route(
        self,
        path: str,
        method: Optional[str] = None,
        prefix: bool = False,
        param: Optional[str] = None,
        name: Optional[str] = None
    ) -> Callable[[Handler], Handler]:
        """Decorator form of add_route()."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method, prefix, param, name)
            return handler
        return decorator

    def get(
        self,
        path: str,
        prefix: bool = False,
        param: Optional[str] = None,
        name: Optional[str] = None
    ) -> Callable[[Handler], Handler]:
        """Register a GET route."""
        return self.route(path, "GET", prefix, param, name)

    def fallback(self, handler: Handler) -> Handler:
        """Decorator that replaces the not-found handler."""
        self._fallback = handler
        return handler

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the first route matching method and path.

        Returns:
            RouteMatch, or None if the request falls through to the fallback.
        """
        for route in self._routes:
            params = route.match(method, path)
            if params is not None:
                return RouteMatch(route=route, params=params)
        return None

    def dispatch(self, request: HTTPRequest) -> Reply:
        """
        Count the request and run the selected handler.

        Returns:
            The handler's Reply.
        """
        request.request_number = self.stats.increment()

        match = self.match(request.method, request.path)
        if match is None:
            return self._fallback(request)

        request.path_params = match.params
        return match.route.handler(request)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request and build its JSON response.

        This is the final handler wrapped by the middleware pipeline.

        Raises:
            ResponseSerializationError: If the reply payload cannot be
                                        rendered (a bug, never a client error).
        """
        reply = self.dispatch(request)
        return build_response(reply.status, reply.payload, self.server_name)

    def _default_not_found(self, request: HTTPRequest) -> Reply:
        return Reply(
            HTTPStatus.NOT_FOUND,
            JsonMessage.now("Not Found", self.server_name),
        )

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def routes(self) -> List[Route]:
        """Registered routes in match order."""
        return list(self._routes)

    def get_route(self, name: str) -> Optional[Route]:
        """Look up a named route."""
        return self._named_routes.get(name)
