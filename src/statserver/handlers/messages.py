"""
=============================================================================
MESSAGE ROUTES
=============================================================================

Handlers for the routes that answer with a JsonMessage:

    GET /             200  "Welcome to statserver!"
    GET /health       200  "Server is healthy"
    GET /echo/<msg>   200  "Echo: <msg>"
    (anything else)   404  "Not Found"

Every message carries the time the request was handled and the server
identifier:

    {
        "message": "Echo: hello",
        "timestamp": "2026-01-01T12:00:00.000000+00:00",
        "server": "statserver/1.0"
    }

None of these handlers do I/O or parsing, so none of them can fail.

=============================================================================
"""

from ..http.payloads import JsonMessage, Reply
from ..http.request import HTTPRequest
from ..http.status_codes import HTTPStatus


WELCOME_MESSAGE = "Welcome to statserver!"
HEALTHY_MESSAGE = "Server is healthy"
NOT_FOUND_MESSAGE = "Not Found"
ECHO_PREFIX = "Echo: "


class MessageHandler:
    """
    Route handlers bound to one server identifier.

    Usage:
        messages = MessageHandler("statserver/1.0")
        router.get("/")(messages.root)
        router.get("/health")(messages.health)
        router.get("/echo/", prefix=True, param="message")(messages.echo)
        router.fallback(messages.not_found)
    """

    def __init__(self, server_name: str):
        self.server_name = server_name

    def _message(self, status: HTTPStatus, text: str) -> Reply:
        return Reply(status, JsonMessage.now(text, self.server_name))

    def root(self, request: HTTPRequest) -> Reply:
        """Landing route."""
        return self._message(HTTPStatus.OK, WELCOME_MESSAGE)

    def health(self, request: HTTPRequest) -> Reply:
        """
        Liveness check.

        Always 200: if this handler runs, the accept loop, a worker thread,
        and the router are all working.
        """
        return self._message(HTTPStatus.OK, HEALTHY_MESSAGE)

    def echo(self, request: HTTPRequest) -> Reply:
        """
        Echo the path remainder after "/echo/".

        The remainder is used byte-for-byte; "/echo/" echoes "".
        """
        message = request.path_params.get("message", "")
        return self._message(HTTPStatus.OK, ECHO_PREFIX + message)

    def not_found(self, request: HTTPRequest) -> Reply:
        """Fallback for any method/path no route matched."""
        return self._message(HTTPStatus.NOT_FOUND, NOT_FOUND_MESSAGE)
