"""
=============================================================================
REQUEST HANDLERS
=============================================================================

The server's route table.

    ┌────────────────────┬──────────────────────────────────────────────┐
    │ Route              │ Handler                                      │
    ├────────────────────┼──────────────────────────────────────────────┤
    │ GET /              │ MessageHandler.root                          │
    │ GET /health        │ MessageHandler.health                        │
    │ GET /stats         │ StatsHandler.handle                          │
    │ GET /echo/:message │ MessageHandler.echo                          │
    │ (fallback)         │ MessageHandler.not_found                     │
    └────────────────────┴──────────────────────────────────────────────┘

Registration order is match order. Keep the exact routes before the
prefix route so a future "/echo/..." exact route would still win.

=============================================================================
"""

from ..http.router import Router
from .messages import MessageHandler
from .stats import StatsHandler


def install_routes(router: Router) -> Router:
    """
    Register the standard routes on a router.

    Uses the router's own StatsTracker and server name, so the /stats
    route reports the same counter the router increments.

    Args:
        router: Router to populate.

    Returns:
        The same router, for chaining.
    """
    messages = MessageHandler(router.server_name)
    stats = StatsHandler(router.stats)

    router.get("/", name="root")(messages.root)
    router.get("/health", name="health")(messages.health)
    router.get("/stats", name="stats")(stats.handle)
    router.get("/echo/", prefix=True, param="message", name="echo")(messages.echo)
    router.fallback(messages.not_found)

    return router


__all__ = [
    "MessageHandler",
    "StatsHandler",
    "install_routes",
]
