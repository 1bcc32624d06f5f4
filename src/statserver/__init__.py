"""
=============================================================================
STATSERVER - A Small JSON Statistics Server on Raw Sockets
=============================================================================

An HTTP/1.1 server, built directly on the socket module, that answers a
fixed set of routes with JSON and keeps live request statistics.

    GET /             welcome message
    GET /health       liveness check
    GET /stats        {"total_requests", "uptime_seconds", "requests_per_second"}
    GET /echo/<msg>   "Echo: <msg>"
    (anything else)   404 "Not Found"

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    statserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m statserver)
    ├── server.py            # HTTPServer: wires everything together
    ├── config.py            # ServerConfig dataclass
    ├── bench.py             # Smoke test and load generator
    ├── core/
    │   ├── socket_server.py # bind / listen / accept loop
    │   ├── workers.py       # one thread per connection
    │   ├── connection.py    # buffered request framing
    │   └── stats.py         # shared request counter
    ├── http/
    │   ├── request.py       # request parsing
    │   ├── response.py      # JSON response building
    │   ├── payloads.py      # JsonMessage / Reply
    │   ├── router.py        # ordered first-match routing
    │   └── status_codes.py  # HTTPStatus
    ├── middleware/
    │   ├── base.py          # Middleware, MiddlewarePipeline
    │   └── logging.py       # access log
    └── handlers/
        ├── messages.py      # /, /health, /echo/, not found
        └── stats.py         # /stats

=============================================================================
QUICK START
=============================================================================

    from statserver import HTTPServer, ServerConfig

    server = HTTPServer(ServerConfig(port=8080))
    server.run()

or from the shell:

    statserver --port 8080
    statserver-bench --url http://127.0.0.1:8080 --requests 1000

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer
from .config import ServerConfig
from .core.stats import StatsSnapshot, StatsTracker

__all__ = [
    "HTTPServer",
    "ServerConfig",
    "StatsSnapshot",
    "StatsTracker",
    "__version__",
]
