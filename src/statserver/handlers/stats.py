"""
Handler for GET /stats.
"""

from ..core.stats import StatsTracker
from ..http.payloads import Reply
from ..http.request import HTTPRequest
from ..http.status_codes import HTTPStatus


class StatsHandler:
    """
    Reports the server's request count, uptime, and throughput.

    Response (200 OK):
        {
            "total_requests": 1042,
            "uptime_seconds": 61,
            "requests_per_second": 17.08
        }

    The snapshot is taken after the router has counted this request, so
    total_requests always includes the /stats call itself.
    """

    def __init__(self, stats: StatsTracker):
        self.stats = stats

    def handle(self, request: HTTPRequest) -> Reply:
        return Reply(HTTPStatus.OK, self.stats.snapshot())
