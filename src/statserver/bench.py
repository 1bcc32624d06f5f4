"""
=============================================================================
SMOKE TEST AND LOAD GENERATOR
=============================================================================

Exercises a running server from the outside, the way a client would:

    1. SMOKE     one request per route, bodies printed
    2. LOAD      N requests from a pool of client threads
    3. LATENCY   a few sequential requests, timed
    4. STATS     /stats after the load, to compare against what was sent

    $ statserver --no-access-log &
    $ statserver-bench --requests 1000 --concurrency 50

The load phase shares one httpx.Client across its threads, capped at
`concurrency` pooled connections. Connections are reused between
requests, so the load runs through the server's keep-alive path rather
than opening a socket per request.

After a load of N requests against an otherwise idle server, /stats
should report at least N + (smoke requests) + 1; any shortfall means
requests were lost.

=============================================================================
"""

import argparse
import json
import logging
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

import httpx

from .core.stats import StatsSnapshot


logger = logging.getLogger(__name__)


DEFAULT_URL = "http://127.0.0.1:8080"
DEFAULT_TIMEOUT = 10.0

SMOKE_PATHS = ("/", "/health", "/echo/HelloWorld", "/stats", "/nonexistent")


@dataclass
class SmokeResult:
    path: str
    status: int
    body: Dict[str, Any]


@dataclass
class LoadReport:
    """Outcome of a load() run."""

    sent: int
    succeeded: int
    failed: int
    duration: float
    final_stats: Optional[StatsSnapshot] = None

    @property
    def requests_per_second(self) -> float:
        if self.duration <= 0:
            return 0.0
        return self.sent / self.duration

    def summary(self) -> str:
        return (
            f"{self.sent} requests in {self.duration:.2f}s "
            f"({self.requests_per_second:.1f} req/s), "
            f"{self.succeeded} ok, {self.failed} failed"
        )


def open_client(
    base_url: str,
    concurrency: int = 1,
    timeout: float = DEFAULT_TIMEOUT,
) -> httpx.Client:
    """
    Create a client for one server, pooling up to `concurrency` connections.

    Raises:
        ValueError: If base_url is not an http://host[:port] URL.
    """
    parts = urlsplit(base_url)
    if parts.scheme != "http" or not parts.hostname:
        raise ValueError(f"Expected an http://host:port URL, got {base_url!r}")

    return httpx.Client(
        base_url=base_url,
        timeout=timeout,
        limits=httpx.Limits(
            max_connections=concurrency,
            max_keepalive_connections=concurrency,
        ),
    )


def fetch(client: httpx.Client, path: str) -> Tuple[int, Dict[str, Any]]:
    """
    GET one path.

    Returns:
        (status code, decoded JSON body)

    Raises:
        httpx.HTTPError: If the server cannot be reached or the exchange fails.
        ValueError: If the body is not JSON.
    """
    response = client.get(path)
    return response.status_code, response.json()


def fetch_stats(client: httpx.Client) -> StatsSnapshot:
    """GET /stats and parse it."""
    _, body = fetch(client, "/stats")
    return StatsSnapshot.from_dict(body)


def smoke(base_url: str) -> List[SmokeResult]:
    """Hit every route once, in a fixed order."""
    with open_client(base_url) as client:
        return [
            SmokeResult(path, *fetch(client, path))
            for path in SMOKE_PATHS
        ]


def load(
    base_url: str,
    total: int = 1000,
    concurrency: int = 50,
    path: str = "/",
) -> LoadReport:
    """
    Send `total` GET requests from `concurrency` client threads.

    A request counts as succeeded when it gets a 200 with a JSON body.
    Transport errors count as failures and do not stop the run.
    """
    if total < 0:
        raise ValueError("total must be >= 0")
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    with open_client(base_url, concurrency=concurrency) as client:

        def one_request() -> bool:
            try:
                status, _ = fetch(client, path)
            except (httpx.HTTPError, ValueError) as e:
                logger.debug(f"Request failed: {e}")
                return False
            return status == 200

        succeeded = 0
        start = time.perf_counter()

        with ThreadPoolExecutor(max_workers=concurrency) as pool:
            futures = [pool.submit(one_request) for _ in range(total)]
            for future in as_completed(futures):
                if future.result():
                    succeeded += 1

        duration = time.perf_counter() - start

        return LoadReport(
            sent=total,
            succeeded=succeeded,
            failed=total - succeeded,
            duration=duration,
            final_stats=fetch_stats(client),
        )


def latency(base_url: str, samples: int = 10, path: str = "/") -> List[float]:
    """Time `samples` sequential requests. Returns seconds per request."""
    timings = []
    with open_client(base_url) as client:
        for _ in range(samples):
            start = time.perf_counter()
            fetch(client, path)
            timings.append(time.perf_counter() - start)
    return timings


def _print_json(data: Dict[str, Any]):
    print(json.dumps(data, indent=2, ensure_ascii=False))


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="statserver-bench",
        description="Smoke-test and load-test a running statserver",
    )
    parser.add_argument("--url", "-u", default=DEFAULT_URL,
                        help=f"Server base URL (default: {DEFAULT_URL})")
    parser.add_argument("--requests", "-n", type=int, default=1000,
                        help="Requests in the load phase (default: 1000)")
    parser.add_argument("--concurrency", "-c", type=int, default=50,
                        help="Client threads in the load phase (default: 50)")
    parser.add_argument("--samples", "-s", type=int, default=10,
                        help="Sequential requests to time (default: 10)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        print("== Smoke test ==")
        for result in smoke(args.url):
            print(f"GET {result.path} -> {result.status}")
            _print_json(result.body)

        print(f"\n== Load test: {args.requests} requests, {args.concurrency} clients ==")
        report = load(args.url, args.requests, args.concurrency)
        print(report.summary())

        print(f"\n== Response times ({args.samples} requests) ==")
        timings = latency(args.url, args.samples)
        for i, seconds in enumerate(timings, 1):
            print(f"Request {i}: {seconds:.4f}s")
        if timings:
            print(f"Average: {sum(timings) / len(timings):.4f}s")

        print("\n== Final statistics ==")
        with open_client(args.url) as client:
            _print_json(fetch_stats(client).to_dict())
    except (httpx.HTTPError, ValueError) as e:
        print(f"Error talking to {args.url}: {e}", file=sys.stderr)
        return 1

    return 0 if report.failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
