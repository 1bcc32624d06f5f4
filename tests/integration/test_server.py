"""
End-to-end tests against a running server on an ephemeral port.
"""

import http.client
import json
import socket
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Tuple

import pytest

from statserver import ServerConfig


def get(test_server, path: str, method: str = "GET") -> Tuple[int, Dict[str, str], dict]:
    connection = http.client.HTTPConnection(test_server.host, test_server.port, timeout=5)
    try:
        connection.request(method, path)
        response = connection.getresponse()
        body = response.read()
        return response.status, dict(response.getheaders()), json.loads(body)
    finally:
        connection.close()


def split_responses(data: bytes) -> List[Tuple[bytes, bytes]]:
    """Split a byte stream of HTTP responses into (head, body) pairs."""
    responses = []
    while data:
        head, _, rest = data.partition(b"\r\n\r\n")
        length = 0
        for line in head.split(b"\r\n")[1:]:
            name, _, value = line.partition(b":")
            if name.strip().lower() == b"content-length":
                length = int(value.strip())
        responses.append((head, rest[:length]))
        data = rest[length:]
    return responses


class TestRoutes:

    def test_root(self, test_server):
        status, headers, body = get(test_server, "/")

        assert status == 200
        assert body["message"] == "Welcome to statserver!"
        assert body["server"] == "statserver/1.0"
        assert body["timestamp"]

    def test_health(self, test_server):
        status, _, body = get(test_server, "/health")

        assert status == 200
        assert body["message"] == "Server is healthy"

    def test_echo(self, test_server):
        status, _, body = get(test_server, "/echo/HelloWorld")

        assert status == 200
        assert body["message"] == "Echo: HelloWorld"

    def test_echo_keeps_path_verbatim(self, test_server):
        _, _, body = get(test_server, "/echo/hello%20world/again")
        assert body["message"] == "Echo: hello%20world/again"

    def test_echo_ignores_query(self, test_server):
        _, _, body = get(test_server, "/echo/hi?x=1")
        assert body["message"] == "Echo: hi"

    def test_unknown_path(self, test_server):
        status, _, body = get(test_server, "/nonexistent")

        assert status == 404
        assert body["message"] == "Not Found"

    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "HEAD"])
    def test_other_methods_are_not_found(self, test_server, method: str):
        connection = http.client.HTTPConnection(test_server.host, test_server.port, timeout=5)
        try:
            connection.request(method, "/")
            response = connection.getresponse()
            response.read()
            assert response.status == 404
        finally:
            connection.close()

    def test_common_headers(self, test_server):
        for path in ("/", "/stats", "/nope"):
            _, headers, _ = get(test_server, path)

            assert headers["Content-Type"] == "application/json"
            assert headers["Server"] == "statserver/1.0"
            assert "Date" in headers
            assert int(headers["Content-Length"]) > 0


class TestStatsEndpoint:

    def test_fresh_server(self, test_server):
        status, _, body = get(test_server, "/stats")

        assert status == 200
        assert list(body) == ["total_requests", "uptime_seconds", "requests_per_second"]
        assert body["total_requests"] == 1
        assert body["uptime_seconds"] >= 0

    def test_counts_every_routed_request(self, test_server):
        for path in ("/", "/health", "/echo/x", "/missing"):
            get(test_server, path)

        _, _, body = get(test_server, "/stats")
        assert body["total_requests"] == 5

    def test_concurrent_requests_are_all_counted(self, test_server):
        total = 200

        with ThreadPoolExecutor(max_workers=20) as pool:
            statuses = list(pool.map(lambda _: get(test_server, "/")[0], range(total)))

        assert statuses == [200] * total

        _, _, body = get(test_server, "/stats")
        assert body["total_requests"] == total + 1


class TestConnectionHandling:

    def test_keep_alive_reuses_connection(self, test_server):
        connection = http.client.HTTPConnection(test_server.host, test_server.port, timeout=5)
        try:
            for path in ("/", "/health", "/stats"):
                connection.request("GET", path)
                response = connection.getresponse()
                response.read()

                assert response.status == 200
                assert response.getheader("Connection") == "keep-alive"
        finally:
            connection.close()

    def test_pipelined_responses_in_order(self, test_server):
        requests = (
            b"GET /echo/one HTTP/1.1\r\nHost: t\r\n\r\n"
            b"GET /echo/two HTTP/1.1\r\nHost: t\r\n\r\n"
            b"GET /echo/three HTTP/1.1\r\nHost: t\r\nConnection: close\r\n\r\n"
        )

        responses = split_responses(test_server.send_raw(requests))

        messages = [json.loads(body)["message"] for _, body in responses]
        assert messages == ["Echo: one", "Echo: two", "Echo: three"]
        assert b"Connection: close" in responses[-1][0]

    def test_http_10_closes(self, test_server):
        data = test_server.send_raw(b"GET /health HTTP/1.0\r\n\r\n")

        head, body = split_responses(data)[0]
        assert head.startswith(b"HTTP/1.1 200 OK")
        assert b"Connection: close" in head
        assert json.loads(body)["message"] == "Server is healthy"

    def test_head_sends_headers_only(self, test_server):
        data = test_server.send_raw(
            b"HEAD / HTTP/1.1\r\nHost: t\r\n\r\n"
            b"GET /health HTTP/1.1\r\nHost: t\r\nConnection: close\r\n\r\n"
        )

        head, _, rest = data.partition(b"\r\n\r\n")
        assert head.startswith(b"HTTP/1.1 404 Not Found")
        assert b"Connection: keep-alive" in head
        content_length = int(head.split(b"Content-Length: ")[1].split(b"\r\n")[0])
        assert content_length > 0

        # The next response starts right after the HEAD headers
        assert rest.startswith(b"HTTP/1.1 200 OK")
        _, body = split_responses(rest)[0]
        assert json.loads(body)["message"] == "Server is healthy"

    def test_chunked_request_then_pipelined_get(self, test_server):
        data = test_server.send_raw(
            b"POST /x HTTP/1.1\r\nHost: t\r\nTransfer-Encoding: chunked\r\n\r\n"
            b"5\r\nhello\r\n6\r\n world\r\n0\r\n\r\n"
            b"GET /health HTTP/1.1\r\nHost: t\r\nConnection: close\r\n\r\n"
        )

        responses = split_responses(data)
        status_lines = [head.split(b"\r\n")[0] for head, _ in responses]

        assert status_lines == [b"HTTP/1.1 404 Not Found", b"HTTP/1.1 200 OK"]
        assert json.loads(responses[1][1])["message"] == "Server is healthy"

    def test_client_close_without_request(self, test_server):
        with test_server.connect():
            pass

        status, _, _ = get(test_server, "/health")
        assert status == 200


class TestErrors:

    def test_malformed_request(self, test_server):
        data = test_server.send_raw(b"NONSENSE\r\n\r\n")

        head, body = split_responses(data)[0]
        assert head.startswith(b"HTTP/1.1 400 Bad Request")
        assert b"Content-Type: application/json" in head
        assert b"Server: statserver/1.0" in head
        assert b"Connection: close" in head
        assert json.loads(body)["message"] == "Bad Request"

    def test_malformed_request_is_not_counted(self, test_server):
        test_server.send_raw(b"NONSENSE\r\n\r\n")

        _, _, body = get(test_server, "/stats")
        assert body["total_requests"] == 1

    def test_unsupported_version(self, test_server):
        data = test_server.send_raw(b"GET / HTTP/2.0\r\n\r\n")

        head, body = split_responses(data)[0]
        assert head.startswith(b"HTTP/1.1 505")
        assert json.loads(body)["message"] == "HTTP Version Not Supported"

    def test_request_too_large(self, server_factory):
        test_srv = server_factory(ServerConfig(
            port=0, log_level="WARNING", access_log=False, max_request_size=8192,
        ))

        big = b"GET / HTTP/1.1\r\nX-Big: " + b"A" * 20000 + b"\r\n\r\n"
        head, body = split_responses(test_srv.send_raw(big))[0]

        assert head.startswith(b"HTTP/1.1 413")
        assert b"Connection: close" in head
        assert json.loads(body)["message"] == "Payload Too Large"

    def test_handler_failure_returns_500(self, test_server):
        @test_server.server.router.get("/boom")
        def boom(request):
            raise RuntimeError("handler failure")

        # Route registered after the standard ones; the /echo/ prefix
        # does not shadow it
        data = test_server.send_raw(b"GET /boom HTTP/1.1\r\n\r\n")

        head, body = split_responses(data)[0]
        assert head.startswith(b"HTTP/1.1 500")
        assert b"Connection: close" in head
        assert b"Content-Type: application/json" in head
        assert json.loads(body)["message"] == "Internal Server Error"
        assert json.loads(body)["server"] == "statserver/1.0"


class TestLifecycle:

    def test_port_zero_exposes_bound_port(self, test_server):
        assert test_server.port != 0
        assert test_server.server.is_running

    def test_shutdown_stops_accepting(self, config, server_factory):
        test_srv = server_factory(config)
        host, port = test_srv.host, test_srv.port

        test_srv.stop()

        assert test_srv.server.wait_for_shutdown(timeout=5.0)
        assert not test_srv.server.is_running
        with pytest.raises(OSError):
            socket.create_connection((host, port), timeout=1.0).close()
