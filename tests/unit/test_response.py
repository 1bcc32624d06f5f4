"""
Unit tests for HTTP response building.
"""

import json
from datetime import datetime, timezone

import pytest

from statserver.core.stats import StatsSnapshot
from statserver.http.payloads import JsonMessage
from statserver.http.response import (
    HTTPResponse,
    ResponseBuilder,
    ResponseSerializationError,
    build_response,
    error_response,
    format_http_date,
    render_payload,
    serialization_fallback,
)
from statserver.http.status_codes import HTTPStatus


SERVER = "statserver/1.0"


def message(text: str = "hello") -> JsonMessage:
    return JsonMessage(text, "2026-01-01T00:00:00+00:00", SERVER)


class TestHTTPResponse:
    """Tests for HTTPResponse class."""

    def test_status_line(self):
        assert HTTPResponse(status=HTTPStatus.OK).status_line == "HTTP/1.1 200 OK"
        assert HTTPResponse(status=HTTPStatus.NOT_FOUND).status_line == "HTTP/1.1 404 Not Found"

    def test_to_bytes_includes_headers(self):
        response = HTTPResponse(
            status=HTTPStatus.OK,
            headers={"X-Custom": "value"},
            body=b"{}",
        )

        result = response.to_bytes(SERVER)

        assert result.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"X-Custom: value\r\n" in result
        assert b"Content-Type: application/json\r\n" in result
        assert b"Server: statserver/1.0\r\n" in result
        assert b"Content-Length: 2\r\n" in result
        assert b"Date: " in result
        assert result.endswith(b"\r\n\r\n{}")

    def test_to_bytes_content_length_counts_bytes(self):
        response = HTTPResponse(body="é".encode("utf-8"))
        assert b"Content-Length: 2\r\n" in response.to_bytes()

    def test_to_bytes_without_body(self):
        response = HTTPResponse(status=HTTPStatus.NOT_FOUND, body=b'{"message": "Not Found"}')

        result = response.to_bytes(SERVER, include_body=False)

        assert b"Content-Length: 24\r\n" in result
        assert result.endswith(b"\r\n\r\n")
        assert b"Not Found\"}" not in result

    def test_to_bytes_keeps_explicit_server(self):
        response = HTTPResponse(headers={"Server": "custom/2"})
        result = response.to_bytes(SERVER)
        assert b"Server: custom/2\r\n" in result
        assert b"statserver" not in result

    def test_set_header_chaining(self):
        response = (HTTPResponse()
            .set_header("X-One", "1")
            .set_header("X-Two", "2"))

        assert response.headers == {"X-One": "1", "X-Two": "2"}


class TestResponseBuilder:
    """Tests for ResponseBuilder class."""

    def test_standard_headers_always_present(self):
        response = ResponseBuilder(SERVER).status(HTTPStatus.NOT_FOUND).payload(message()).build()

        assert response.headers["Content-Type"] == "application/json"
        assert response.headers["Server"] == SERVER

    def test_payload_body(self):
        response = ResponseBuilder(SERVER).payload(message("hi")).build()
        assert json.loads(response.body) == {
            "message": "hi",
            "timestamp": "2026-01-01T00:00:00+00:00",
            "server": SERVER,
        }

    def test_keep_alive(self):
        response = ResponseBuilder().keep_alive().build()
        assert response.headers["Connection"] == "keep-alive"

    def test_close_connection(self):
        response = ResponseBuilder().close_connection().build()
        assert response.headers["Connection"] == "close"

    def test_method_chaining(self):
        response = (ResponseBuilder(SERVER)
            .status(HTTPStatus.OK)
            .header("X-Custom", "value")
            .payload(message())
            .build())

        assert response.status == HTTPStatus.OK
        assert response.headers["X-Custom"] == "value"
        assert b'"message"' in response.body

    def test_to_bytes(self):
        raw = ResponseBuilder(SERVER).payload(message()).to_bytes()
        assert raw.startswith(b"HTTP/1.1 200 OK\r\n")


class TestBuildResponse:

    def test_stats_payload(self):
        snap = StatsSnapshot(total_requests=6, uptime_seconds=0, requests_per_second=0.0)

        response = build_response(HTTPStatus.OK, snap, SERVER)

        assert response.json() == {
            "total_requests": 6,
            "uptime_seconds": 0,
            "requests_per_second": 0.0,
        }
        assert response.headers["Content-Type"] == "application/json"

    def test_non_ascii_is_not_escaped(self):
        response = build_response(HTTPStatus.OK, message("Echo: café"), SERVER)
        assert "café".encode("utf-8") in response.body

    def test_unserializable_payload_raises(self):
        snap = StatsSnapshot(total_requests=1, uptime_seconds=1, requests_per_second=float("nan"))

        with pytest.raises(ResponseSerializationError):
            build_response(HTTPStatus.OK, snap, SERVER)

    def test_render_payload_rejects_non_payloads(self):
        with pytest.raises(ResponseSerializationError):
            render_payload(object())


class TestErrorResponses:

    def test_error_response_closes_connection(self):
        response = error_response(HTTPStatus.BAD_REQUEST, "Bad Request", SERVER)

        assert response.status == HTTPStatus.BAD_REQUEST
        assert response.headers["Connection"] == "close"
        assert response.headers["Content-Type"] == "application/json"
        assert response.json()["message"] == "Bad Request"
        assert response.json()["server"] == SERVER

    def test_serialization_fallback(self):
        response = serialization_fallback(SERVER)

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert response.headers["Content-Type"] == "application/json"
        assert response.headers["Server"] == SERVER
        assert response.headers["Connection"] == "close"

        body = response.json()
        assert list(body) == ["message", "timestamp", "server"]
        assert body["message"] == "Internal Server Error"
        assert body["server"] == SERVER
        datetime.fromisoformat(body["timestamp"])

    def test_serialization_fallback_is_stable(self):
        first = serialization_fallback(SERVER)
        second = serialization_fallback(SERVER)

        assert first is not second
        assert first.body == second.body
        assert serialization_fallback("other/2").json()["server"] == "other/2"


class TestHTTPStatus:

    def test_status_phrases(self):
        assert HTTPStatus.OK.phrase == "OK"
        assert HTTPStatus.NOT_FOUND.phrase == "Not Found"
        assert HTTPStatus.PAYLOAD_TOO_LARGE.phrase == "Payload Too Large"
        assert HTTPStatus.HTTP_VERSION_NOT_SUPPORTED.phrase == "HTTP Version Not Supported"

    def test_status_categories(self):
        assert HTTPStatus.OK.is_success
        assert not HTTPStatus.OK.is_error
        assert HTTPStatus.NOT_FOUND.is_error
        assert HTTPStatus.INTERNAL_SERVER_ERROR.is_error

    def test_str_is_numeric(self):
        assert str(HTTPStatus.NOT_FOUND) == "404"


class TestFormatHTTPDate:

    def test_format(self):
        dt = datetime(2026, 1, 15, 12, 30, 45, tzinfo=timezone.utc)
        assert format_http_date(dt) == "Thu, 15 Jan 2026 12:30:45 GMT"
