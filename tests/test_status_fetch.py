from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, HTTPServer
from socketserver import BaseRequestHandler, TCPServer

import httpx
import pytest

from github_status.fetcher import fetch_status
from github_status.status import Status, coerce_status, parse_status_payload


class _FakeStatusHandler(BaseHTTPRequestHandler):
    routes: dict[str, tuple[int, str, bytes]] = {
        "/good": (200, "application/json", b'{"status": "good", "last_updated": "2016-03-01T12:00:00Z"}'),
        "/major": (200, "application/json", b'{"status": "major", "last_updated": "2016-03-01T12:00:00Z"}'),
        "/no-timestamp": (200, "application/json", b'{"status": "minor"}'),
        "/server-error": (502, "text/plain", b"bad gateway"),
        "/not-json": (200, "text/html", b"<html>maintenance</html>"),
        "/list": (200, "application/json", b'["good"]'),
        "/weird-status": (200, "application/json", b'{"status": "sideways", "last_updated": null}'),
        "/missing-status": (200, "application/json", b'{"last_updated": "2016-03-01T12:00:00Z"}'),
    }

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        return

    def do_GET(self) -> None:  # noqa: N802
        route = self.routes.get(self.path)
        if route is None:
            self.send_error(404)
            return
        status, content_type, body = route
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


@pytest.fixture(scope="module")
def fake_status_base_url() -> str:
    httpd = HTTPServer(("127.0.0.1", 0), _FakeStatusHandler)
    host, port = httpd.server_address
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://{host}:{port}"
    finally:
        httpd.shutdown()
        thread.join(timeout=5)
        httpd.server_close()


class _HangUpHandler(BaseRequestHandler):
    def handle(self) -> None:
        return


@pytest.fixture(scope="module")
def hang_up_url() -> str:
    server = TCPServer(("127.0.0.1", 0), _HangUpHandler)
    host, port = server.server_address
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://{host}:{port}/status.json"
    finally:
        server.shutdown()
        thread.join(timeout=5)
        server.server_close()


@pytest.mark.asyncio
async def test_fetch_good_status(fake_status_base_url: str) -> None:
    async with httpx.AsyncClient() as client:
        report = await fetch_status(client, f"{fake_status_base_url}/good", timeout=5.0)
    assert report.ok is True
    assert report.status is Status.GOOD
    assert report.last_updated == datetime(2016, 3, 1, 12, 0, tzinfo=timezone.utc)
    assert report.details["status_code"] == 200
    assert "error" not in report.details


@pytest.mark.asyncio
async def test_fetch_major_status(fake_status_base_url: str) -> None:
    async with httpx.AsyncClient() as client:
        report = await fetch_status(client, f"{fake_status_base_url}/major", timeout=5.0)
    assert report.ok is True
    assert report.status is Status.MAJOR


@pytest.mark.asyncio
async def test_fetch_without_timestamp_still_ok(fake_status_base_url: str) -> None:
    async with httpx.AsyncClient() as client:
        report = await fetch_status(client, f"{fake_status_base_url}/no-timestamp", timeout=5.0)
    assert report.ok is True
    assert report.status is Status.MINOR
    assert report.last_updated is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("path", "error_prefix"),
    [
        ("/server-error", "unexpected_status_code"),
        ("/not-json", "invalid_json"),
        ("/list", "invalid_payload"),
        ("/weird-status", "invalid_payload"),
        ("/missing-status", "invalid_payload"),
    ],
)
async def test_fetch_failures_degrade_to_unknown(fake_status_base_url: str, path: str, error_prefix: str) -> None:
    async with httpx.AsyncClient() as client:
        report = await fetch_status(client, f"{fake_status_base_url}{path}", timeout=5.0)
    assert report.ok is False
    assert report.status is Status.UNKNOWN
    assert str(report.details["error"]).startswith(error_prefix)


@pytest.mark.asyncio
async def test_fetch_disconnect_degrades_to_unknown(hang_up_url: str) -> None:
    async with httpx.AsyncClient() as client:
        report = await fetch_status(client, hang_up_url, timeout=2.0)
    assert report.ok is False
    assert report.status is Status.UNKNOWN
    assert str(report.details["error"]).startswith("http_error: ")


@pytest.mark.asyncio
async def test_fetch_invalid_url_degrades_to_unknown() -> None:
    async with httpx.AsyncClient() as client:
        report = await fetch_status(client, "http://host:notaport/status.json", timeout=2.0)
    assert report.ok is False
    assert report.status is Status.UNKNOWN
    assert "InvalidURL" in str(report.details["error"])


def test_coerce_status() -> None:
    assert coerce_status("good") is Status.GOOD
    assert coerce_status(" MAJOR ") is Status.MAJOR
    assert coerce_status("unknown") is Status.UNKNOWN
    assert coerce_status(None) is Status.UNKNOWN


def test_parse_status_payload_bad_timestamp_is_ignored() -> None:
    status, last_updated, error = parse_status_payload({"status": "good", "last_updated": "yesterday"})
    assert status is Status.GOOD
    assert last_updated is None
    assert error is None


def test_parse_status_payload_rejects_non_string_status() -> None:
    status, _last_updated, error = parse_status_payload(json.loads('{"status": 1}'))
    assert status is Status.UNKNOWN
    assert error
