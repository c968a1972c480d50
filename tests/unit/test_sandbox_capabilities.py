"""Tests for host capabilities exposed to sandbox contexts."""

from __future__ import annotations

import json
import logging
import time

import httpx
import pytest

from toolforge.config.schema import FetchConfig
from toolforge.sandbox.capabilities import (
    ConsoleCapability,
    FetchCapability,
    is_host_allowed,
    is_private_host,
)
from toolforge.sandbox.prelude import build_invocation, build_prelude, build_settlement


def _capability(
    handler: httpx.MockTransport | None = None,
    *,
    allowed: list[str] | None = None,
    max_bytes: int = 1_000_000,
    deadline: float | None = None,
) -> FetchCapability:
    config = FetchConfig(allowed_hosts=allowed or [], max_response_bytes=max_bytes)
    transport = handler or httpx.MockTransport(
        lambda request: httpx.Response(200, text="hello", headers={"X-Test": "1"})
    )
    return FetchCapability(
        config,
        deadline=deadline if deadline is not None else time.monotonic() + 30,
        transport=transport,
    )


def _call(cap: FetchCapability, **request: object) -> dict[str, object]:
    return cap.perform(request)


# ── Host allowlist ──────────────────────────────────────────────────


class TestIsHostAllowed:
    def test_empty_allows_all(self) -> None:
        assert is_host_allowed("anything.test", [])

    def test_exact_match(self) -> None:
        assert is_host_allowed("api.example.com", ["api.example.com"])
        assert not is_host_allowed("evil.com", ["api.example.com"])

    def test_wildcard(self) -> None:
        allowed = ["*.example.com"]
        assert is_host_allowed("example.com", allowed)
        assert is_host_allowed("a.b.example.com", allowed)
        assert not is_host_allowed("notexample.com", allowed)

    def test_case_insensitive(self) -> None:
        assert is_host_allowed("API.Example.COM", ["api.example.com"])


class TestIsPrivateHost:
    @pytest.mark.parametrize(
        "host",
        [
            "localhost",
            "api.localhost",
            "127.0.0.1",
            "10.1.2.3",
            "192.168.0.10",
            "169.254.169.254",
            "0.0.0.0",
            "[::1]",
            "::ffff:127.0.0.1",
            "fe80::1",
        ],
    )
    def test_private(self, host: str) -> None:
        assert is_private_host(host)

    @pytest.mark.parametrize("host", ["api.example.com", "8.8.8.8", "2606:4700:4700::1111"])
    def test_public(self, host: str) -> None:
        assert not is_private_host(host)


# ── Fetch ───────────────────────────────────────────────────────────


class TestFetchCapability:
    def test_successful_get(self) -> None:
        with _capability() as cap:
            reply = _call(cap, url="https://api.example.com/x", method="GET")
        assert reply["status"] == 200
        assert reply["body"] == "hello"
        assert reply["headers"]["x-test"] == "1"
        assert reply["url"] == "https://api.example.com/x"

    def test_post_body_and_headers_forwarded(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"ok": True})

        with _capability(httpx.MockTransport(handler)) as cap:
            reply = _call(
                cap,
                url="https://api.example.com/items",
                method="post",
                headers={"content-type": "application/json"},
                body='{"a": 1}',
            )
        assert reply["status"] == 201
        assert seen[0].method == "POST"
        assert seen[0].content == b'{"a": 1}'
        assert seen[0].headers["content-type"] == "application/json"
        assert seen[0].headers["user-agent"].startswith("toolforge")

    def test_disallowed_host(self) -> None:
        with _capability(allowed=["api.example.com"]) as cap:
            reply = _call(cap, url="https://evil.test/")
        assert "Host not allowed" in reply["error"]

    @pytest.mark.parametrize(
        "url", ["http://127.0.0.1:8080/admin", "http://169.254.169.254/latest/meta-data/"]
    )
    def test_private_address_blocked_by_default(self, url: str) -> None:
        with _capability() as cap:
            reply = _call(cap, url=url)
        assert "Private network address not allowed" in reply["error"]

    def test_private_address_allowed_when_enabled(self) -> None:
        config = FetchConfig(allow_private_networks=True)
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="local"))
        with FetchCapability(config, deadline=time.monotonic() + 30, transport=transport) as cap:
            reply = cap.perform({"url": "http://127.0.0.1:8080/"})
        assert reply["body"] == "local"

    def test_redirect_to_private_address_blocked(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "a.test":
                return httpx.Response(302, headers={"Location": "http://10.0.0.5/"})
            return httpx.Response(200, text="internal")

        with _capability(httpx.MockTransport(handler)) as cap:
            reply = _call(cap, url="https://a.test/")
        assert "Private network address not allowed: 10.0.0.5" in reply["error"]

    def test_redirect_cannot_leave_allowlist(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "api.example.com":
                return httpx.Response(302, headers={"Location": "https://evil.test/"})
            return httpx.Response(200, text="secret")

        with _capability(httpx.MockTransport(handler), allowed=["api.example.com"]) as cap:
            reply = _call(cap, url="https://api.example.com/start")
        assert "Host not allowed" in reply["error"]

    @pytest.mark.parametrize("url", ["file:///etc/passwd", "ftp://x.test/", "not a url"])
    def test_non_http_scheme(self, url: str) -> None:
        with _capability() as cap:
            reply = _call(cap, url=url)
        assert reply["error"].startswith("fetch failed")

    def test_unsupported_method(self) -> None:
        with _capability() as cap:
            reply = _call(cap, url="https://a.test/", method="TRACE")
        assert "Unsupported method" in reply["error"]

    def test_body_size_cap(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="x" * 100))
        with _capability(transport, max_bytes=10) as cap:
            reply = _call(cap, url="https://a.test/")
        assert "exceeds 10 bytes" in reply["error"]

    def test_deadline_passed(self) -> None:
        with _capability(deadline=time.monotonic() - 1) as cap:
            reply = _call(cap, url="https://a.test/")
        assert "deadline" in reply["error"]

    def test_transport_error_reported(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with _capability(httpx.MockTransport(handler)) as cap:
            reply = _call(cap, url="https://a.test/")
        assert "refused" in reply["error"]

    def test_missing_url(self) -> None:
        with _capability() as cap:
            reply = cap.perform({"method": "GET"})
        assert reply["error"].startswith("fetch failed")


# ── Console ─────────────────────────────────────────────────────────


class TestConsoleCapability:
    def test_routes_to_console_logger(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="toolforge.sandbox.console"):
            ConsoleCapability("weather")("warning", "careful")
        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.getMessage() == "[weather] careful"

    def test_unknown_level_is_info(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="toolforge.sandbox.console"):
            ConsoleCapability("t")("trace", "x")
        assert caplog.records[-1].levelno == logging.INFO


# ── Invocation script ───────────────────────────────────────────────


class TestBuildInvocation:
    def test_arguments_embedded_as_json(self) -> None:
        script = build_invocation("search", [{"query": 'say "hi"\n'}])
        assert "search(...globalThis.__args)" in script
        assert "__outcome" in script

    def test_hostile_strings_stay_data(self) -> None:
        script = build_invocation("f", ["'); process.exit(); ('"])
        # The payload is a JSON string literal passed to JSON.parse.
        assert "JSON.parse(" in script
        assert r"process.exit(); ('\"" in script


class TestBuildPrelude:
    def test_fetch_only_when_enabled(self) -> None:
        assert "(globalThis, {\"fetch\": true})" in build_prelude(fetch=True)
        assert "(globalThis, {\"fetch\": false})" in build_prelude(fetch=False)


class TestBuildSettlement:
    def test_reply_embedded_as_string_literal(self) -> None:
        script = build_settlement(3, {"status": 200, "body": 'a "quoted" body'})
        assert script.startswith("__settleFetch(3, ")
        payload = script[len("__settleFetch(3, ") : -len(");\n")]
        assert json.loads(json.loads(payload)) == {"status": 200, "body": 'a "quoted" body'}
