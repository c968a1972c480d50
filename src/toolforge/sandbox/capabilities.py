"""Host-side capabilities serving a sandbox context.

Each invocation gets its own instances: a :class:`FetchCapability`
owning a private ``httpx.Client``, and a :class:`ConsoleCapability`
forwarding ``console.*`` output to logging. The executor feeds them the
entries it drains from the prelude's queues; neither raises for a bad
request.
"""

from __future__ import annotations

import ipaddress
import logging
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

import httpx

if TYPE_CHECKING:
    from toolforge.config.schema import FetchConfig

console_logger = logging.getLogger("toolforge.sandbox.console")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}
_ALLOWED_METHODS = frozenset({"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"})


class ConsoleCapability:
    """Routes snippet ``console`` calls to the ``toolforge.sandbox.console`` logger."""

    def __init__(self, label: str) -> None:
        self._label = label

    def __call__(self, level: str, message: str) -> None:
        console_logger.log(_LEVELS.get(level, logging.INFO), "[%s] %s", self._label, message)


class FetchCapability:
    """Performs ``fetch`` requests on behalf of a snippet.

    Requests are checked against the configured host allowlist, bounded
    by the per-request timeout and by the invocation deadline, and
    response bodies are capped at ``max_response_bytes``.
    """

    def __init__(
        self,
        config: FetchConfig,
        *,
        deadline: float,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config
        self._deadline = deadline
        self._client = httpx.Client(
            transport=transport,
            follow_redirects=True,
            headers={"User-Agent": config.user_agent},
            event_hooks={"request": [self._check_request]},
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> FetchCapability:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def perform(self, request: Mapping[str, Any]) -> dict[str, Any]:
        """Run one queued request; failures come back as ``{"error": ...}``."""
        try:
            return self._fetch(request)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, TypeError) as exc:
            return {"error": f"fetch failed: {exc}"}

    def _fetch(self, request: Mapping[str, Any]) -> dict[str, Any]:
        url = str(request.get("url", ""))
        method = str(request.get("method", "GET")).upper()
        self._check_url(url)
        if method not in _ALLOWED_METHODS:
            msg = f"Unsupported method: {method}"
            raise ValueError(msg)

        remaining = self._deadline - time.monotonic()
        if remaining <= 0:
            msg = "invocation deadline reached"
            raise ValueError(msg)
        timeout = min(self._config.timeout, remaining)

        body = request.get("body")
        with self._client.stream(
            method,
            url,
            headers=request.get("headers") or {},
            content=body.encode() if isinstance(body, str) else None,
            timeout=timeout,
        ) as response:
            content = self._read_capped(response)
            return {
                "status": response.status_code,
                "statusText": response.reason_phrase,
                "headers": dict(response.headers),
                "url": str(response.url),
                "body": content.decode(response.encoding or "utf-8", errors="replace"),
            }

    def _read_capped(self, response: httpx.Response) -> bytes:
        limit = self._config.max_response_bytes
        chunks: list[bytes] = []
        size = 0
        for chunk in response.iter_bytes():
            size += len(chunk)
            if size > limit:
                msg = f"Response body exceeds {limit} bytes"
                raise ValueError(msg)
            chunks.append(chunk)
        return b"".join(chunks)

    def _check_request(self, request: httpx.Request) -> None:
        # Runs for redirects too, so a redirect cannot leave the allowlist.
        self._check_url(str(request.url))

    def _check_url(self, url: str) -> None:
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https"):
            msg = f"Only http(s) URLs are allowed: {url}"
            raise ValueError(msg)
        host = (parts.hostname or "").lower()
        if not host:
            msg = f"URL has no host: {url}"
            raise ValueError(msg)
        if not is_host_allowed(host, self._config.allowed_hosts):
            msg = f"Host not allowed: {host}"
            raise ValueError(msg)
        if not self._config.allow_private_networks and is_private_host(host):
            msg = f"Private network address not allowed: {host}"
            raise ValueError(msg)


def is_host_allowed(host: str, allowed_hosts: list[str]) -> bool:
    """True when *host* matches the allowlist (empty list allows all).

    Entries match exactly, or as a domain suffix when written ``*.example.com``.
    """
    if not allowed_hosts:
        return True
    host = host.lower()
    for entry in allowed_hosts:
        pattern = entry.lower()
        if pattern.startswith("*."):
            if host == pattern[2:] or host.endswith(pattern[1:]):
                return True
        elif host == pattern:
            return True
    return False


def is_private_host(host: str) -> bool:
    """True for ``localhost`` names and loopback, private, link-local or reserved IPs.

    Only literal addresses are classified; names are not resolved.
    """
    host = host.lower().strip("[]").rstrip(".")
    if host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_reserved
        or address.is_unspecified
        or address.is_multicast
    )
