"""
HTTP Executor.

Sends one request per call with a timeout; never retries.

Transport failures (timeouts, DNS, TLS, refused connections) become
NetworkError. Any HTTP status, including 4xx/5xx, is a normal RawResponse.

HTTP Client Lifecycle:
    - If an httpx.AsyncClient is provided: use it (caller manages lifecycle)
    - Otherwise: create a fresh client per call and close it afterwards
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from urllib.parse import quote

import httpx

from openapi_mcp.errors import NetworkError
from openapi_mcp.tools.marshal import RequestDescriptor

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"
MAX_LOGGED_BODY = 1000

_SENSITIVE_HEADERS = frozenset(
    {"authorization", "proxy-authorization", "cookie", "set-cookie", "x-api-key", "api-key"}
)

# RFC 6265 cookie-octets; everything else is percent-encoded.
_COOKIE_SAFE = "!#$&'()*+-./:<=>?@[]^_`{|}~"


@dataclass(frozen=True, slots=True)
class RawResponse:
    """Unmapped HTTP result."""

    status: int
    reason: str = ""
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: bytes = b""
    url: str = ""
    elapsed_ms: float = 0.0

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    @property
    def mime_type(self) -> str:
        return self.content_type.split(";")[0].strip().lower()

    @property
    def links(self) -> dict[str, str]:
        """rel -> URL mapping parsed from the Link header."""
        response = httpx.Response(self.status, headers=self.headers)
        return {
            rel: link["url"]
            for rel, link in response.links.items()
            if isinstance(rel, str) and link.get("url")
        }

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


def redact_headers(headers: dict[str, str] | httpx.Headers) -> dict[str, str]:
    """Copy of headers with credentials masked."""
    return {
        k: (REDACTED if k.lower() in _SENSITIVE_HEADERS else v)
        for k, v in headers.items()
    }


def _truncate(body: bytes | None) -> str:
    if not body:
        return ""
    text = body[:MAX_LOGGED_BODY].decode("utf-8", errors="replace")
    if len(body) > MAX_LOGGED_BODY:
        text += f"... ({len(body)} bytes)"
    return text


class HttpExecutor:
    """
    Executes request descriptors over HTTP.

    Example:
        executor = HttpExecutor(timeout=10.0)
        response = await executor.execute(descriptor)

        # With a shared client for connection pooling
        async with httpx.AsyncClient() as client:
            executor = HttpExecutor(http_client=client)
    """

    def __init__(
        self,
        timeout: float = 30.0,
        *,
        http_client: httpx.AsyncClient | None = None,
        log_http: bool = False,
    ):
        self._timeout = timeout
        self._shared_client = http_client  # Caller-managed (don't close)
        self._log_http = log_http

    @property
    def timeout(self) -> float:
        return self._timeout

    async def execute(self, descriptor: RequestDescriptor) -> RawResponse:
        """
        Send the request once.

        Raises:
            NetworkError: On any transport failure
        """
        if self._shared_client is not None:
            client = self._shared_client
            close_after = False
        else:
            client = httpx.AsyncClient(timeout=self._timeout)
            close_after = True

        headers = dict(descriptor.headers)
        if descriptor.cookies:
            headers["Cookie"] = "; ".join(
                f"{k}={quote(v, safe=_COOKIE_SAFE)}" for k, v in descriptor.cookies.items()
            )
        if descriptor.content_type:
            headers["Content-Type"] = descriptor.content_type

        url = descriptor.url
        if self._log_http:
            logger.info(
                f"[http] --> {descriptor.method} {url} headers={redact_headers(headers)} "
                f"body={_truncate(descriptor.body)}"
            )

        started = time.monotonic()
        try:
            response = await client.request(
                method=descriptor.method,
                url=url,
                headers=headers,
                content=descriptor.body,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            logger.error(f"[http] {descriptor.method} {url} timed out after {self._timeout}s")
            raise NetworkError(f"Request timed out after {self._timeout}s", cause=e) from e
        except httpx.ConnectError as e:
            logger.error(f"[http] {descriptor.method} {url} connection error: {e}")
            raise NetworkError(f"Connection failed: {e}", cause=e) from e
        except httpx.TransportError as e:
            logger.error(f"[http] {descriptor.method} {url} transport error: {e}")
            raise NetworkError(f"Request failed: {e}", cause=e) from e
        finally:
            if close_after:
                await client.aclose()

        elapsed_ms = (time.monotonic() - started) * 1000
        raw = RawResponse(
            status=response.status_code,
            reason=response.reason_phrase or "",
            headers=httpx.Headers(response.headers),
            body=response.content or b"",
            url=url,
            elapsed_ms=elapsed_ms,
        )

        if self._log_http:
            logger.info(
                f"[http] <-- {raw.status} {raw.reason} ({elapsed_ms:.0f}ms) "
                f"headers={redact_headers(raw.headers)} body={_truncate(raw.body)}"
            )
        else:
            logger.info(f"[http] {descriptor.method} {url} -> {raw.status} ({elapsed_ms:.0f}ms)")

        return raw
