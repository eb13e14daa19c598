"""Short-lived tokenized relay for upstream media URLs."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
import logging
import re
import time
from urllib.parse import urlsplit
from uuid import uuid4

import httpx

from copy_engine.core.logging_safety import safe_log_identifier, safe_log_url, truncate_for_log
from copy_engine.errors import ApiError
from copy_engine.services.resolver import MOBILE_USER_AGENT

logger = logging.getLogger(__name__)

PROXY_PATH = "/api/media-proxy"
DEFAULT_TTL_SECONDS = 600.0
DEFAULT_MAX_RECORDS = 200
UPSTREAM_CONNECT_TIMEOUT_SECONDS = 15.0

_IPV4 = re.compile(r"^\d+\.\d+\.\d+\.\d+$")
_DOUYIN_HOST_MARKERS = ("douyin", "aweme.snssdk.com", "douyinvod.com", "bytecdn.cn")
_DEFAULT_PORTS = {"http": 80, "https": 443}


def is_private_ipv4(hostname: str) -> bool:
    if not _IPV4.match(hostname):
        return False
    first, second, *_ = (int(part) for part in hostname.split("."))
    if first in (10, 127):
        return True
    if first == 192 and second == 168:
        return True
    if first == 172 and 16 <= second <= 31:
        return True
    return first == 169 and second == 254


def normalize_base_url(base_url: str | None) -> str | None:
    """Reduce a base URL to its ``scheme://host[:port]`` origin; only http(s) is accepted."""
    if not base_url or not base_url.strip():
        return None
    parts = urlsplit(base_url.strip())
    if parts.scheme.lower() not in _DEFAULT_PORTS or not parts.hostname:
        return None
    try:
        port = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    host = parts.hostname.lower()
    if ":" in host:
        host = f"[{host}]"
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        return f"{scheme}://{host}:{port}"
    return f"{scheme}://{host}"


def is_public_base_url(base_url: str | None) -> bool:
    normalized = normalize_base_url(base_url)
    if not normalized:
        return False
    hostname = (urlsplit(normalized).hostname or "").lower()
    if hostname in {"localhost", "::1", "[::1]"}:
        return False
    if hostname.endswith(".local"):
        return False
    return not is_private_ipv4(hostname)


def needs_douyin_referer(source_url: str) -> bool:
    lower = source_url.lower()
    return any(marker in lower for marker in _DOUYIN_HOST_MARKERS)


@dataclass(slots=True, frozen=True)
class _ProxyRecord:
    source_url: str
    expires_at: float


@dataclass(slots=True)
class UpstreamMedia:
    """An open upstream response; the caller streams ``body`` and must call ``aclose``."""

    status_code: int
    headers: dict[str, str]
    body: AsyncIterator[bytes]
    _response: httpx.Response
    _client: httpx.AsyncClient

    async def aclose(self) -> None:
        await self._response.aclose()
        await self._client.aclose()


class MediaProxyService:
    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_records: int = DEFAULT_MAX_RECORDS,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._max_records = max_records
        self._transport = transport
        self._clock = clock
        self._records: dict[str, _ProxyRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def create_proxy_url(self, source_url: str, base_url: str | None) -> str | None:
        """Register ``source_url`` under a fresh token; ``None`` when the base is not publicly reachable."""
        normalized_base = normalize_base_url(base_url)
        if not normalized_base or not is_public_base_url(normalized_base):
            return None

        self._cleanup_expired()
        if len(self._records) >= self._max_records:
            oldest = next(iter(self._records))
            del self._records[oldest]

        token = str(uuid4())
        self._records[token] = _ProxyRecord(source_url=source_url, expires_at=self._clock() + self._ttl_seconds)
        logger.info(
            "media_proxy.created token=%s source=%s records=%s",
            safe_log_identifier(token, prefix="tok"),
            safe_log_url(source_url),
            len(self),
        )
        return f"{normalized_base}{PROXY_PATH}/{token}"

    def lookup(self, token: str) -> str | None:
        self._cleanup_expired()
        record = self._records.get(token)
        if record is None:
            return None
        return record.source_url

    async def open(self, token: str, range_header: str | None = None) -> UpstreamMedia | None:
        """Start streaming the upstream for ``token``; ``None`` when unknown or expired."""
        source_url = self.lookup(token)
        if source_url is None:
            return None

        # Raw bytes are relayed, so the upstream must not compress them.
        headers = {"User-Agent": MOBILE_USER_AGENT, "Accept": "*/*", "Accept-Encoding": "identity"}
        if needs_douyin_referer(source_url):
            headers["Referer"] = "https://www.douyin.com/"
            headers["Origin"] = "https://www.douyin.com"
        if range_header and range_header.strip():
            headers["Range"] = range_header

        client = httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(UPSTREAM_CONNECT_TIMEOUT_SECONDS, read=None),
            transport=self._transport,
        )
        try:
            response = await client.send(client.build_request("GET", source_url, headers=headers), stream=True)
        except httpx.HTTPError as exc:
            await client.aclose()
            logger.warning("media_proxy.upstream_failed token=%s reason=%s", safe_log_identifier(token, prefix="tok"), type(exc).__name__)
            raise ApiError(status_code=502, code="UPSTREAM_FETCH_FAILED", message=str(exc) or type(exc).__name__) from exc

        if not response.is_success:
            body = (await response.aread()).decode("utf-8", errors="replace")
            await response.aclose()
            await client.aclose()
            raise ApiError(
                status_code=502,
                code="UPSTREAM_FETCH_FAILED",
                message=f"status={response.status_code}, body={truncate_for_log(body, 300)}",
            )

        relayed = {
            "Content-Type": response.headers.get("content-type") or "application/octet-stream",
            "Accept-Ranges": response.headers.get("accept-ranges") or "bytes",
            "Cache-Control": "private, max-age=60",
        }
        if response.headers.get("content-length"):
            relayed["Content-Length"] = response.headers["content-length"]
        if response.headers.get("content-range"):
            relayed["Content-Range"] = response.headers["content-range"]

        return UpstreamMedia(
            status_code=response.status_code,
            headers=relayed,
            body=response.aiter_raw(),
            _response=response,
            _client=client,
        )

    def _cleanup_expired(self) -> None:
        now = self._clock()
        expired = [token for token, record in self._records.items() if record.expires_at <= now]
        for token in expired:
            del self._records[token]
