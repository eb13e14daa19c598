"""Share-link to playable media URL resolution."""

from __future__ import annotations

import asyncio
import json
import logging
import re

import httpx

from copy_engine.core.config import Settings
from copy_engine.core.logging_safety import safe_log_url, truncate_for_log
from copy_engine.domain.json_path import pick_first_text
from copy_engine.errors import PipelineError
from copy_engine.schemas.error import ErrorCode

logger = logging.getLogger(__name__)

MOBILE_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
PLAYABLE_REDIRECT_TIMEOUT_SECONDS = 10.0

_URL = re.compile(r"(https?://\S+)", re.IGNORECASE)
_KNOWN_DOMAIN_URL = re.compile(r"((?:v\.douyin\.com|www\.douyin\.com|douyin\.com|iesdouyin\.com)/\S+)", re.IGNORECASE)
_TRAILING_PUNCTUATION = re.compile(r"[)\]}'\"，。！？；：、,.!?;:]+$")
_MEDIA_EXTENSION = re.compile(r"\.(mp3|wav|m4a|aac|ogg|flac|mp4|mov|mkv)(\?|$)", re.IGNORECASE)
_PLAYABLE_API = re.compile(r"aweme\.snssdk\.com/aweme/v1/play", re.IGNORECASE)
_ROUTER_DATA = re.compile(r"window\._ROUTER_DATA\s*=\s*([\s\S]*?)</script>", re.IGNORECASE)
_TRAILING_SEMICOLON = re.compile(r";\s*$")

_MEDIA_HOST_MARKERS = ("douyinvod.com/", "bytecdn.cn/", "volces.com/", "media/")
_SHARE_PAGE_MARKERS = ("v.douyin.com/", "iesdouyin.com/share/", "douyin.com/share/", "douyin.com/video/")

RESOLVER_VIDEO_URL_CANDIDATES = (
    "videoUrl",
    "video_url",
    "url",
    "data.videoUrl",
    "data.video_url",
    "data.url",
    "result.videoUrl",
    "result.video_url",
    "result.url",
)

_VIDEO_PAGE = "loaderData.video_(id)/page.videoInfoRes.item_list.0.video"
_VIDEO_LAYOUT = "loaderData.video_layout.videoInfoRes.item_list.0.video"
ROUTER_DATA_VIDEO_URL_CANDIDATES = (
    f"{_VIDEO_PAGE}.play_addr.url_list.0",
    f"{_VIDEO_PAGE}.play_addr_h264.url_list.0",
    f"{_VIDEO_PAGE}.download_addr.url_list.0",
    f"{_VIDEO_PAGE}.bit_rate.0.play_addr.url_list.0",
    f"{_VIDEO_LAYOUT}.play_addr.url_list.0",
    f"{_VIDEO_LAYOUT}.download_addr.url_list.0",
    "data.videoUrl",
    "videoUrl",
)


def sanitize_url_candidate(url: str) -> str:
    return _TRAILING_PUNCTUATION.sub("", url.strip())


def extract_share_url(share_text: str) -> str | None:
    """Pull the first link out of pasted share text, adding a scheme for bare known domains."""
    direct = _URL.search(share_text)
    if direct:
        return sanitize_url_candidate(direct.group(1))

    known_domain = _KNOWN_DOMAIN_URL.search(share_text)
    if known_domain:
        return f"https://{sanitize_url_candidate(known_domain.group(1))}"
    return None


def is_direct_media_url(url: str) -> bool:
    lower = url.lower()
    if _MEDIA_EXTENSION.search(lower):
        return True
    return any(marker in lower for marker in _MEDIA_HOST_MARKERS)


def is_share_page_url(url: str) -> bool:
    lower = url.lower()
    return any(marker in lower for marker in _SHARE_PAGE_MARKERS)


def is_playable_api_url(url: str) -> bool:
    return bool(_PLAYABLE_API.search(url))


def extract_router_data_json(html: str) -> str | None:
    match = _ROUTER_DATA.search(html)
    if not match or not match.group(1):
        return None
    return _TRAILING_SEMICOLON.sub("", match.group(1).strip())


def extract_video_url_from_router_data(router_data: object) -> str | None:
    return pick_first_text(router_data, None, ROUTER_DATA_VIDEO_URL_CANDIDATES)


class VideoUrlResolver:
    """Ordered fallback chain: direct media URL, resolver endpoint, share-page scrape."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = settings
        self._transport = transport

    def _client(self, timeout: float, *, follow_redirects: bool = True) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, follow_redirects=follow_redirects, transport=self._transport)

    async def resolve(self, raw_url: str, share_text: str) -> str:
        if is_direct_media_url(raw_url):
            return await self.normalize_media_url(raw_url)

        resolver_error = ""
        if self._settings.resolver_api_url:
            try:
                video_url = await self._resolve_via_endpoint(raw_url, share_text)
            except PipelineError as exc:
                resolver_error = exc.message
            except (httpx.HTTPError, ValueError) as exc:
                resolver_error = str(exc) or type(exc).__name__
            else:
                if video_url:
                    return await self.normalize_media_url(video_url)
                resolver_error = "解析服务未返回视频地址。"
            logger.warning(
                "resolve.endpoint_failed url=%s reason=%s",
                safe_log_url(raw_url),
                truncate_for_log(resolver_error, 200),
            )

        video_url, reason = await self._resolve_via_share_page(raw_url)
        if video_url:
            return await self.normalize_media_url(video_url)

        builtin_reason = reason or "内置解析器未提取到视频地址。"
        if resolver_error:
            raise PipelineError(ErrorCode.RESOLVE_FAILED, f"{resolver_error}；并且{builtin_reason}")
        raise PipelineError(
            ErrorCode.RESOLVE_FAILED,
            f"当前是分享页链接而非媒体直链。{builtin_reason}。"
            "请配置 VOLCENGINE_RESOLVER_API_URL 将分享链接解析为可下载音视频URL，或直接传入媒体直链。",
        )

    async def _resolve_via_endpoint(self, raw_url: str, share_text: str) -> str | None:
        headers = {"Content-Type": "application/json"}
        if self._settings.resolver_api_key:
            headers["Authorization"] = f"Bearer {self._settings.resolver_api_key}"

        async with self._client(self._settings.resolver_timeout) as client:
            response = await client.post(
                self._settings.resolver_api_url,
                headers=headers,
                json={"shareText": share_text, "url": raw_url},
            )
        if not response.is_success:
            raise PipelineError(
                ErrorCode.RESOLVE_FAILED,
                f"解析服务返回状态码 {response.status_code}，响应: {truncate_for_log(response.text)}",
            )
        return pick_first_text(
            response.json(),
            self._settings.resolver_video_url_field_path,
            RESOLVER_VIDEO_URL_CANDIDATES,
        )

    async def _resolve_via_share_page(self, raw_url: str) -> tuple[str | None, str]:
        if not is_share_page_url(raw_url):
            return None, "链接不是抖音分享页"

        headers = {
            "User-Agent": MOBILE_USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Referer": "https://www.douyin.com/",
            "Accept-Language": "zh-CN,zh;q=0.9",
        }
        try:
            async with self._client(self._settings.resolver_timeout) as client:
                response = await client.get(raw_url, headers=headers)
        except httpx.TimeoutException:
            return None, "内置解析超时"
        except httpx.HTTPError as exc:
            return None, f"内置解析异常: {str(exc) or type(exc).__name__}"

        if not response.is_success:
            return None, f"内置解析请求失败，状态码 {response.status_code}"

        router_data_text = extract_router_data_json(response.text)
        if not router_data_text:
            return None, "分享页未找到 window._ROUTER_DATA"
        try:
            router_data = json.loads(router_data_text)
        except json.JSONDecodeError:
            return None, "window._ROUTER_DATA 解析失败"

        video_url = extract_video_url_from_router_data(router_data)
        if not video_url:
            return None, "window._ROUTER_DATA 中未找到视频地址"
        return video_url, ""

    async def normalize_media_url(self, url: str) -> str:
        """Follow one redirect hop for playable-API URLs so ASR receives the CDN address."""
        if not is_playable_api_url(url):
            return url
        try:
            async with asyncio.timeout(PLAYABLE_REDIRECT_TIMEOUT_SECONDS):
                async with self._client(PLAYABLE_REDIRECT_TIMEOUT_SECONDS, follow_redirects=False) as client:
                    response = await client.get(url, headers={"User-Agent": MOBILE_USER_AGENT})
        except (TimeoutError, httpx.HTTPError):
            logger.info("resolve.redirect_skipped url=%s", safe_log_url(url))
            return url

        location = (response.headers.get("location") or "").strip()
        if not location:
            return url
        return sanitize_url_candidate(location)
