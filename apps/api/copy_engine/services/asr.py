"""Speech recognition client covering generic JSON, flash and submit/query endpoints."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
import json
import logging
import re
from typing import Any
from uuid import uuid4

import httpx

from copy_engine.core.config import Settings
from copy_engine.core.logging_safety import safe_log_identifier, truncate_for_log
from copy_engine.domain.json_path import pick_first_text
from copy_engine.errors import PipelineError
from copy_engine.schemas.error import ErrorCode

logger = logging.getLogger(__name__)

ASR_TEXT_CANDIDATES = (
    "transcriptText",
    "text",
    "result",
    "data.transcriptText",
    "data.text",
    "data.result",
    "payload.text",
    "payload.result",
)
OPENSPEECH_TEXT_CANDIDATES = ("result.text",)

DEFAULT_FLASH_RESOURCE_ID = "volc.bigasr.auc_turbo"
DEFAULT_SUBMIT_RESOURCE_ID = "volc.seedasr.auc"
FALLBACK_RESOURCE_IDS = ("volc.seedasr.auc", "volc.bigasr.auc", "volc.bigasr.auc_turbo")
DEFAULT_MODEL_NAME = "bigmodel"
SINGLE_KEY_UID = "single-key-user"

STATUS_SUCCESS = "20000000"
STATUS_PROCESSING = {"20000001", "20000002"}
STATUS_ACCEPTED = {STATUS_SUCCESS, *STATUS_PROCESSING}

_DENIAL_MARKERS = ("requested grant not found", "is not allowed", "45000010", "45000000")
_CHAT_ENDPOINT = re.compile(r"/chat/completions/?$", re.IGNORECASE)
_FLASH_ENDPOINT = re.compile(r"openspeech\.bytedance\.com/api/v3/auc/bigmodel/recognize/flash/?$", re.IGNORECASE)
_SUBMIT_ENDPOINT = re.compile(r"openspeech\.bytedance\.com/api/v3/auc/bigmodel/submit/?$", re.IGNORECASE)
_SUBMIT_SUFFIX = re.compile(r"/submit/?$", re.IGNORECASE)

_CREDENTIALS_HINT = "请设置 VOLCENGINE_ASR_API_KEY（单key）或 VOLCENGINE_ASR_APP_KEY + VOLCENGINE_ASR_ACCESS_KEY（双key）。"


def is_resource_denied(message: str) -> bool:
    normalized = message.lower()
    return any(marker in normalized for marker in _DENIAL_MARKERS)


def to_query_url(submit_url: str) -> str:
    return _SUBMIT_SUFFIX.sub("/query", submit_url)


def resource_candidates(configured: str) -> list[str]:
    return list(dict.fromkeys((configured, *FALLBACK_RESOURCE_IDS)))


def _header_code(data: Any) -> int | None:
    header = data.get("header") if isinstance(data, dict) else None
    code = header.get("code") if isinstance(header, dict) else None
    if isinstance(code, bool) or not isinstance(code, int):
        return None
    return code


def _header_message(data: Any) -> str | None:
    header = data.get("header") if isinstance(data, dict) else None
    message = header.get("message") if isinstance(header, dict) else None
    return message if isinstance(message, str) else None


def _parse_json(text: str) -> Any:
    return json.loads(text) if text else {}


def _clean(value: str | None) -> str:
    return (value or "").strip()


class AsrClient:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = settings
        self._transport = transport

    async def transcribe(self, media_url: str, share_text: str) -> str:
        api_url = _clean(self._settings.asr_api_url)
        if not api_url:
            if self._settings.allow_mock_transcript:
                return f"这是根据抖音链接生成的模拟旁白转写文本。原始分享内容：{share_text}。视频地址：{media_url}。"
            raise PipelineError(
                ErrorCode.ASR_FAILED,
                "未配置ASR接口。请设置 VOLCENGINE_ASR_API_URL / VOLCENGINE_ASR_API_KEY，或显式设置 ALLOW_MOCK_TRANSCRIPT=true。",
            )
        if _CHAT_ENDPOINT.search(api_url):
            raise PipelineError(
                ErrorCode.ASR_FAILED,
                "VOLCENGINE_ASR_API_URL 当前指向 Ark Chat 接口(/chat/completions)，请改为火山语音转写接口地址。",
            )

        if _FLASH_ENDPOINT.search(api_url):
            return await self._bounded(self._transcribe_flash(api_url, media_url), "OpenSpeech ASR 超时。")
        if _SUBMIT_ENDPOINT.search(api_url):
            return await self._bounded(self._transcribe_submit(api_url, media_url), "OpenSpeech submit/query 超时。")
        return await self._bounded(self._transcribe_generic(api_url, media_url), "ASR服务超时。")

    async def _bounded(self, operation: Awaitable[str], timeout_message: str) -> str:
        """Run one transcription path under the overall ASR deadline, mapping transport failures."""
        try:
            async with asyncio.timeout(self._settings.asr_timeout):
                return await operation
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise PipelineError(ErrorCode.ASR_TIMEOUT, timeout_message) from exc
        except httpx.HTTPError as exc:
            raise PipelineError(ErrorCode.ASR_FAILED, str(exc) or type(exc).__name__) from exc

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._settings.asr_timeout, transport=self._transport)

    async def _transcribe_generic(self, api_url: str, media_url: str) -> str:
        headers = {"Content-Type": "application/json"}
        if self._settings.asr_api_key:
            headers["Authorization"] = f"Bearer {self._settings.asr_api_key}"
        payload = {
            "videoUrl": media_url,
            "video_url": media_url,
            "url": media_url,
            "audioUrl": media_url,
            "language": "zh",
            "model": self._settings.asr_model,
        }
        async with self._client() as client:
            response = await client.post(api_url, headers=headers, json=payload)

        if not response.is_success:
            raise PipelineError(
                ErrorCode.ASR_FAILED,
                f"ASR服务返回状态码 {response.status_code}，响应: {truncate_for_log(response.text)}",
            )
        try:
            data = _parse_json(response.text)
        except json.JSONDecodeError as exc:
            raise PipelineError(ErrorCode.ASR_FAILED, "ASR服务响应非JSON。") from exc

        text = pick_first_text(data, self._settings.asr_text_field_path, ASR_TEXT_CANDIDATES)
        if not text:
            raise PipelineError(ErrorCode.ASR_FAILED, "ASR服务未返回有效文本。")
        return text

    def _credentials(self, label: str) -> tuple[str, str, str]:
        app_key = _clean(self._settings.asr_app_key)
        access_key = _clean(self._settings.asr_access_key)
        api_key = _clean(self._settings.asr_api_key)
        if not api_key and not (app_key and access_key):
            raise PipelineError(ErrorCode.ASR_FAILED, f"OpenSpeech {label} 缺少鉴权参数。{_CREDENTIALS_HINT}")
        return app_key, access_key, api_key

    def _request_body(self, app_key: str, media_url: str) -> dict[str, Any]:
        return {
            "user": {"uid": app_key or SINGLE_KEY_UID},
            "audio": {"url": media_url},
            "request": {"model_name": _clean(self._settings.asr_model) or DEFAULT_MODEL_NAME},
        }

    @staticmethod
    def _flash_headers(app_key: str, access_key: str, api_key: str, resource_id: str) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-Api-Resource-Id": resource_id,
            "X-Api-Request-Id": str(uuid4()),
            "X-Api-Sequence": "-1",
        }
        if app_key:
            headers["X-Api-App-Key"] = app_key
        if access_key:
            headers["X-Api-Access-Key"] = access_key
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
            headers.setdefault("X-Api-Access-Key", api_key)
            headers.setdefault("X-Api-App-Key", api_key)
        return headers

    @staticmethod
    def _submit_headers(
        app_key: str,
        access_key: str,
        api_key: str,
        resource_id: str,
        request_id: str,
        log_id: str = "",
    ) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-Api-Resource-Id": resource_id,
            "X-Api-Request-Id": request_id,
            "X-Api-Sequence": "-1",
        }
        if app_key:
            headers["X-Api-App-Key"] = app_key
        if access_key:
            headers["X-Api-Access-Key"] = access_key
        if api_key:
            headers["x-api-key"] = api_key
        if log_id:
            headers["X-Tt-Logid"] = log_id
        return headers

    @staticmethod
    def _all_denied_error(candidates: list[str]) -> PipelineError:
        return PipelineError(
            ErrorCode.ASR_FAILED,
            f"OpenSpeech 授权不足：当前账号对资源 {', '.join(candidates)} 均无授权。请在火山控制台开通或改用已授权资源。",
        )

    async def _transcribe_flash(self, api_url: str, media_url: str) -> str:
        app_key, access_key, api_key = self._credentials("ASR")
        candidates = resource_candidates(_clean(self._settings.asr_resource_id) or DEFAULT_FLASH_RESOURCE_ID)
        body = self._request_body(app_key, media_url)
        denied = 0
        last_error = ""

        async with self._client() as client:
            for resource_id in candidates:
                response = await client.post(
                    api_url,
                    headers=self._flash_headers(app_key, access_key, api_key, resource_id),
                    json=body,
                )
                response_text = response.text
                if not response.is_success:
                    last_error = (
                        f"OpenSpeech ASR状态码 {response.status_code}，响应: {truncate_for_log(response_text)}，"
                        f"resource_id={resource_id}"
                    )
                    if is_resource_denied(response_text):
                        denied += 1
                        logger.info("asr.resource_denied mode=flash resource_id=%s", resource_id)
                        continue
                    raise PipelineError(ErrorCode.ASR_FAILED, last_error)

                try:
                    data = _parse_json(response_text)
                except json.JSONDecodeError as exc:
                    raise PipelineError(ErrorCode.ASR_FAILED, f"OpenSpeech ASR响应非JSON，resource_id={resource_id}") from exc

                code = _header_code(data)
                message = _header_message(data)
                if code:
                    last_error = (
                        f"OpenSpeech ASR业务失败 code={code} message={message or 'unknown'}，resource_id={resource_id}"
                    )
                    if is_resource_denied(message or "") or is_resource_denied(str(code)):
                        denied += 1
                        logger.info("asr.resource_denied mode=flash resource_id=%s", resource_id)
                        continue
                    raise PipelineError(ErrorCode.ASR_FAILED, last_error)

                text = pick_first_text(data, self._settings.asr_text_field_path, OPENSPEECH_TEXT_CANDIDATES)
                if not text:
                    raise PipelineError(
                        ErrorCode.ASR_FAILED,
                        f"OpenSpeech ASR未返回result.text，请检查 VOLCENGINE_ASR_TEXT_FIELD_PATH。resource_id={resource_id}",
                    )
                return text

        if denied == len(candidates):
            raise self._all_denied_error(candidates)
        raise PipelineError(ErrorCode.ASR_FAILED, last_error or "OpenSpeech ASR 调用失败")

    async def _transcribe_submit(self, api_url: str, media_url: str) -> str:
        app_key, access_key, api_key = self._credentials("submit")
        candidates = resource_candidates(_clean(self._settings.asr_resource_id) or DEFAULT_SUBMIT_RESOURCE_ID)
        query_url = to_query_url(api_url)
        body = self._request_body(app_key, media_url)
        denied = 0
        last_error = ""

        async with self._client() as client:
            for resource_id in candidates:
                request_id = str(uuid4())
                submit = await client.post(
                    api_url,
                    headers=self._submit_headers(app_key, access_key, api_key, resource_id, request_id),
                    json=body,
                )
                submit_text = submit.text
                submit_code = submit.headers.get("X-Api-Status-Code", "")
                submit_message = submit.headers.get("X-Api-Message", "")
                log_id = submit.headers.get("X-Tt-Logid", "")

                if not submit.is_success:
                    last_error = (
                        f"OpenSpeech submit状态码 {submit.status_code}，响应: {truncate_for_log(submit_text)}，"
                        f"resource_id={resource_id}"
                    )
                    if is_resource_denied(submit_text):
                        denied += 1
                        continue
                    raise PipelineError(ErrorCode.ASR_FAILED, last_error)

                if submit_code and submit_code not in STATUS_ACCEPTED:
                    last_error = (
                        f"OpenSpeech submit失败 code={submit_code} message={submit_message or 'unknown'}，"
                        f"resource_id={resource_id}"
                    )
                    if is_resource_denied(last_error):
                        denied += 1
                        continue
                    raise PipelineError(ErrorCode.ASR_FAILED, last_error)

                logger.info(
                    "asr.submitted resource_id=%s request_id=%s",
                    resource_id,
                    safe_log_identifier(request_id, prefix="rid"),
                )
                query_headers = self._submit_headers(app_key, access_key, api_key, resource_id, request_id, log_id)
                text = await self._poll_query(client, query_url, query_headers, resource_id)
                if text is None:
                    denied += 1
                    last_error = f"OpenSpeech query 无资源授权，resource_id={resource_id}"
                    continue
                return text

        if denied >= len(candidates):
            raise self._all_denied_error(candidates)
        raise PipelineError(ErrorCode.ASR_FAILED, last_error or "OpenSpeech submit/query 调用失败")

    async def _poll_query(
        self,
        client: httpx.AsyncClient,
        query_url: str,
        headers: dict[str, str],
        resource_id: str,
    ) -> str | None:
        """Poll until text arrives; ``None`` means the resource was denied and the next one should be tried."""
        max_polls = self._settings.asr_query_max_polls
        for poll in range(max_polls):
            is_last = poll == max_polls - 1
            response = await client.post(query_url, headers=headers, json={})
            response_text = response.text
            status_code = response.headers.get("X-Api-Status-Code", "")
            status_message = response.headers.get("X-Api-Message", "")

            if not response.is_success:
                error = (
                    f"OpenSpeech query状态码 {response.status_code}，响应: {truncate_for_log(response_text, 2000)}，"
                    f"resource_id={resource_id}"
                )
                if is_resource_denied(error):
                    return None
                raise PipelineError(ErrorCode.ASR_FAILED, error)

            if status_code in STATUS_PROCESSING:
                await asyncio.sleep(self._settings.asr_poll_interval)
                continue

            if status_code and status_code not in STATUS_ACCEPTED:
                error = (
                    f"OpenSpeech query失败 code={status_code} message={status_message or 'unknown'}，"
                    f"resource_id={resource_id}"
                )
                if is_resource_denied(error):
                    return None
                raise PipelineError(ErrorCode.ASR_FAILED, error)

            if not response_text.strip():
                if not is_last:
                    await asyncio.sleep(self._settings.asr_poll_interval)
                    continue
                raise PipelineError(ErrorCode.ASR_FAILED, "OpenSpeech query返回空响应，未获取到转写结果。")

            try:
                data = _parse_json(response_text)
            except json.JSONDecodeError as exc:
                if not is_last:
                    await asyncio.sleep(self._settings.asr_poll_interval)
                    continue
                raise PipelineError(ErrorCode.ASR_FAILED, "OpenSpeech query响应非JSON") from exc

            code = _header_code(data)
            if code:
                message = _header_message(data) or status_message or "unknown"
                error = f"OpenSpeech query业务失败 code={code} message={message}，resource_id={resource_id}"
                if is_resource_denied(error):
                    return None
                raise PipelineError(ErrorCode.ASR_FAILED, error)

            text = pick_first_text(data, self._settings.asr_text_field_path, OPENSPEECH_TEXT_CANDIDATES)
            if text:
                return text
            raise PipelineError(
                ErrorCode.ASR_FAILED,
                f"OpenSpeech query完成但未返回文本，请检查 VOLCENGINE_ASR_TEXT_FIELD_PATH。resource_id={resource_id}",
            )

        raise PipelineError(
            ErrorCode.ASR_TIMEOUT,
            f"OpenSpeech query 轮询 {max_polls} 次后转写仍在处理中，resource_id={resource_id}",
        )
