"""Volcengine Ark chat-completions client with a strict N-version JSON contract."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Annotated
from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel, Field, ValidationError

from copy_engine.core.config import Settings
from copy_engine.errors import PipelineError
from copy_engine.schemas.copy import ProductAdaptRequest, RewriteRequest
from copy_engine.schemas.error import ErrorCode

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)


class LlmOutput(BaseModel):
    versions: list[Annotated[str, Field(min_length=1)]]


class ModelError(PipelineError):
    """Model call failure; ``MODEL_TIMEOUT`` for transport problems, ``INTERNAL_ERROR`` for contract breaches."""


def normalize_json_block(content: str) -> str:
    fenced = _JSON_FENCE.search(content)
    if fenced and fenced.group(1):
        return fenced.group(1).strip()
    return content.strip()


def extract_versions(content: str, expected_count: int) -> list[str]:
    """Parse ``{"versions": [...]}`` and require exactly ``expected_count`` non-empty entries."""
    try:
        payload = json.loads(normalize_json_block(content))
        raw_versions = LlmOutput.model_validate(payload).versions
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ModelError(ErrorCode.INTERNAL_ERROR, "LLM_OUTPUT_SCHEMA_INVALID") from exc

    if len(raw_versions) != expected_count:
        raise ModelError(ErrorCode.INTERNAL_ERROR, "LLM_OUTPUT_COUNT_INVALID")
    versions = [item.strip() for item in raw_versions]
    if not all(versions):
        raise ModelError(ErrorCode.INTERNAL_ERROR, "LLM_OUTPUT_SCHEMA_INVALID")
    return versions


def build_rewrite_prompt(request: RewriteRequest) -> tuple[str, str]:
    system_prompt = "\n".join(
        [
            "你是短视频文案改写专家。",
            "目标：在不改变原文核心含义和框架顺序前提下，生成3个高度接近原文风格的版本。",
            "必须满足：",
            '1) 输出JSON格式：{"versions": ["v1", "v2", "v3"]}；不要输出其他字段。',
            "2) 每个版本字数在原文的90%-110%。",
            "3) 不新增原文不存在的事实信息。",
            "4) 三个版本做轻微差异，只做词句微调。",
        ]
    )
    user_prompt = "\n\n".join(
        [
            f"原文案：\n{request.source_text}",
            f"variantCount={request.variant_count}, strictness={request.strictness}",
            "请直接返回JSON。",
        ]
    )
    return system_prompt, user_prompt


def build_product_prompt(request: ProductAdaptRequest) -> tuple[str, str]:
    info = request.product_info
    system_prompt = "\n".join(
        [
            "你是短视频产品植入改写专家。",
            "目标：按原文结构框架（Hook/痛点/解决方案/证据/CTA）将产品信息自然替换，生成3个版本。",
            "必须满足：",
            '1) 输出JSON格式：{"versions": ["v1", "v2", "v3"]}；不要输出其他字段。',
            "2) 每个版本字数在原文的90%-110%。",
            "3) 语气和节奏与原文一致，禁止改成公文体或硬广腔。",
            "4) 每个版本至少覆盖2个卖点，三个版本合计覆盖全部卖点。",
            "5) 禁止出现禁用词。",
        ]
    )
    user_prompt = "\n\n".join(
        [
            f"原文案：\n{request.source_text}",
            f"产品名：{info.product_name}",
            f"品类：{info.category}",
            f"目标人群：{info.target_audience}",
            f"CTA：{info.cta}",
            f"卖点：{'；'.join(info.selling_points)}",
            f"禁用词：{'；'.join(info.forbidden_words or []) or '无'}",
            f"合规备注：{'；'.join(info.compliance_notes or []) or '无'}",
            "请直接返回JSON。",
        ]
    )
    return system_prompt, user_prompt


class VolcengineLlmClient:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def configured(self) -> bool:
        return self._settings.llm_configured

    async def generate_rewrite_versions(self, request: RewriteRequest) -> list[str]:
        content = await self._chat_completion(*build_rewrite_prompt(request))
        return extract_versions(content, request.variant_count)

    async def generate_product_versions(self, request: ProductAdaptRequest) -> list[str]:
        content = await self._chat_completion(*build_product_prompt(request))
        return extract_versions(content, request.variant_count)

    def _completions_url(self) -> str:
        base_url = (self._settings.llm_base_url or "").strip()
        if urlsplit(base_url).scheme not in {"http", "https"}:
            raise ModelError(ErrorCode.INTERNAL_ERROR, "VOLCENGINE_LLM_BASE_URL_INVALID")
        return f"{base_url.rstrip('/')}/chat/completions"

    async def _chat_completion(self, system_prompt: str, user_prompt: str) -> str:
        if not self.configured:
            raise ModelError(ErrorCode.INTERNAL_ERROR, "VOLCENGINE_LLM_NOT_CONFIGURED")

        payload = {
            "model": self._settings.llm_model.strip(),
            "temperature": 0.3,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        headers = {"Authorization": f"Bearer {self._settings.llm_api_key.strip()}"}
        try:
            async with asyncio.timeout(self._settings.llm_timeout):
                async with httpx.AsyncClient(timeout=self._settings.llm_timeout, transport=self._transport) as client:
                    response = await client.post(self._completions_url(), headers=headers, json=payload)
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise ModelError(ErrorCode.MODEL_TIMEOUT, "VOLCENGINE_LLM_TIMEOUT") from exc
        except httpx.HTTPError as exc:
            raise ModelError(ErrorCode.MODEL_TIMEOUT, f"VOLCENGINE_LLM_TRANSPORT_{type(exc).__name__}") from exc

        if not response.is_success:
            logger.warning("llm.http_failed status=%s", response.status_code)
            raise ModelError(ErrorCode.MODEL_TIMEOUT, f"VOLCENGINE_LLM_HTTP_{response.status_code}")

        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise ModelError(ErrorCode.MODEL_TIMEOUT, "VOLCENGINE_LLM_EMPTY_CONTENT") from exc

        content = _first_message_content(data)
        if not content:
            raise ModelError(ErrorCode.MODEL_TIMEOUT, "VOLCENGINE_LLM_EMPTY_CONTENT")
        return content


def _first_message_content(data: object) -> str:
    choices = data.get("choices") if isinstance(data, dict) else None
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    content = message.get("content") if isinstance(message, dict) else None
    return content.strip() if isinstance(content, str) else ""
