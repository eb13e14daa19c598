"""API error response schemas."""

from enum import Enum
from typing import Any

from copy_engine.schemas.base import ApiModel


class ErrorCode(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_LINK = "INVALID_LINK"
    RESOLVE_FAILED = "RESOLVE_FAILED"
    ASR_TIMEOUT = "ASR_TIMEOUT"
    ASR_FAILED = "ASR_FAILED"
    MODEL_TIMEOUT = "MODEL_TIMEOUT"
    QC_FAILED = "QC_FAILED"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(ApiModel):
    error_code: str
    error_message: str
    details: dict[str, Any] | None = None
