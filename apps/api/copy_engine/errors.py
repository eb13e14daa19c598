"""Application exception types."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from copy_engine.schemas.error import ErrorCode, ErrorResponse

if TYPE_CHECKING:
    from copy_engine.schemas.copy import QcReport


class ApiError(Exception):
    """Structured API error that maps directly to contract error payloads."""

    def __init__(self, status_code: int, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        self.status_code = status_code
        self.payload = ErrorResponse(error_code=code, error_message=message, details=details)
        super().__init__(message)


class PipelineError(Exception):
    """Terminal job failure carrying the error kind recorded on the job."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


class CopyGenerationError(PipelineError):
    """Generation failure; keeps the last quality report when the gate rejected every attempt."""

    def __init__(self, code: ErrorCode, message: str, qc_report: QcReport | None = None) -> None:
        super().__init__(code, message)
        self.qc_report = qc_report


__all__ = ["ApiError", "CopyGenerationError", "PipelineError"]
