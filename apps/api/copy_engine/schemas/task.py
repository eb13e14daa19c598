"""Transcript task API schemas."""

from typing import Literal

from pydantic import Field

from copy_engine.schemas.base import ApiModel
from copy_engine.schemas.job import JobStatus


class CreateTaskRequest(ApiModel):
    share_text: str = Field(min_length=1)
    client_request_id: str = Field(min_length=1)


class CreateTaskResponse(ApiModel):
    task_id: str
    status: Literal["queued"] = "queued"


class TranscriptResult(ApiModel):
    task_id: str
    status: JobStatus
    transcript_text: str | None = None
    error_code: str | None = None
    error_message: str | None = None
