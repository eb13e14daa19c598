"""Transcript task routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, status

from copy_engine.errors import ApiError
from copy_engine.routes.dependencies import get_transcript_pipeline
from copy_engine.schemas.error import ErrorCode, ErrorResponse
from copy_engine.schemas.task import CreateTaskRequest, CreateTaskResponse, TranscriptResult
from copy_engine.services.transcripts import TranscriptPipeline

router = APIRouter(prefix="/tasks", tags=["Tasks"])


@router.post(
    "",
    response_model=CreateTaskResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={400: {"model": ErrorResponse}},
)
async def create_task(
    payload: CreateTaskRequest,
    pipeline: Annotated[TranscriptPipeline, Depends(get_transcript_pipeline)],
) -> CreateTaskResponse:
    return pipeline.create_task(payload)


@router.get(
    "/{taskId}",
    response_model=TranscriptResult,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}},
)
async def get_task(
    task_id: Annotated[str, Path(alias="taskId")],
    pipeline: Annotated[TranscriptPipeline, Depends(get_transcript_pipeline)],
) -> TranscriptResult:
    result = pipeline.get_task(task_id)
    if result is None:
        raise ApiError(status_code=404, code=ErrorCode.NOT_FOUND.value, message=f"taskId={task_id} 不存在")
    return result
