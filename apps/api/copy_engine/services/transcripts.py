"""Share text to transcript job pipeline."""

from __future__ import annotations

import logging

from copy_engine.core.logging_safety import safe_log_identifier, safe_log_url, truncate_for_log
from copy_engine.errors import PipelineError
from copy_engine.repositories.memory import InMemoryStore
from copy_engine.schemas.error import ErrorCode
from copy_engine.schemas.job import JobKind, JobStatus
from copy_engine.schemas.task import CreateTaskRequest, CreateTaskResponse, TranscriptResult
from copy_engine.services.asr import AsrClient
from copy_engine.services.resolver import VideoUrlResolver, extract_share_url
from copy_engine.services.task_runner import BackgroundTaskRunner

logger = logging.getLogger(__name__)


class TranscriptPipeline:
    def __init__(
        self,
        store: InMemoryStore,
        runner: BackgroundTaskRunner,
        resolver: VideoUrlResolver,
        asr: AsrClient,
    ) -> None:
        self._store = store
        self._runner = runner
        self._resolver = resolver
        self._asr = asr

    def create_task(self, request: CreateTaskRequest) -> CreateTaskResponse:
        """Create a transcript job, or return the job already bound to this client request id."""
        existing_id = self._store.get_job_by_request_id(request.client_request_id)
        if existing_id is not None:
            logger.info(
                "task.replayed task_id=%s request_id=%s",
                safe_log_identifier(existing_id, prefix="tid"),
                safe_log_identifier(request.client_request_id, prefix="rid"),
            )
            return CreateTaskResponse(task_id=existing_id)

        job = self._store.create_job(
            JobKind.TRANSCRIPT,
            meta={"share_text": request.share_text, "client_request_id": request.client_request_id},
        )
        task_id = self._store.set_request_mapping(request.client_request_id, job.id)
        if task_id == job.id:
            self._runner.spawn(self.process(job.id, request.share_text), name=f"transcript-{job.id}")
            logger.info("task.created task_id=%s", safe_log_identifier(job.id, prefix="tid"))
        return CreateTaskResponse(task_id=task_id)

    def get_task(self, task_id: str) -> TranscriptResult | None:
        job = self._store.get_job(task_id)
        if job is None or job.kind is not JobKind.TRANSCRIPT:
            return None
        return TranscriptResult(
            task_id=job.id,
            status=job.status,
            transcript_text=job.transcript_text,
            error_code=job.error_code,
            error_message=job.error_message,
        )

    async def process(self, task_id: str, share_text: str) -> None:
        safe_task_id = safe_log_identifier(task_id, prefix="tid")
        try:
            self._store.update_job_status(task_id, JobStatus.RESOLVING)
            raw_url = extract_share_url(share_text)
            if not raw_url:
                raise PipelineError(ErrorCode.INVALID_LINK, "分享文本中未识别到有效链接。")

            video_url = await self._resolver.resolve(raw_url, share_text)
            self._store.update_job_status(task_id, JobStatus.TRANSCRIBING, meta={"video_url": video_url})
            logger.info(
                "task.resolved task_id=%s video_url=%s",
                safe_task_id,
                safe_log_url(video_url),
            )

            transcript_text = await self._asr.transcribe(video_url, share_text)
            self._store.update_job_status(task_id, JobStatus.SUCCEEDED, transcript_text=transcript_text)
            logger.info("task.succeeded task_id=%s chars=%s", safe_task_id, len(transcript_text))
        except PipelineError as exc:
            logger.warning(
                "task.failed task_id=%s code=%s reason=%s",
                safe_task_id,
                exc.code.value,
                truncate_for_log(exc.message, 200),
            )
            self._store.update_job_status(
                task_id,
                JobStatus.FAILED,
                error_code=exc.code.value,
                error_message=exc.message,
            )
        except Exception as exc:
            logger.exception("task.crashed task_id=%s", safe_task_id)
            self._store.update_job_status(
                task_id,
                JobStatus.FAILED,
                error_code=ErrorCode.INTERNAL_ERROR.value,
                error_message=str(exc) or type(exc).__name__,
            )
