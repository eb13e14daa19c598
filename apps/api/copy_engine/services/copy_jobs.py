"""Copy job lifecycle: enqueue generation, record outputs, assemble poll results."""

from __future__ import annotations

from collections.abc import Awaitable
from datetime import UTC, datetime
import logging
from typing import Any

from copy_engine.core.logging_safety import safe_log_identifier, truncate_for_log
from copy_engine.errors import ApiError, PipelineError
from copy_engine.repositories.memory import CopyOutputRecord, InMemoryStore
from copy_engine.schemas.copy import CopyJobResult, CreateCopyJobResponse, ProductAdaptRequest, RewriteRequest
from copy_engine.schemas.error import ErrorCode
from copy_engine.schemas.job import JobKind, JobStatus
from copy_engine.services.copy_generator import CopyGenerationEngine, GenerateOutput
from copy_engine.services.task_runner import BackgroundTaskRunner

logger = logging.getLogger(__name__)


class CopyJobService:
    def __init__(self, store: InMemoryStore, runner: BackgroundTaskRunner, engine: CopyGenerationEngine) -> None:
        self._store = store
        self._runner = runner
        self._engine = engine

    def create_rewrite_job(self, request: RewriteRequest) -> CreateCopyJobResponse:
        job = self._store.create_job(JobKind.REWRITE, meta={"mode": request.mode})
        model_meta = {"mode": request.mode, "strictness": request.strictness}
        self._runner.spawn(
            self._run(job.id, request.source_text, self._engine.generate_rewrite(request), model_meta),
            name=f"rewrite-{job.id}",
        )
        logger.info("copy_job.created job_id=%s mode=%s", safe_log_identifier(job.id, prefix="jid"), request.mode)
        return CreateCopyJobResponse(job_id=job.id)

    def create_product_job(self, request: ProductAdaptRequest) -> CreateCopyJobResponse:
        profile = self._store.upsert_product_profile(request.product_info)
        job = self._store.create_job(
            JobKind.PRODUCT_ADAPT,
            meta={"mode": request.mode, "profile_id": profile.profile_id},
        )
        model_meta = {"mode": request.mode, "strictness": request.strictness, "profile_id": profile.profile_id}
        self._runner.spawn(
            self._run(job.id, request.source_text, self._engine.generate_product(request), model_meta),
            name=f"product-{job.id}",
        )
        logger.info(
            "copy_job.created job_id=%s mode=%s profile_id=%s",
            safe_log_identifier(job.id, prefix="jid"),
            request.mode,
            safe_log_identifier(profile.profile_id, prefix="pid"),
        )
        return CreateCopyJobResponse(job_id=job.id)

    async def _run(
        self,
        job_id: str,
        source_text: str,
        generation: Awaitable[GenerateOutput],
        model_meta: dict[str, Any],
    ) -> None:
        # Jobs stay queued until the runner actually starts them.
        self._store.update_job_status(job_id, JobStatus.GENERATING)
        safe_job_id = safe_log_identifier(job_id, prefix="jid")
        try:
            output = await generation
        except PipelineError as exc:
            logger.warning(
                "copy_job.failed job_id=%s code=%s reason=%s",
                safe_job_id,
                exc.code.value,
                truncate_for_log(exc.message, 200),
            )
            self._store.update_job_status(
                job_id,
                JobStatus.FAILED,
                error_code=exc.code.value,
                error_message=exc.message,
            )
            return
        except Exception as exc:
            logger.exception("copy_job.crashed job_id=%s", safe_job_id)
            self._store.update_job_status(
                job_id,
                JobStatus.FAILED,
                error_code=ErrorCode.INTERNAL_ERROR.value,
                error_message=str(exc) or type(exc).__name__,
            )
            return

        self._store.save_copy_output(
            CopyOutputRecord(
                job_id=job_id,
                source_text=source_text,
                versions=tuple(output.versions),
                qc_report=output.qc_report,
                model_meta={**model_meta, "provider": output.provider, "attempts": output.attempts},
                created_at=datetime.now(UTC),
            )
        )
        self._store.update_job_status(
            job_id,
            JobStatus.SUCCEEDED,
            output_ref=job_id,
            retry_count=output.attempts - 1,
        )
        logger.info(
            "copy_job.succeeded job_id=%s provider=%s attempts=%s",
            safe_job_id,
            output.provider,
            output.attempts,
        )

    def get_copy_job(self, job_id: str) -> CopyJobResult:
        job = self._store.get_job(job_id)
        if job is None or job.kind is JobKind.TRANSCRIPT:
            raise ApiError(status_code=404, code=ErrorCode.NOT_FOUND.value, message=f"jobId={job_id} 不存在")

        if job.status is not JobStatus.SUCCEEDED:
            return CopyJobResult(
                job_id=job.id,
                status=job.status,
                error_code=job.error_code,
                error_message=job.error_message,
            )

        output = self._store.get_copy_output(job.id)
        if output is None:
            logger.error("copy_job.output_missing job_id=%s", safe_log_identifier(job.id, prefix="jid"))
            raise ApiError(status_code=500, code=ErrorCode.INTERNAL_ERROR.value, message="结果缺失")

        return CopyJobResult(
            job_id=job.id,
            status=job.status,
            versions=list(output.versions),
            qc_report=output.qc_report,
        )
