"""In-memory job store shared by the transcript pipeline and copy jobs."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from copy_engine.domain.job_fsm import ensure_transition
from copy_engine.schemas.copy import ProductInfo, QcReport
from copy_engine.schemas.job import JobKind, JobStatus


@dataclass(slots=True, frozen=True)
class JobRecord:
    id: str
    kind: JobKind
    status: JobStatus
    created_at: datetime
    updated_at: datetime
    retry_count: int = 0
    error_code: str | None = None
    error_message: str | None = None
    transcript_text: str | None = None
    output_ref: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class CopyOutputRecord:
    job_id: str
    source_text: str
    versions: tuple[str, ...]
    qc_report: QcReport
    model_meta: dict[str, Any]
    created_at: datetime


@dataclass(slots=True, frozen=True)
class ProductProfileRecord:
    profile_id: str
    product_name: str
    category: str
    selling_points: tuple[str, ...]
    target_audience: str
    cta: str
    forbidden_words: tuple[str, ...]
    created_at: datetime


@dataclass(slots=True)
class InMemoryStore:
    """Process-lifetime job state.

    Each job is written only by the task that owns it; records are replaced
    wholesale on update so pollers always read a consistent snapshot.
    """

    jobs: dict[str, JobRecord] = field(default_factory=dict)
    copy_outputs: dict[str, CopyOutputRecord] = field(default_factory=dict)
    product_profiles: dict[str, ProductProfileRecord] = field(default_factory=dict)
    job_ids_by_request_id: dict[str, str] = field(default_factory=dict)

    def create_job(self, kind: JobKind, meta: dict[str, Any] | None = None) -> JobRecord:
        now = datetime.now(UTC)
        job = JobRecord(
            id=str(uuid4()),
            kind=kind,
            status=JobStatus.QUEUED,
            created_at=now,
            updated_at=now,
            meta=dict(meta or {}),
        )
        self.jobs[job.id] = job
        return job

    def get_job(self, job_id: str) -> JobRecord | None:
        return self.jobs.get(job_id)

    def update_job_status(
        self,
        job_id: str,
        status: JobStatus,
        *,
        retry_count: int | None = None,
        error_code: str | None = None,
        error_message: str | None = None,
        transcript_text: str | None = None,
        output_ref: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> JobRecord | None:
        """Apply an FSM-validated status change, merging only the fields provided."""
        current = self.jobs.get(job_id)
        if current is None:
            return None

        ensure_transition(current.kind, current.status, status)
        updated = replace(
            current,
            status=status,
            retry_count=current.retry_count if retry_count is None else retry_count,
            error_code=current.error_code if error_code is None else error_code,
            error_message=current.error_message if error_message is None else error_message,
            transcript_text=current.transcript_text if transcript_text is None else transcript_text,
            output_ref=current.output_ref if output_ref is None else output_ref,
            meta={**current.meta, **meta} if meta else current.meta,
            updated_at=datetime.now(UTC),
        )
        self.jobs[job_id] = updated
        return updated

    def set_request_mapping(self, client_request_id: str, job_id: str) -> str:
        """Record the idempotency key; the first mapping for a key wins."""
        return self.job_ids_by_request_id.setdefault(client_request_id, job_id)

    def get_job_by_request_id(self, client_request_id: str) -> str | None:
        return self.job_ids_by_request_id.get(client_request_id)

    def save_copy_output(self, output: CopyOutputRecord) -> CopyOutputRecord:
        """Store a job's output once; later saves for the same job return the original."""
        return self.copy_outputs.setdefault(output.job_id, output)

    def get_copy_output(self, job_id: str) -> CopyOutputRecord | None:
        return self.copy_outputs.get(job_id)

    def upsert_product_profile(self, info: ProductInfo) -> ProductProfileRecord:
        profile = ProductProfileRecord(
            profile_id=str(uuid4()),
            product_name=info.product_name,
            category=info.category,
            selling_points=tuple(info.selling_points),
            target_audience=info.target_audience,
            cta=info.cta,
            forbidden_words=tuple(info.forbidden_words or ()),
            created_at=datetime.now(UTC),
        )
        self.product_profiles[profile.profile_id] = profile
        return profile
