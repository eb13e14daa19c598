"""Job lifecycle transition rules."""

from copy_engine.errors import ApiError
from copy_engine.schemas.job import JobKind, JobStatus

_TERMINAL_STATES: set[JobStatus] = {
    JobStatus.SUCCEEDED,
    JobStatus.FAILED,
}

_TRANSCRIPT_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.QUEUED: {JobStatus.QUEUED, JobStatus.RESOLVING, JobStatus.FAILED},
    JobStatus.RESOLVING: {JobStatus.RESOLVING, JobStatus.TRANSCRIBING, JobStatus.FAILED},
    JobStatus.TRANSCRIBING: {JobStatus.TRANSCRIBING, JobStatus.SUCCEEDED, JobStatus.FAILED},
    JobStatus.SUCCEEDED: set(),
    JobStatus.FAILED: set(),
}

_COPY_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.QUEUED: {JobStatus.QUEUED, JobStatus.GENERATING, JobStatus.FAILED},
    JobStatus.GENERATING: {JobStatus.GENERATING, JobStatus.SUCCEEDED, JobStatus.FAILED},
    JobStatus.SUCCEEDED: set(),
    JobStatus.FAILED: set(),
}

_ALLOWED_TRANSITIONS: dict[JobKind, dict[JobStatus, set[JobStatus]]] = {
    JobKind.TRANSCRIPT: _TRANSCRIPT_TRANSITIONS,
    JobKind.REWRITE: _COPY_TRANSITIONS,
    JobKind.PRODUCT_ADAPT: _COPY_TRANSITIONS,
}


def is_terminal(status: JobStatus) -> bool:
    return status in _TERMINAL_STATES


def allowed_next_statuses(kind: JobKind, status: JobStatus) -> list[JobStatus]:
    """Return deterministically ordered allowed successors for a status."""
    return sorted(_ALLOWED_TRANSITIONS[kind].get(status, set()), key=lambda s: s.value)


def ensure_transition(kind: JobKind, old_status: JobStatus, new_status: JobStatus) -> None:
    """Validate a status change against the kind's lifecycle; same-status patches are allowed until terminal."""
    if is_terminal(old_status):
        raise ApiError(
            status_code=409,
            code="FSM_TERMINAL_IMMUTABLE",
            message="Terminal state cannot be mutated",
            details={
                "current_status": old_status.value,
                "attempted_status": new_status.value,
                "allowed_next_statuses": [],
            },
        )

    if new_status not in _ALLOWED_TRANSITIONS[kind].get(old_status, set()):
        raise ApiError(
            status_code=409,
            code="FSM_TRANSITION_INVALID",
            message="Invalid status transition",
            details={
                "current_status": old_status.value,
                "attempted_status": new_status.value,
                "allowed_next_statuses": [s.value for s in allowed_next_statuses(kind, old_status)],
            },
        )
