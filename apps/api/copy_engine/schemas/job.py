"""Job API schemas."""

from enum import Enum


class JobKind(str, Enum):
    TRANSCRIPT = "transcript"
    REWRITE = "rewrite"
    PRODUCT_ADAPT = "product_adapt"


class JobStatus(str, Enum):
    QUEUED = "queued"
    RESOLVING = "resolving"
    TRANSCRIBING = "transcribing"
    GENERATING = "generating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
