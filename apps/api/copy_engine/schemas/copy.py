"""Copy generation API schemas."""

from typing import Annotated, Literal

from pydantic import Field

from copy_engine.schemas.base import ApiModel
from copy_engine.schemas.job import JobStatus

QcMode = Literal["rewrite", "product_adapt"]

NonEmptyStr = Annotated[str, Field(min_length=1)]


class RewriteRequest(ApiModel):
    source_text: str = Field(min_length=1)
    mode: Literal["rewrite"] = "rewrite"
    variant_count: Literal[3] = 3
    strictness: Literal["strict"] = "strict"


class ProductInfo(ApiModel):
    product_name: str = Field(min_length=1)
    category: str = Field(min_length=1)
    selling_points: list[NonEmptyStr] = Field(min_length=3, max_length=5)
    target_audience: str = Field(min_length=1)
    cta: str = Field(min_length=1)
    forbidden_words: list[NonEmptyStr] | None = None
    compliance_notes: list[NonEmptyStr] | None = None


class ProductAdaptRequest(ApiModel):
    source_text: str = Field(min_length=1)
    mode: Literal["product_adapt"] = "product_adapt"
    variant_count: Literal[3] = 3
    strictness: Literal["strict"] = "strict"
    product_info: ProductInfo


class QcThresholds(ApiModel):
    min_length_ratio: float = 0.9
    max_length_ratio: float = 1.1
    min_style_similarity: float = 0.82
    min_structure_match_rate: float = 0.8
    min_selling_points_per_variant: int = 2


class VersionCheck(ApiModel):
    index: int
    text_length: int
    length_ratio: float
    style_similarity: float
    structure_match_rate: float
    forbidden_hits: list[str]
    selling_points_covered: list[str]
    passed: bool = False


class QcReport(ApiModel):
    mode: QcMode
    source_length: int
    version_checks: list[VersionCheck]
    all_selling_points_covered: bool
    overall_passed: bool
    thresholds: QcThresholds


class CreateCopyJobResponse(ApiModel):
    job_id: str
    status: Literal["queued"] = "queued"


class CopyJobResult(ApiModel):
    job_id: str
    status: JobStatus
    error_code: str | None = None
    error_message: str | None = None
    versions: list[str] | None = None
    qc_report: QcReport | None = None
