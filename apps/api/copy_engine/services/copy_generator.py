"""Quality-gated copy generation with bounded regeneration."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
import logging

from copy_engine.core.config import Settings
from copy_engine.domain.quality_gate import evaluate_quality
from copy_engine.domain.rewriter import (
    build_high_similarity_rewrite_variants,
    build_product_variants,
    build_rewrite_variants,
    finalize_versions,
    strip_trailing_platform_tag,
)
from copy_engine.errors import CopyGenerationError
from copy_engine.schemas.copy import ProductAdaptRequest, QcMode, QcReport, QcThresholds, RewriteRequest
from copy_engine.schemas.error import ErrorCode
from copy_engine.services.llm import ModelError, VolcengineLlmClient

logger = logging.getLogger(__name__)

PROVIDER_MODEL = "volcengine"
PROVIDER_LOCAL = "local_fallback"

REWRITE_SEED_STEP = 17
PRODUCT_SEED_STEP = 19


@dataclass(slots=True, frozen=True)
class GenerateOutput:
    versions: list[str]
    qc_report: QcReport
    attempts: int
    provider: str


class CopyGenerationEngine:
    def __init__(self, settings: Settings, llm: VolcengineLlmClient) -> None:
        self._settings = settings
        self._llm = llm

    @property
    def thresholds(self) -> QcThresholds:
        return QcThresholds(min_style_similarity=self._settings.style_similarity_threshold)

    async def generate_rewrite(self, request: RewriteRequest) -> GenerateOutput:
        source = strip_trailing_platform_tag(request.source_text)
        cleaned_request = request.model_copy(update={"source_text": source})

        def heuristic(seed_base: int) -> list[str]:
            return build_rewrite_variants(source, request.variant_count, seed_base)

        return await self._generate(
            mode="rewrite",
            source=source,
            model_drafts=lambda: self._llm.generate_rewrite_versions(cleaned_request),
            heuristic_drafts=heuristic,
            seed_step=REWRITE_SEED_STEP,
            safe_versions=lambda: build_high_similarity_rewrite_variants(source, request.variant_count),
        )

    async def generate_product(self, request: ProductAdaptRequest) -> GenerateOutput:
        source = strip_trailing_platform_tag(request.source_text)
        cleaned_request = request.model_copy(update={"source_text": source})
        info = request.product_info
        forbidden_words = list(info.forbidden_words or [])

        def heuristic(seed_base: int) -> list[str]:
            return build_product_variants(
                source,
                product_name=info.product_name,
                category=info.category,
                selling_points=info.selling_points,
                target_audience=info.target_audience,
                cta=info.cta,
                variant_count=request.variant_count,
                seed_base=seed_base,
            )

        safe_seed_base = (self._settings.max_regenerate_count + 1) * PRODUCT_SEED_STEP
        return await self._generate(
            mode="product_adapt",
            source=source,
            model_drafts=lambda: self._llm.generate_product_versions(cleaned_request),
            heuristic_drafts=heuristic,
            seed_step=PRODUCT_SEED_STEP,
            safe_versions=lambda: finalize_versions(source, heuristic(safe_seed_base), forbidden_words),
            forbidden_words=forbidden_words,
            selling_points=info.selling_points,
        )

    async def _generate(
        self,
        *,
        mode: QcMode,
        source: str,
        model_drafts: Callable[[], Awaitable[list[str]]],
        heuristic_drafts: Callable[[int], list[str]],
        seed_step: int,
        safe_versions: Callable[[], list[str]],
        forbidden_words: Sequence[str] = (),
        selling_points: Sequence[str] = (),
    ) -> GenerateOutput:
        last_report: QcReport | None = None
        last_model_error: ModelError | None = None
        max_attempts = self._settings.max_regenerate_count + 1

        for attempt in range(max_attempts):
            provider = PROVIDER_LOCAL
            drafts: list[str] | None = None
            if self._llm.configured:
                try:
                    drafts = await model_drafts()
                    provider = PROVIDER_MODEL
                except ModelError as exc:
                    last_model_error = exc
                    logger.warning(
                        "copy.model_failed mode=%s attempt=%s code=%s reason=%s",
                        mode,
                        attempt,
                        exc.code.value,
                        exc.message,
                    )
            if drafts is None:
                drafts = heuristic_drafts(attempt * seed_step)

            versions = finalize_versions(source, drafts, forbidden_words)
            report = self._score(mode, source, versions, forbidden_words, selling_points)
            last_report = report
            logger.info(
                "copy.attempt mode=%s attempt=%s provider=%s passed=%s",
                mode,
                attempt,
                provider,
                report.overall_passed,
            )
            if report.overall_passed:
                return GenerateOutput(versions=versions, qc_report=report, attempts=attempt + 1, provider=provider)

        versions = safe_versions()
        report = self._score(mode, source, versions, forbidden_words, selling_points)
        logger.info("copy.safe_generation mode=%s passed=%s", mode, report.overall_passed)
        if report.overall_passed:
            return GenerateOutput(versions=versions, qc_report=report, attempts=max_attempts + 1, provider=PROVIDER_LOCAL)

        if last_model_error is not None and last_model_error.code is ErrorCode.MODEL_TIMEOUT:
            raise CopyGenerationError(ErrorCode.MODEL_TIMEOUT, f"MODEL_TIMEOUT:{last_model_error.message}", last_report)
        raise CopyGenerationError(
            ErrorCode.QC_FAILED,
            f"QC_FAILED:{last_report.model_dump_json(by_alias=True)}",
            last_report,
        )

    def _score(
        self,
        mode: QcMode,
        source: str,
        versions: Sequence[str],
        forbidden_words: Sequence[str],
        selling_points: Sequence[str],
    ) -> QcReport:
        return evaluate_quality(
            mode,
            source,
            versions,
            forbidden_words=forbidden_words,
            selling_points=selling_points,
            thresholds=self.thresholds,
        )
