"""Deterministic scoring of generated copy against its source."""

from __future__ import annotations

from collections.abc import Sequence
import re

from copy_engine.domain.framework import extract_framework
from copy_engine.schemas.copy import QcMode, QcReport, QcThresholds, VersionCheck

_NON_WORD = re.compile(r"[\W_]+")
_SENTENCE_BOUNDARY = re.compile(r"[。！？!?]")


def normalize_text(text: str) -> str:
    """Lowercase and keep only letters and digits."""
    return _NON_WORD.sub("", text.lower())


def bigrams(text: str) -> set[str]:
    normalized = normalize_text(text)
    if len(normalized) <= 1:
        return {normalized} if normalized else set()
    return {normalized[i : i + 2] for i in range(len(normalized) - 1)}


def jaccard(left: set[str], right: set[str]) -> float:
    union = left | right
    if not union:
        return 1.0
    return len(left & right) / len(union)


def _average_sentence_length(text: str) -> float:
    sentences = [part.strip() for part in _SENTENCE_BOUNDARY.split(text) if part.strip()]
    if not sentences:
        return float(len(text))
    return sum(len(sentence) for sentence in sentences) / len(sentences)


def rhythm_similarity(source_text: str, target_text: str) -> float:
    source_avg = _average_sentence_length(source_text)
    target_avg = _average_sentence_length(target_text)
    gap = abs(source_avg - target_avg) / max(source_avg, 1)
    return max(0.0, 1 - gap)


def style_similarity(source_text: str, target_text: str) -> float:
    lexical = jaccard(bigrams(source_text), bigrams(target_text))
    rhythm = rhythm_similarity(source_text, target_text)
    return round(lexical * 0.75 + rhythm * 0.25, 4)


def structure_match_rate(source_text: str, target_text: str) -> float:
    """Share of the five narrative slots the target fills where the source has content.

    A non-empty target slot earns credit even with no lexical overlap, so in
    practice this rate only drops when the target has fewer sentences than the
    source has slots.
    """
    source_slots = [slot.strip() for slot in extract_framework(source_text).slots()]
    target_slots = [slot.strip() for slot in extract_framework(target_text).slots()]

    matched = 0
    for source_slot, target_slot in zip(source_slots, target_slots):
        if not source_slot:
            matched += 1
            continue
        overlap = jaccard(bigrams(source_slot), bigrams(target_slot))
        if overlap >= 0.1 or target_slot:
            matched += 1
    return round(matched / len(source_slots), 4)


def find_forbidden_hits(text: str, forbidden_words: Sequence[str]) -> list[str]:
    normalized = normalize_text(text)
    hits: list[str] = []
    for word in forbidden_words:
        cleaned = normalize_text(word)
        if cleaned and cleaned in normalized:
            hits.append(word)
    return hits


def find_covered_selling_points(text: str, selling_points: Sequence[str]) -> list[str]:
    normalized = normalize_text(text)
    covered: list[str] = []
    for point in selling_points:
        cleaned = normalize_text(point)
        if len(cleaned) > 1 and cleaned in normalized:
            covered.append(point)
    return covered


def _version_passes(check: VersionCheck, mode: QcMode, thresholds: QcThresholds) -> bool:
    if not thresholds.min_length_ratio <= check.length_ratio <= thresholds.max_length_ratio:
        return False
    if check.style_similarity < thresholds.min_style_similarity:
        return False
    if check.structure_match_rate < thresholds.min_structure_match_rate:
        return False
    if check.forbidden_hits:
        return False
    if mode == "product_adapt" and len(check.selling_points_covered) < thresholds.min_selling_points_per_variant:
        return False
    return True


def evaluate_quality(
    mode: QcMode,
    source_text: str,
    versions: Sequence[str],
    forbidden_words: Sequence[str] | None = None,
    selling_points: Sequence[str] | None = None,
    thresholds: QcThresholds | None = None,
) -> QcReport:
    thresholds = thresholds or QcThresholds()
    forbidden_words = forbidden_words or []
    selling_points = selling_points or []
    source_length = max(len(source_text), 1)

    checks: list[VersionCheck] = []
    for index, version in enumerate(versions):
        check = VersionCheck(
            index=index,
            text_length=len(version),
            length_ratio=round(len(version) / source_length, 4),
            style_similarity=style_similarity(source_text, version),
            structure_match_rate=structure_match_rate(source_text, version),
            forbidden_hits=find_forbidden_hits(version, forbidden_words),
            selling_points_covered=find_covered_selling_points(version, selling_points),
        )
        check.passed = _version_passes(check, mode, thresholds)
        checks.append(check)

    if mode == "product_adapt":
        covered_anywhere = {point for check in checks for point in check.selling_points_covered}
        all_covered = all(point in covered_anywhere for point in selling_points)
    else:
        all_covered = True

    return QcReport(
        mode=mode,
        source_length=source_length,
        version_checks=checks,
        all_selling_points_covered=all_covered,
        overall_passed=all(check.passed for check in checks) and all_covered,
        thresholds=thresholds,
    )
