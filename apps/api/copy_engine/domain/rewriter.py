"""Deterministic, seed-driven text mutation used when no model drafts are available.

Every function here is pure: the same input and seed always yield the same
output, which keeps regeneration attempts reproducible and testable.
"""

from __future__ import annotations

from collections.abc import Sequence
import math
import re
from typing import TypeVar

from copy_engine.domain.framework import CopyFramework, compose_framework, extract_framework

T = TypeVar("T")

RHYTHM_WORDS = ["其实", "说白了", "关键是", "更重要的是", "换句话说"]
CONNECTOR_WORDS = ["所以", "然后", "同时", "而且", "最后"]

SYNONYM_MAP: dict[str, list[str]] = {
    "真的": ["确实", "的确", "实打实"],
    "马上": ["立刻", "现在就", "当下"],
    "非常": ["很", "特别", "相当"],
    "大家": ["你们", "很多人", "大多数人"],
    "问题": ["困扰", "痛点", "难题"],
    "方法": ["做法", "方案", "路径"],
    "简单": ["省心", "不复杂", "容易上手"],
}

MICRO_REWRITE_MAP: dict[str, list[str]] = {
    "昨天": ["前一天", "前阵子", "那天"],
    "随手": ["顺手", "顺手就", "随手就"],
    "立马": ["马上", "立刻", "立马就"],
    "马上": ["立马", "立刻", "马上就"],
    "真的": ["确实", "真的挺", "真的是"],
    "特别": ["挺", "蛮", "比较"],
    "适合": ["合适", "对味", "适配"],
    "关键": ["重点", "要点", "关键点"],
    "现在": ["这会", "当下", "眼下"],
    "看看": ["看下", "瞅下", "瞧瞧"],
    "真实": ["真是", "确实", "真正"],
    "传统": ["老式", "传统式", "老法子"],
    "吸满": ["吸饱", "裹满", "沾满"],
    "入口先是": ["入口先有", "入口先尝", "入口先感到"],
    "回味还有": ["回味仍有", "回口还有", "回味还留着"],
    "最绝的是": ["更绝的是", "最妙的是", "最出彩的是"],
    "往面里一放": ["往面里一加", "放进面里", "往面里一拌"],
    "舒服": ["舒服些", "舒服点", "舒坦"],
}

# Ordered single-word substitutions tried when no table entry applies.
_WORD_SUBSTITUTIONS: list[tuple[str, list[str]]] = [
    ("这个", ["这款", "这瓶"]),
    ("它", ["这", "这款"]),
    ("很", ["挺", "蛮"]),
    ("真", ["确实", "的确"]),
    ("就", ["就会", "就能"]),
]

MICRO_FALLBACK_INSERT = ["就", "还", "也"]
_PERIOD_FALLBACK_INSERT = ["确实", "其实", "说实话"]

LENGTH_FILLER = "这点很关键。照着做就行。整体节奏会更顺。"
MIN_LENGTH_RATIO = 0.9
MAX_LENGTH_RATIO = 1.1

_PLATFORM_TOKENS = {"抖音", "douyin"}
_SENTENCE_SPLIT = re.compile(r"(?<=[。！？!?])")
_REPEATED_COMMA = re.compile(r"，，+")
_REWRITE_NOISE = re.compile(r"[。！？!?、，,\s]")
_TERMINAL_PUNCTUATION = re.compile(r"[。！？!?]$")
_WHITESPACE = re.compile(r"\s+")
_TRAILING_PLATFORM_TAG = re.compile(r"(?:[。！？!?，,\s]*(?:抖音|douyin)[。！？!?，,\s]*)+$", re.IGNORECASE)
_PRODUCT_REFERENCE = re.compile(r"这|它|这个|这件事")


def pick(options: Sequence[T], seed: int) -> T:
    return options[seed % len(options)]


def pick_different(options: Sequence[str], original: str, seed: int) -> str:
    candidates = [item for item in options if item != original]
    if not candidates:
        return original
    return pick(candidates, seed)


def split_sentences(text: str) -> list[str]:
    return [part.strip() for part in _SENTENCE_SPLIT.split(text) if part.strip()]


def apply_synonyms(text: str, seed: int) -> str:
    result = text
    for source_word, replacements in SYNONYM_MAP.items():
        result = result.replace(source_word, pick(replacements, seed))
    return result


def rewrite_segment(segment: str, seed: int) -> str:
    """Swap synonyms and prefix each sentence with a rhythm or connector word."""
    sentences = split_sentences(segment)
    if not sentences:
        return segment

    rewritten: list[str] = []
    for index, sentence in enumerate(sentences):
        current = apply_synonyms(sentence, seed + index)
        prefix_words = RHYTHM_WORDS if index % 2 == 0 else CONNECTOR_WORDS
        current = f"{pick(prefix_words, seed + index)}，{current}"
        rewritten.append(_REPEATED_COMMA.sub("，", current))
    return "".join(rewritten)


def sanitize_by_forbidden_words(text: str, forbidden_words: Sequence[str]) -> str:
    output = text
    for word in forbidden_words:
        if not word.strip():
            continue
        output = output.replace(word, "")
    return output


def length_bounds(source_text: str) -> tuple[int, int]:
    source_length = max(1, len(source_text))
    min_length = math.ceil(source_length * MIN_LENGTH_RATIO)
    max_length = max(min_length, math.floor(source_length * MAX_LENGTH_RATIO))
    return min_length, max_length


def adjust_length_strict(source_text: str, draft: str) -> str:
    """Clamp or pad a draft into ``[ceil(0.9·L), floor(1.1·L)]`` ending on terminal punctuation."""
    min_length, max_length = length_bounds(source_text)
    output = draft.strip()[:max_length]

    while len(output) < min_length:
        remaining = min_length - len(output)
        if remaining <= len(LENGTH_FILLER):
            output += LENGTH_FILLER[:remaining]
            break
        output += LENGTH_FILLER
    output = output[:max_length]

    if output and not _TERMINAL_PUNCTUATION.search(output):
        if len(output) >= max_length:
            output = f"{output[: max(0, max_length - 1)]}。"
        else:
            output += "。"

    output = output[:max_length]
    if len(output) < min_length:
        output = output.ljust(min_length, "。")[:max_length]
    return output


def normalize_versions_for_strict_length(source_text: str, versions: Sequence[str]) -> list[str]:
    return [adjust_length_strict(source_text, version) for version in versions]


def _normalize_for_rewrite(text: str) -> str:
    return _REWRITE_NOISE.sub("", text).lower()


def should_skip_sentence_rewrite(sentence: str) -> bool:
    normalized = _normalize_for_rewrite(sentence)
    if not normalized or normalized in _PLATFORM_TOKENS:
        return True
    return len(normalized) <= 3


def lexically_equal(left: str, right: str) -> bool:
    return _normalize_for_rewrite(left) == _normalize_for_rewrite(right)


def strip_trailing_platform_tag(text: str) -> str:
    """Drop trailing ``抖音``/``douyin`` tags; a text that is nothing but the tag is kept."""
    stripped = _TRAILING_PLATFORM_TAG.sub("", text).strip()
    return stripped or text.strip()


def apply_micro_rewrite(sentence: str, seed: int) -> str:
    """Make one small, meaning-preserving edit to a sentence."""
    if should_skip_sentence_rewrite(sentence):
        return sentence

    output = sentence
    changed = False

    for source_word, replacements in MICRO_REWRITE_MAP.items():
        if source_word in output and source_word not in replacements:
            output = output.replace(source_word, pick_different(replacements, source_word, seed), 1)
            changed = True
            break

    if not changed:
        for source_word, replacements in _WORD_SUBSTITUTIONS:
            if source_word in output:
                output = output.replace(source_word, pick(replacements, seed), 1)
                changed = True
                break

    if not changed:
        if "，" in output:
            output = output.replace("，", f"，{pick(MICRO_FALLBACK_INSERT, seed)}", 1)
            changed = True
        elif "。" in output:
            output = output.replace("。", f"，{pick(_PERIOD_FALLBACK_INSERT, seed)}。", 1)
            changed = True

    if not changed:
        return sentence
    return _REPEATED_COMMA.sub("，", output)


def mutate_all_sentences(text: str, variant_index: int) -> str:
    sentences = split_sentences(text.strip())
    if not sentences:
        return text.strip()
    return "".join(
        apply_micro_rewrite(sentence, variant_index * 31 + sentence_index * 7 + 11)
        for sentence_index, sentence in enumerate(sentences)
    )


def enforce_sentence_level_differences(source_text: str, versions: Sequence[str]) -> list[str]:
    """Ensure no rewritable source sentence survives verbatim at its position in any version."""
    source_sentences = split_sentences(source_text.strip())
    if not source_sentences:
        return list(versions)

    results: list[str] = []
    for variant_index, version in enumerate(versions):
        current_sentences = split_sentences(version.strip())
        merged: list[str] = []
        for sentence_index, source_sentence in enumerate(source_sentences):
            current = current_sentences[sentence_index] if sentence_index < len(current_sentences) else ""
            current = current or source_sentence
            if should_skip_sentence_rewrite(source_sentence):
                merged.append(source_sentence)
            elif lexically_equal(current, source_sentence):
                merged.append(apply_micro_rewrite(source_sentence, variant_index * 29 + sentence_index * 5 + 3))
            else:
                merged.append(current)
        merged.extend(current_sentences[len(source_sentences) :])
        results.append("".join(merged))
    return results


def _canonical(text: str) -> str:
    return _WHITESPACE.sub("", text)


def ensure_distinct_versions(source_text: str, versions: Sequence[str]) -> list[str]:
    """Re-mutate the source for any version whose whitespace-free form was already produced."""
    seen: set[str] = set()
    results: list[str] = []
    for index, version in enumerate(versions):
        current = version
        for attempt in range(4):
            key = _canonical(current)
            if key not in seen:
                seen.add(key)
                results.append(current)
                break
            current = adjust_length_strict(source_text, mutate_all_sentences(source_text, index + attempt + 1))
        else:
            fallback = adjust_length_strict(source_text, mutate_all_sentences(source_text, index + 9))
            seen.add(f"{_canonical(fallback)}#{index}")
            results.append(fallback)
    return results


def finalize_versions(source_text: str, drafts: Sequence[str], forbidden_words: Sequence[str] = ()) -> list[str]:
    """Strip platform tags, then run drafts through length clamping and sentence and cross-version distinctness.

    Every returned version comes out of ``adjust_length_strict``, so it is within
    the source's length bounds and ends on terminal punctuation.
    """
    source_text = strip_trailing_platform_tag(source_text)
    untagged = [strip_trailing_platform_tag(draft) for draft in drafts]
    sanitized = [sanitize_by_forbidden_words(draft, forbidden_words) for draft in untagged]
    normalized = normalize_versions_for_strict_length(source_text, sanitized)
    sentence_diffed = enforce_sentence_level_differences(source_text, normalized)
    if forbidden_words:
        sentence_diffed = [sanitize_by_forbidden_words(item, forbidden_words) for item in sentence_diffed]
    renormalized = normalize_versions_for_strict_length(source_text, sentence_diffed)
    distinct = ensure_distinct_versions(source_text, renormalized)
    if forbidden_words:
        # Re-mutated fallbacks start from the source and may carry forbidden words again.
        distinct = normalize_versions_for_strict_length(
            source_text,
            [sanitize_by_forbidden_words(item, forbidden_words) for item in distinct],
        )
    # Truncation can expose a tag that sat mid-draft; re-clamp after dropping it.
    return [adjust_length_strict(source_text, strip_trailing_platform_tag(item)) for item in distinct]


def build_high_similarity_rewrite_variants(source_text: str, variant_count: int) -> list[str]:
    """Minimal-edit variants that keep the source's wording; the last-resort rewrite output."""
    cleaned = strip_trailing_platform_tag(source_text)
    variants = [adjust_length_strict(cleaned, mutate_all_sentences(cleaned, index)) for index in range(variant_count)]
    sentence_diffed = enforce_sentence_level_differences(cleaned, variants)
    normalized = normalize_versions_for_strict_length(cleaned, sentence_diffed)
    return ensure_distinct_versions(cleaned, normalized)


def build_rewrite_variants(source_text: str, variant_count: int, seed_base: int) -> list[str]:
    framework = extract_framework(source_text)
    variants: list[str] = []
    for index in range(variant_count):
        seed = seed_base + index * 7
        rewritten = compose_framework(
            CopyFramework(
                hook=rewrite_segment(framework.hook, seed),
                pain_point=rewrite_segment(framework.pain_point, seed + 1),
                solution=rewrite_segment(framework.solution, seed + 2),
                evidence=rewrite_segment(framework.evidence, seed + 3),
                cta=rewrite_segment(framework.cta, seed + 4),
            )
        )
        variants.append(adjust_length_strict(source_text, rewritten))
    return variants


def allocate_selling_points(selling_points: Sequence[str], variant_index: int) -> list[str]:
    if not selling_points:
        return []
    first = selling_points[variant_index % len(selling_points)]
    second = selling_points[(variant_index + 1) % len(selling_points)]
    if first == second:
        return [first]
    return [first, second]


def _adapt_hook(raw_hook: str, product_name: str, target_audience: str) -> str:
    if not raw_hook.strip():
        return f"如果你是{target_audience}，先看下{product_name}。"
    return _PRODUCT_REFERENCE.sub(product_name, raw_hook)


def _adapt_cta(raw_cta: str, product_name: str, cta: str) -> str:
    if cta.strip():
        return cta.strip()
    if not raw_cta.strip():
        return f"想了解{product_name}，现在就试试。"
    return _PRODUCT_REFERENCE.sub(product_name, raw_cta)


def build_product_variants(
    source_text: str,
    *,
    product_name: str,
    category: str,
    selling_points: Sequence[str],
    target_audience: str,
    cta: str,
    variant_count: int,
    seed_base: int,
) -> list[str]:
    """Re-target the source's narrative at a product, two selling points per variant."""
    framework = extract_framework(source_text)
    solution_base = framework.solution or framework.pain_point or framework.hook
    evidence_base = framework.evidence or framework.solution or framework.pain_point

    variants: list[str] = []
    for index in range(variant_count):
        point_text = "，".join(allocate_selling_points(selling_points, index))
        seed = seed_base + index * 11
        adapted = compose_framework(
            CopyFramework(
                hook=rewrite_segment(_adapt_hook(framework.hook, product_name, target_audience), seed),
                pain_point=rewrite_segment(
                    f"{framework.pain_point} 尤其是{target_audience}，更在意效率和体验。",
                    seed + 1,
                ),
                solution=rewrite_segment(
                    f"{solution_base} 如果换成{product_name}这类{category}，关键是{point_text}。",
                    seed + 2,
                ),
                evidence=rewrite_segment(
                    f"{evidence_base} 实际落地时，{product_name}的优势是{point_text}，整体更顺手。",
                    seed + 3,
                ),
                cta=rewrite_segment(_adapt_cta(framework.cta, product_name, cta), seed + 4),
            )
        )
        variants.append(adjust_length_strict(source_text, adapted))
    return variants
