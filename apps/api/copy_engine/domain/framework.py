"""Five-slot narrative decomposition of short-video copy."""

from __future__ import annotations

from dataclasses import dataclass
import re

_SENTENCE_SPLIT = re.compile(r"(?<=[。！？!?])")
_LINE_SPLIT = re.compile(r"\n+")
_WHITESPACE = re.compile(r"\s+")


@dataclass(slots=True, frozen=True)
class CopyFramework:
    hook: str = ""
    pain_point: str = ""
    solution: str = ""
    evidence: str = ""
    cta: str = ""

    def slots(self) -> tuple[str, str, str, str, str]:
        return (self.hook, self.pain_point, self.solution, self.evidence, self.cta)


def split_sentences(text: str) -> list[str]:
    sentences: list[str] = []
    for line in _LINE_SPLIT.split(text):
        for part in _SENTENCE_SPLIT.split(line):
            normalized = _WHITESPACE.sub(" ", part).strip()
            if normalized:
                sentences.append(normalized)
    return sentences


def _fallback(candidate: str, fallback: str) -> str:
    return candidate.strip() if candidate.strip() else fallback.strip()


def extract_framework(source_text: str) -> CopyFramework:
    """Map sentences onto hook / pain point / solution / evidence / cta.

    First sentence is the hook and the last (when there are at least two) the
    call to action; the middle feeds pain point, solution and evidence in
    order. Empty middle slots fall back to the whole middle text and an empty
    cta falls back to the hook.
    """
    sentences = split_sentences(source_text)
    if not sentences:
        return CopyFramework()

    hook = sentences[0]
    cta = sentences[-1] if len(sentences) > 1 else ""
    middle = sentences[1 : max(1, len(sentences) - 1)]

    pain_point = middle[0] if len(middle) > 0 else ""
    solution = middle[1] if len(middle) > 1 else ""
    evidence = " ".join(middle[2:])
    merged_middle = " ".join(middle)

    return CopyFramework(
        hook=_fallback(hook, source_text),
        pain_point=_fallback(pain_point, merged_middle),
        solution=_fallback(solution, merged_middle),
        evidence=_fallback(evidence, merged_middle),
        cta=_fallback(cta, hook),
    )


def compose_framework(framework: CopyFramework) -> str:
    return "\n".join(slot.strip() for slot in framework.slots() if slot.strip())
