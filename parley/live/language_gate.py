from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from parley.nlp.classifier import apply_corrections, classify
from parley.nlp.languages import warning_for
from parley.nlp.prompts import WRONG_LANGUAGE_SENTINEL

logger = logging.getLogger(__name__)

# Whisper emits these on silent or near-silent input.
HALLUCINATIONS = frozenset({"thank you for watching", "thanks for watching"})

ERROR_TOKENS = frozenset({"null", "undefined", "error", "failed", "timeout"})
ERROR_PHRASES = (
    "processing error",
    "internal server error",
    "error occurred",
    "system error",
    "translation failed",
    "api error",
    "service unavailable",
    "connection failed",
    "error error",
    "failed failed",
    "timeout timeout",
)

_PUNCT = re.compile(r"[^\w\s']+", flags=re.UNICODE)


class DegenerateTranscriptError(ValueError):
    """The transcript looks like a service error or a runaway repetition."""

    def __init__(self, reason: str, text: str) -> None:
        super().__init__(f"degenerate transcript ({reason})")
        self.reason = reason
        self.text = text


@dataclass(frozen=True)
class GateResult:
    text: str
    warning: Optional[str] = None
    no_speech: bool = False
    reason: str = ""


def _normalize(text: str) -> str:
    return " ".join(_PUNCT.sub(" ", text.lower()).split())


def degenerate_reason(text: str) -> Optional[str]:
    normalized = _normalize(text)
    if not normalized:
        return None
    if normalized in ERROR_TOKENS:
        return "error_token"
    words = normalized.split()
    # A phrase only counts when its occurrences make up most of the transcript.
    for phrase in ERROR_PHRASES:
        hits = len(re.findall(rf"\b{phrase}\b", normalized))
        if hits and hits * len(phrase.split()) * 2 > len(words):
            return f"error_phrase:{phrase}"
    if len(text.strip()) >= 10 and len(words) >= 3:
        head = " ".join(words[:3])
        rest = " ".join(words[3:])
        if rest.count(head) >= 2:
            return "repetition"
    return None


def strip_sentinel(text: str) -> tuple[str, bool]:
    if WRONG_LANGUAGE_SENTINEL not in text:
        return text, False
    return " ".join(text.replace(WRONG_LANGUAGE_SENTINEL, " ").split()), True


def gate(text: str, expected: str) -> GateResult:
    """
    Validate a transcript before translation.

    A language mismatch, whether flagged by the transcription service through the
    sentinel or by the local classifier, only produces a warning. Degenerate
    output raises DegenerateTranscriptError.
    """
    cleaned, flagged = strip_sentinel((text or "").strip())
    warning = warning_for(expected) if flagged else None

    if not cleaned or _normalize(cleaned) in HALLUCINATIONS:
        return GateResult(text="", warning=warning, no_speech=True, reason="no_speech")

    reason = degenerate_reason(cleaned)
    if reason is not None:
        raise DegenerateTranscriptError(reason, cleaned)

    check = classify(cleaned, expected)
    if check.mismatch:
        logger.info("language_mismatch", extra={"expected": expected, "reason": check.reason})
        if warning is None:
            warning = check.message

    corrected = apply_corrections(cleaned, expected)
    return GateResult(
        text=corrected,
        warning=warning,
        reason="sentinel" if flagged else check.reason,
    )
