# parley/nlp/confidence.py
from __future__ import annotations

import re
from typing import Iterable, Optional

from parley.nlp.languages import all_keywords

BASELINE = 0.8
TURN_CONFIDENCE_FLOOR = 0.9
MIN_TRANSCRIPTION_CONFIDENCE = 0.3

_TERMINAL_PUNCT = re.compile(r"[.!?。！？]")


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def score(text: str, stopwords: Optional[Iterable[str]] = None) -> float:
    """
    Heuristic trust score for a transcript, in [0, 1].

    Not a calibrated probability: longer, punctuated, capitalised and varied text
    never scores lower than degenerate text.
    """
    text = (text or "").strip()
    if not text:
        return 0.0

    confidence = BASELINE

    length = len(text)
    if length < 5:
        confidence -= 0.3
    elif length < 10:
        confidence -= 0.2
    elif length > 50:
        confidence += 0.1

    words = text.split()
    if len(words) < 2:
        confidence -= 0.2
    elif len(words) > 10:
        confidence += 0.1

    if _TERMINAL_PUNCT.search(text):
        confidence += 0.1

    if text[0].isupper() and any(ch.islower() for ch in text):
        confidence += 0.1

    lowered = [w.lower() for w in words]
    if len(set(lowered)) / len(lowered) < 0.5:
        confidence -= 0.2

    closed_class = frozenset(stopwords) if stopwords is not None else all_keywords()
    bare = [w.strip(".,!?;:\"'()") for w in lowered]
    common = sum(1 for w in bare if w in closed_class)
    if common / len(bare) > 0.3:
        confidence += 0.1

    return _clamp(confidence)


def translation_confidence(original: str, translated: str) -> float:
    if not original or not translated:
        return 0.0

    original_words = original.split()
    translated_words = translated.split()
    if not original_words or not translated_words:
        return 0.0

    ratio = min(len(original_words), len(translated_words)) / max(
        len(original_words), len(translated_words)
    )
    has_content = len(original_words) > 2 and len(translated_words) > 2

    confidence = 0.85
    if has_content and ratio > 0.5:
        confidence = 0.95
    elif has_content and ratio > 0.2:
        confidence = 0.9
    elif has_content:
        confidence = 0.8

    if abs(len(original) - len(translated)) > len(original) * 0.7:
        confidence *= 0.9
    return _clamp(confidence)


def turn_confidence(transcription: Optional[float], similarity: float) -> float:
    base = max(transcription or 0.0, MIN_TRANSCRIPTION_CONFIDENCE)
    return _clamp(max(min(base, similarity), TURN_CONFIDENCE_FLOOR))
