# parley/nlp/classifier.py
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Optional

from parley.nlp.languages import (
    CYRILLIC,
    HAN,
    HANGUL,
    LANGUAGES,
    LATIN,
    LanguageProfile,
    get_profile,
    languages_for_script,
)

_SCRIPT_PATTERNS: Dict[str, "re.Pattern[str]"] = {
    LATIN: re.compile(r"[A-Za-zÀ-ɏ]"),
    CYRILLIC: re.compile(r"[Ѐ-ԯ]"),
    HANGUL: re.compile(r"[가-힣ᄀ-ᇿ㄰-㆏]"),
    HAN: re.compile(r"[一-鿿㐀-䶿]"),
}

_TOKEN = re.compile(r"[\w'ʻ’]+", flags=re.UNICODE)


@dataclass(frozen=True)
class LanguageCheck:
    mismatch: bool
    message: str
    script: Optional[str]
    reason: str


def script_counts(text: str) -> Dict[str, int]:
    return {script: len(pat.findall(text or "")) for script, pat in _SCRIPT_PATTERNS.items()}


def dominant_script(text: str) -> Optional[str]:
    """Script with the most letters in `text`, or None when it has no letters we know."""
    counts = script_counts(text)
    best = max(counts, key=lambda s: counts[s])
    if counts[best] == 0:
        return None
    return best


@lru_cache(maxsize=None)
def _keyword_set(code: str) -> frozenset:
    return frozenset(k.lower() for k in LANGUAGES[code].keywords)


def keyword_hits(text: str, profile: LanguageProfile) -> int:
    lowered = (text or "").lower()
    if not lowered:
        return 0
    if profile.substring_keywords:
        return sum(1 for k in _keyword_set(profile.code) if k in lowered)
    tokens = set(_TOKEN.findall(lowered))
    return len(tokens & _keyword_set(profile.code))


def classify(text: str, expected: str) -> LanguageCheck:
    """
    Heuristic language gate.

    Mismatch when the dominant script is foreign to the expected language and none of
    its keywords appear, or when the script fits but only other languages' keywords
    appear. No keyword evidence at all is not a mismatch.
    """
    profile = get_profile(expected)
    cleaned = (text or "").strip()
    if profile is None or not cleaned:
        return LanguageCheck(mismatch=False, message="", script=None, reason="unchecked")

    script = dominant_script(cleaned)
    if script is None:
        return LanguageCheck(mismatch=False, message="", script=None, reason="no_letters")

    if keyword_hits(cleaned, profile) > 0:
        return LanguageCheck(mismatch=False, message="", script=script, reason="expected_keywords")

    if script != profile.script:
        return LanguageCheck(
            mismatch=True,
            message=profile.warning_message,
            script=script,
            reason=f"script:{script}",
        )

    foreign = [
        code
        for code, other in LANGUAGES.items()
        if code != profile.code and keyword_hits(cleaned, other) > 0
    ]
    if foreign:
        return LanguageCheck(
            mismatch=True,
            message=profile.warning_message,
            script=script,
            reason="keywords:" + ",".join(sorted(foreign)),
        )
    return LanguageCheck(mismatch=False, message="", script=script, reason="no_evidence")


def is_in_language(text: str, code: str) -> bool:
    """Positive evidence that `text` is already written in language `code`."""
    profile = get_profile(code)
    cleaned = (text or "").strip()
    if profile is None or not cleaned:
        return False
    if dominant_script(cleaned) != profile.script:
        return False
    if keyword_hits(cleaned, profile) > 0:
        return True
    # Script owned by a single language is evidence enough.
    return len(languages_for_script(profile.script)) == 1


def apply_corrections(text: str, expected: str) -> str:
    profile = get_profile(expected)
    if profile is None or not profile.corrections:
        return text
    out = text
    for wrong, right in profile.corrections:
        out = re.sub(re.escape(wrong), right, out, flags=re.IGNORECASE)
    return out
