# parley/nlp/prompts.py
from __future__ import annotations

from typing import Mapping, Optional

from parley.nlp.languages import get_profile

WRONG_LANGUAGE_SENTINEL = "WRONG_LANGUAGE_DETECTED:"


def _label(code: Optional[str], fallback: str) -> str:
    if not code:
        return fallback
    profile = get_profile(code)
    return profile.label if profile is not None else code


def transcription_prompt(language: str) -> str:
    profile = get_profile(language)
    if profile is None:
        return "This is speech that needs to be transcribed accurately."
    return profile.prompt_for_transcription()


def translation_system_prompt(
    target: str,
    source: Optional[str] = None,
    selection_context: Optional[Mapping[str, str]] = None,
) -> str:
    target_name = _label(target, target)
    source_name = _label(source, "the source language")

    lines = [
        "You are a professional translator for a real-time translation app. "
        f"Translate the given text from {source_name} to {target_name}.",
    ]

    if selection_context:
        pair = " and ".join(_label(code, code) for code in selection_context.values())
        lines.append(f"The conversation is between speakers of {pair}.")

    profile = get_profile(target)
    if profile is not None and profile.translation_hints:
        lines.append("")
        lines.append(f"CRITICAL FOR {profile.name.upper()} TRANSLATION:")
        lines.extend(f"- {hint}" for hint in profile.translation_hints)

    lines.extend(
        [
            "",
            "IMPORTANT RULES:",
            f"1. ONLY translate to {target_name}. Do not answer in any other language.",
            "2. Maintain the original meaning and context; the speaker may have a strong accent, "
            "so translate what they meant.",
            f"3. Use natural, fluent {target_name} expressions suitable for live conversation.",
            f"4. If the text is already entirely in {target_name}, return an empty string.",
            "5. Preserve proper names, numbers, and technical terms when appropriate.",
            "6. Return ONLY the translated text, no explanations or additional text.",
        ]
    )
    return "\n".join(lines)
