from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional


class Lane(str, Enum):
    PRIMARY = "primary"
    COUNTERPART = "counterpart"

    @property
    def other(self) -> "Lane":
        return Lane.COUNTERPART if self is Lane.PRIMARY else Lane.PRIMARY


@dataclass(frozen=True)
class Utterance:
    """
    One recorded segment submitted to the turn pipeline.
    audio: WAV bytes (mono PCM16). Empty when `text` carries typed input.
    """
    audio: bytes
    lane: Lane
    language: str
    session_id: int = 0
    duration_sec: float = 0.0
    mime_type: str = "audio/wav"
    text: Optional[str] = None  # already transcribed, skips the transcription stage


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    confidence: Optional[float] = None
    language_warning: Optional[str] = None


@dataclass(frozen=True)
class TranslationRequest:
    text: str
    source_lang: str = "en"
    target_lang: str = "ky"
    # Languages selected for both lanes, e.g. {"primary": "en", "counterpart": "ky"}
    selection_context: Optional[Mapping[str, str]] = None


@dataclass(frozen=True)
class TranslationResult:
    source_text: str
    translated_text: str
    provider: str


@dataclass(frozen=True)
class SpeechRequest:
    text: str
    voice: str = "alloy"
    format: str = "wav"
    speed: float = 1.0
