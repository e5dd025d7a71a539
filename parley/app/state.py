from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum

from parley.contracts import Lane
from parley.nlp.languages import get_profile


class RuntimeState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    ERROR = "error"


@dataclass
class ConversationContext:
    """Session-wide settings shared by the capture layer and the turn pipeline."""

    primary_language: str = "en"
    counterpart_language: str = "ky"
    voice: str = "alloy"
    speech_rate: float = 1.0
    audio_format: str = "wav"
    identity: str = "anonymous"
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.set_languages(self.primary_language, self.counterpart_language)

    def language_for(self, lane: Lane) -> str:
        with self._lock:
            return self.primary_language if lane is Lane.PRIMARY else self.counterpart_language

    def selection(self) -> dict[str, str]:
        with self._lock:
            return {
                Lane.PRIMARY.value: self.primary_language,
                Lane.COUNTERPART.value: self.counterpart_language,
            }

    def set_languages(self, primary: str, counterpart: str) -> None:
        primary = (primary or "").strip().lower()
        counterpart = (counterpart or "").strip().lower()
        for code in (primary, counterpart):
            if get_profile(code) is None:
                raise ValueError(f"Unsupported language: {code!r}")
        with self._lock:
            self.primary_language = primary
            self.counterpart_language = counterpart


@dataclass
class RuntimeStateTracker:
    state: RuntimeState = RuntimeState.STOPPED
    last_error: str | None = None

    def set_running(self) -> None:
        self.state = RuntimeState.RUNNING
        self.last_error = None

    def set_stopped(self) -> None:
        self.state = RuntimeState.STOPPED

    def set_error(self, detail: str) -> None:
        self.state = RuntimeState.ERROR
        self.last_error = detail
