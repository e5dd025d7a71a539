from __future__ import annotations

import io
import logging
from typing import Any, Optional

from parley.asr.base import Transcriber
from parley.contracts import TranscriptionResult
from parley.nlp.languages import get_profile

logger = logging.getLogger(__name__)

_EXTENSIONS = (
    ("mp4", "mp4"),
    ("wav", "wav"),
    ("m4a", "m4a"),
    ("mp3", "mp3"),
    ("ogg", "ogg"),
    ("webm", "webm"),
    ("flac", "flac"),
    ("mpeg", "mpeg"),
)


def filename_for(mime_type: str) -> str:
    mime = (mime_type or "").lower()
    for needle, ext in _EXTENSIONS:
        if needle in mime:
            return f"audio.{ext}"
    return "audio.wav"


class OpenAIWhisperTranscriber(Transcriber):
    """Speech-to-text through the OpenAI audio transcription endpoint."""

    def __init__(self, client: Any, model: str = "whisper-1", temperature: float = 0.0) -> None:
        self.client = client
        self.model = model
        self.temperature = temperature

    @property
    def name(self) -> str:
        return "openai"

    def transcribe(
        self,
        audio: bytes,
        *,
        language: Optional[str] = None,
        prompt: Optional[str] = None,
        mime_type: str = "audio/wav",
    ) -> TranscriptionResult:
        if not audio:
            return TranscriptionResult(text="", confidence=0.0)

        buf = io.BytesIO(audio)
        buf.name = filename_for(mime_type)  # the SDK infers the format from the name

        params: dict[str, Any] = {
            "model": self.model,
            "file": buf,
            "temperature": self.temperature,
            "response_format": "json",
        }
        profile = get_profile(language)
        if language and (profile is None or profile.force_language_hint):
            params["language"] = language
        if prompt:
            params["prompt"] = prompt

        result = self.client.audio.transcriptions.create(**params)
        text = getattr(result, "text", None)
        if text is None and isinstance(result, dict):
            text = result.get("text")
        text = (text or "").strip()
        logger.info(
            "transcribe_done",
            extra={"model": self.model, "language": language, "chars": len(text), "bytes": len(audio)},
        )
        # The endpoint reports no confidence; the pipeline scores the text itself.
        return TranscriptionResult(text=text, confidence=None)
