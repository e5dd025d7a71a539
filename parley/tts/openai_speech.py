from __future__ import annotations

import logging
from typing import Any

from parley.contracts import SpeechRequest
from parley.tts.base import SpeechSynthesizer

logger = logging.getLogger(__name__)

_FORMATS = ("wav", "mp3", "opus", "aac", "flac", "pcm")


class OpenAISpeechSynthesizer(SpeechSynthesizer):
    """Text-to-speech through the OpenAI speech endpoint (e.g. gpt-4o-mini-tts)."""

    def __init__(self, client: Any, model: str = "gpt-4o-mini-tts") -> None:
        self.client = client
        self.model = model

    @property
    def name(self) -> str:
        return "openai"

    def synthesize(self, req: SpeechRequest) -> bytes:
        text = (req.text or "").strip()
        if not text:
            return b""
        fmt = req.format if req.format in _FORMATS else "wav"
        # The endpoint accepts 0.25..4.0.
        speed = max(0.25, min(4.0, float(req.speed)))

        result = self.client.audio.speech.create(
            model=self.model,
            voice=req.voice,
            input=text,
            response_format=fmt,
            speed=speed,
        )

        # openai v1 returns bytes in .content or .read(); handle both
        audio = getattr(result, "content", None)
        if audio is None and hasattr(result, "read"):
            audio = result.read()
        audio = bytes(audio or b"")
        if not audio:
            logger.warning("synthesize_empty", extra={"model": self.model, "voice": req.voice})
        else:
            logger.info(
                "synthesize_done",
                extra={"model": self.model, "voice": req.voice, "format": fmt, "bytes": len(audio)},
            )
        return audio
