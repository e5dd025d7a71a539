from __future__ import annotations
import os
from typing import Any, Optional
from .base import Transcriber
from .faster_whisper_local import FasterWhisperTranscriber
from .openai_whisper import OpenAIWhisperTranscriber

def get_transcriber(
    provider: str | None = None,
    *,
    client: Optional[Any] = None,
    model: str = "whisper-1",
    local_model: str = "small",
) -> Transcriber:
    provider = (provider or os.getenv("PARLEY_TRANSCRIBER", "openai")).lower().strip()

    if provider == "openai":
        if client is None:
            raise ValueError("openai transcriber needs an OpenAI client")
        return OpenAIWhisperTranscriber(client, model=model)
    if provider == "local":
        return FasterWhisperTranscriber(model_size=local_model)

    raise ValueError(f"Unknown transcriber provider: {provider}")
