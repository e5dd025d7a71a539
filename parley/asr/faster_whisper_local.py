from __future__ import annotations

import io
import math
from typing import List, Optional

from parley.asr.base import Transcriber
from parley.contracts import TranscriptionResult
from parley.nlp.languages import get_profile


class FasterWhisperTranscriber(Transcriber):
    """Offline transcription with faster-whisper. The model loads lazily on first use."""

    def __init__(
        self,
        *,
        model_size: str = "small",
        device: str = "cpu",
        compute_type: str = "int8",
        beam_size: int = 5,
    ) -> None:
        self.model_size = model_size
        self.device = device
        self.compute_type = compute_type
        self.beam_size = beam_size
        self._model = None

    @property
    def name(self) -> str:
        return "local"

    def _get_model(self):
        if self._model is None:
            from faster_whisper import WhisperModel

            self._model = WhisperModel(
                self.model_size,
                device=self.device,
                compute_type=self.compute_type,
            )
        return self._model

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

        model = self._get_model()
        profile = get_profile(language)
        forced = language if (language and (profile is None or profile.force_language_hint)) else None

        segments, _info = model.transcribe(
            io.BytesIO(audio),
            language=forced,
            beam_size=self.beam_size,
            temperature=0.0,
            initial_prompt=prompt,
            vad_filter=False,
            condition_on_previous_text=False,
        )

        texts: List[str] = []
        logprobs: List[float] = []
        for s in segments:
            text = (s.text or "").strip()
            if not text:
                continue
            texts.append(text)
            logprobs.append(float(s.avg_logprob))

        if not texts:
            return TranscriptionResult(text="", confidence=0.0)
        confidence = math.exp(sum(logprobs) / len(logprobs))
        return TranscriptionResult(text=" ".join(texts), confidence=max(0.0, min(1.0, confidence)))
