from __future__ import annotations

import numpy as np


def _first_channel(pcm16: bytes, channels: int) -> bytes:
    if channels <= 1:
        return pcm16
    samples = np.frombuffer(pcm16, dtype=np.int16)
    return samples[::channels].tobytes()


class WebRtcVad:
    """
    Fragment-level activity via the WebRTC VAD.

    The detector only accepts 10/20/30 ms frames of 16-bit mono PCM at
    8/16/32/48 kHz, so a capture fragment is cut into frames and counts as
    speech when at least `min_speech_ratio` of its frames do.
    """

    def __init__(
        self,
        sr: int = 16000,
        frame_ms: int = 20,
        aggressiveness: int = 2,
        min_speech_ratio: float = 0.3,
    ):
        if frame_ms not in (10, 20, 30):
            raise ValueError("frame_ms must be 10/20/30")
        if sr not in (8000, 16000, 32000, 48000):
            raise ValueError("sr must be one of 8000/16000/32000/48000")
        if not 0.0 < min_speech_ratio <= 1.0:
            raise ValueError("min_speech_ratio must be in (0, 1]")
        self.sr = sr
        self.frame_ms = frame_ms
        self.frame_bytes = int(sr * frame_ms / 1000) * 2  # int16 => 2 bytes
        self.min_speech_ratio = min_speech_ratio
        import webrtcvad

        self.vad = webrtcvad.Vad(aggressiveness)

    def is_speech(self, pcm16: bytes, channels: int = 1) -> bool:
        mono = _first_channel(pcm16, channels)
        total = 0
        voiced = 0
        for start in range(0, len(mono) - self.frame_bytes + 1, self.frame_bytes):
            total += 1
            if self.vad.is_speech(mono[start : start + self.frame_bytes], self.sr):
                voiced += 1
        if total == 0:
            return False
        return voiced / total >= self.min_speech_ratio
