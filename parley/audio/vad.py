from __future__ import annotations

import numpy as np


def pcm16_rms(pcm16: bytes) -> float:
    """Return RMS energy for little-endian int16 PCM bytes."""
    if len(pcm16) < 2:
        return 0.0
    x = np.frombuffer(pcm16[: len(pcm16) - len(pcm16) % 2], dtype=np.int16).astype(np.float32)
    if not x.size:
        return 0.0
    return float(np.sqrt(np.mean(x * x)))


class EnergyVAD:
    def __init__(self, rms_threshold: float = 250.0) -> None:
        if rms_threshold < 0:
            raise ValueError("rms_threshold must be >= 0")
        self.rms_threshold = float(rms_threshold)

    def is_speech(self, pcm16: bytes, channels: int = 1) -> bool:
        return pcm16_rms(pcm16) >= self.rms_threshold
