from __future__ import annotations

import io
import wave

import numpy as np


def pcm16_to_wav(pcm16: bytes, sample_rate: int, channels: int = 1) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm16)
    return buf.getvalue()


def pcm16_duration(pcm16: bytes, sample_rate: int, channels: int = 1) -> float:
    if sample_rate <= 0 or channels <= 0:
        return 0.0
    return len(pcm16) / (2 * channels * sample_rate)


def wav_to_samples(payload: bytes) -> tuple[np.ndarray, int]:
    """Decode a PCM16 WAV payload into an int16 array shaped (frames, channels)."""
    with wave.open(io.BytesIO(payload), "rb") as wf:
        if wf.getsampwidth() != 2:
            raise ValueError("only 16-bit PCM WAV is supported")
        channels = wf.getnchannels()
        sample_rate = wf.getframerate()
        frames = wf.readframes(wf.getnframes())
    samples = np.frombuffer(frames, dtype=np.int16)
    return samples.reshape(-1, channels), sample_rate


def wav_duration(payload: bytes) -> float:
    with wave.open(io.BytesIO(payload), "rb") as wf:
        rate = wf.getframerate()
        return wf.getnframes() / rate if rate else 0.0
