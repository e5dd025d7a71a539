from __future__ import annotations

import numpy as np
import pytest

from parley.audio.vad import EnergyVAD, pcm16_rms
from parley.audio.wav import pcm16_duration, pcm16_to_wav, wav_duration, wav_to_samples


def test_pcm16_rms() -> None:
    assert pcm16_rms(b"") == 0.0
    loud = np.full(160, 1000, dtype=np.int16).tobytes()
    assert pcm16_rms(loud) == pytest.approx(1000.0)


def test_energy_vad_threshold() -> None:
    vad = EnergyVAD(rms_threshold=500.0)
    assert vad.is_speech(np.full(160, 1000, dtype=np.int16).tobytes())
    assert not vad.is_speech(np.zeros(160, dtype=np.int16).tobytes())
    with pytest.raises(ValueError):
        EnergyVAD(rms_threshold=-1)


def test_wav_helpers() -> None:
    pcm = np.arange(-800, 800, 1, dtype=np.int16).tobytes()
    payload = pcm16_to_wav(pcm, 16000)
    assert payload.startswith(b"RIFF")
    assert wav_duration(payload) == pytest.approx(0.1)
    assert pcm16_duration(pcm, 16000) == pytest.approx(0.1)

    samples, rate = wav_to_samples(payload)
    assert rate == 16000
    assert samples.shape == (1600, 1)
    assert samples[0, 0] == -800
