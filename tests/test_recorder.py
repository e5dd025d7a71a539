from __future__ import annotations

import io
import wave
from typing import Callable

import pytest

from parley.audio.mic import MicError
from parley.audio.recorder import CaptureState, RecordingController
from parley.contracts import Lane

SPEECH = b"\x10\x27" * 160
SILENCE = b"\x00\x00" * 160


class _FakeHandle:
    def __init__(self) -> None:
        self.sample_rate = 16000
        self.channels = 1
        self.close_calls = 0

    def close(self) -> None:
        self.close_calls += 1


class _FakeMic:
    def __init__(self, error: MicError | None = None) -> None:
        self.error = error
        self.handles: list[_FakeHandle] = []
        self.callback: Callable[[bytes], None] | None = None

    def open(self, callback: Callable[[bytes], None]) -> _FakeHandle:
        if self.error is not None:
            raise self.error
        self.callback = callback
        handle = _FakeHandle()
        self.handles.append(handle)
        return handle

    def feed(self, data: bytes) -> None:
        assert self.callback is not None
        self.callback(data)


class _Detector:
    def is_speech(self, pcm16: bytes, channels: int = 1) -> bool:
        return pcm16 == SPEECH


class _FakeTimer:
    def __init__(self, interval: float, fn, args: tuple) -> None:
        self.interval = interval
        self.fn = fn
        self.args = args
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.fn(*self.args)


class _Timers:
    def __init__(self) -> None:
        self.created: list[_FakeTimer] = []

    def __call__(self, interval: float, fn, args: tuple) -> _FakeTimer:
        timer = _FakeTimer(interval, fn, args)
        self.created.append(timer)
        return timer

    def live(self, interval: float) -> list[_FakeTimer]:
        return [t for t in self.created if t.interval == interval and t.started and not t.cancelled]


def _controller(mic: _FakeMic, timers: _Timers, **kwargs) -> tuple[RecordingController, list, list]:
    utterances: list = []
    messages: list = []
    ctrl = RecordingController(
        mic,
        _Detector(),
        idle_timeout=90.0,
        silence_timeout=2.5,
        flush_interval=5.0,
        on_utterance=utterances.append,
        on_message=messages.append,
        timer_factory=timers,
        **kwargs,
    )
    return ctrl, utterances, messages


def test_silence_then_manual_stop_discards_quietly() -> None:
    mic, timers = _FakeMic(), _Timers()
    ctrl, utterances, messages = _controller(mic, timers)

    assert ctrl.start(Lane.PRIMARY, "en")
    for _ in range(20):
        mic.feed(SILENCE)
    assert ctrl.stop() is None

    assert ctrl.state is CaptureState.IDLE
    assert utterances == []
    assert messages == []
    assert mic.handles[0].close_calls == 1
    assert all(t.cancelled for t in timers.created)


def test_speech_is_captured_from_first_activity() -> None:
    mic, timers = _FakeMic(), _Timers()
    ctrl, utterances, _ = _controller(mic, timers)

    ctrl.start(Lane.COUNTERPART, "ky")
    mic.feed(SILENCE)
    mic.feed(SPEECH)
    mic.feed(SILENCE)
    utt = ctrl.stop()

    assert utt is not None
    assert utterances == [utt]
    assert utt.lane is Lane.COUNTERPART
    assert utt.language == "ky"
    assert utt.text is None
    with wave.open(io.BytesIO(utt.audio), "rb") as wf:
        assert wf.getframerate() == 16000
        assert wf.readframes(wf.getnframes()) == SPEECH + SILENCE
    assert utt.duration_sec == len(SPEECH + SILENCE) / (2 * 16000)


def test_start_rejected_unless_idle() -> None:
    mic, timers = _FakeMic(), _Timers()
    ctrl, _, _ = _controller(mic, timers)
    assert ctrl.start(Lane.PRIMARY, "en")
    assert not ctrl.start(Lane.COUNTERPART, "ky")
    assert len(mic.handles) == 1


def test_device_failure_surfaces_one_message() -> None:
    mic, timers = _FakeMic(error=MicError("denied")), _Timers()
    ctrl, _, messages = _controller(mic, timers)

    assert not ctrl.start(Lane.PRIMARY, "en")
    assert ctrl.state is CaptureState.IDLE
    assert ctrl.session is None
    assert len(messages) == 1
    assert "denied" in messages[0]
    assert timers.created == []


def test_activity_disarms_idle_and_rearms_silence() -> None:
    mic, timers = _FakeMic(), _Timers()
    ctrl, _, _ = _controller(mic, timers)
    ctrl.start(Lane.PRIMARY, "en")
    (idle,) = timers.live(90.0)

    mic.feed(SPEECH)
    assert idle.cancelled
    (first_silence,) = timers.live(2.5)

    mic.feed(SPEECH)
    assert first_silence.cancelled
    assert len(timers.live(2.5)) == 1


def test_silence_timer_auto_stops() -> None:
    mic, timers = _FakeMic(), _Timers()
    ctrl, utterances, _ = _controller(mic, timers)
    ctrl.start(Lane.PRIMARY, "en")
    mic.feed(SPEECH)
    timers.live(2.5)[0].fire()

    assert ctrl.state is CaptureState.IDLE
    assert len(utterances) == 1
    assert mic.handles[0].close_calls == 1


def test_idle_timer_auto_stops_without_message() -> None:
    mic, timers = _FakeMic(), _Timers()
    ctrl, utterances, messages = _controller(mic, timers)
    ctrl.start(Lane.PRIMARY, "en")
    timers.live(90.0)[0].fire()

    assert ctrl.state is CaptureState.IDLE
    assert utterances == []
    assert messages == []


def test_stale_timer_does_not_touch_new_session() -> None:
    mic, timers = _FakeMic(), _Timers()
    ctrl, utterances, _ = _controller(mic, timers)
    ctrl.start(Lane.PRIMARY, "en")
    stale_idle = timers.live(90.0)[0]
    ctrl.stop()

    ctrl.start(Lane.COUNTERPART, "ky")
    stale_idle.fire()
    assert ctrl.state is CaptureState.RECORDING
    assert ctrl.lane is Lane.COUNTERPART


def test_flush_timer_compacts_fragments_and_rearms() -> None:
    mic, timers = _FakeMic(), _Timers()
    ctrl, _, _ = _controller(mic, timers)
    ctrl.start(Lane.PRIMARY, "en")
    for _ in range(3):
        mic.feed(SPEECH)
    (flush,) = timers.live(5.0)
    flush.fire()

    assert ctrl.session is not None
    assert ctrl.session.fragments == [SPEECH * 3]
    (rearmed,) = timers.live(5.0)
    assert rearmed is not flush
    utt = ctrl.stop()
    assert utt is not None and utt.duration_sec > 0


def test_append_text_produces_typed_utterance() -> None:
    mic, timers = _FakeMic(), _Timers()
    ctrl, utterances, _ = _controller(mic, timers)
    assert not ctrl.append_text("too early")
    ctrl.start(Lane.PRIMARY, "en")
    assert ctrl.append_text("Hello there")
    utt = ctrl.stop()

    assert utt is not None
    assert utt.text == "Hello there"
    assert utt.audio == b""


def test_release_is_idempotent() -> None:
    mic, timers = _FakeMic(), _Timers()
    ctrl, utterances, _ = _controller(mic, timers)
    ctrl.start(Lane.PRIMARY, "en")
    session_id = ctrl.session.session_id
    mic.feed(SPEECH)

    ctrl.release(session_id)
    ctrl.release(session_id)
    ctrl.release(999)

    assert ctrl.state is CaptureState.IDLE
    assert mic.handles[0].close_calls == 1
    assert utterances == []
    mic.feed(SPEECH)
    assert ctrl.session is None


def test_device_released_even_when_building_fails(monkeypatch) -> None:
    from parley.audio import recorder as recorder_mod

    mic, timers = _FakeMic(), _Timers()
    ctrl, _, _ = _controller(mic, timers)
    ctrl.start(Lane.PRIMARY, "en")
    mic.feed(SPEECH)

    def _boom(*args, **kwargs):
        raise RuntimeError("encoder failed")

    monkeypatch.setattr(recorder_mod, "pcm16_to_wav", _boom)
    with pytest.raises(RuntimeError):
        ctrl.stop()
    assert mic.handles[0].close_calls == 1
    assert ctrl.state is CaptureState.IDLE
