from __future__ import annotations

import threading
from pathlib import Path
from types import SimpleNamespace

from parley.app.runtime import ConversationRuntime
from parley.app.state import ConversationContext
from parley.audio.playback import PlaybackQueue
from parley.contracts import Lane, TranscriptionResult
from parley.history.store import HistoryStore
from parley.live.orchestrator import MESSAGES, Outcome
from parley.nlp.translator.stub import StubTranslator

SPEECH = b"\x10\x27" * 160


class _Handle:
    sample_rate = 16000
    channels = 1

    def __init__(self) -> None:
        self.closed = 0

    def close(self) -> None:
        self.closed += 1


class _Mic:
    def __init__(self) -> None:
        self.callback = None
        self.handles: list[_Handle] = []

    def open(self, callback):
        self.callback = callback
        self.handles.append(_Handle())
        return self.handles[-1]


class _Detector:
    def is_speech(self, pcm16: bytes, channels: int = 1) -> bool:
        return pcm16 == SPEECH


class _Transcriber:
    def transcribe(self, audio, *, language=None, prompt=None, mime_type="audio/wav"):
        return TranscriptionResult(text="Where is the train station?")


class _Synth:
    def synthesize(self, req) -> bytes:
        return b"RIFF-audio"


class _NoTimer:
    def __init__(self, *args) -> None:
        pass

    def start(self) -> None:
        pass

    def cancel(self) -> None:
        pass


def _runtime(tmp_path: Path, messages: list) -> tuple[ConversationRuntime, _Mic]:
    mic = _Mic()
    services = SimpleNamespace(
        mic=mic,
        detector=_Detector(),
        transcriber=_Transcriber(),
        translator=StubTranslator(),
        synthesizer=_Synth(),
        playback_queue=PlaybackQueue(),
        player=None,
    )
    runtime = ConversationRuntime(
        services,
        ConversationContext(primary_language="en", counterpart_language="ky"),
        HistoryStore(tmp_path, identity="alice"),
        stage_timeout=5.0,
        on_message=lambda lane, msg: messages.append((lane, msg)),
        timer_factory=_NoTimer,
    )
    return runtime, mic


def test_record_stop_translate_and_persist(tmp_path: Path) -> None:
    messages: list = []
    runtime, mic = _runtime(tmp_path, messages)
    try:
        assert runtime.start(Lane.PRIMARY)
        mic.callback(SPEECH)
        future = runtime.stop()
        assert future is not None
        result = future.result(timeout=5)

        assert result.outcome is Outcome.COMPLETED
        assert result.translation == "[en->ky] Where is the train station?"
        assert runtime.history.total_turns() == 1
        assert mic.handles[0].closed == 1
        assert len(runtime.services.playback_queue) == 1
        assert messages == []
    finally:
        runtime.shutdown()


def test_stop_without_speech_is_silent(tmp_path: Path) -> None:
    messages: list = []
    runtime, mic = _runtime(tmp_path, messages)
    try:
        runtime.start(Lane.COUNTERPART)
        assert runtime.stop() is None
        assert messages == []
        assert runtime.history.total_turns() == 0
        assert runtime.recorder.session is None
    finally:
        runtime.shutdown()


def test_start_rejected_while_lane_in_flight(tmp_path: Path) -> None:
    messages: list = []
    runtime, mic = _runtime(tmp_path, messages)
    try:
        runtime.progress.begin(Lane.PRIMARY)
        assert not runtime.start(Lane.PRIMARY)
        assert messages == [(Lane.PRIMARY, MESSAGES[Outcome.BUSY])]
        assert mic.handles == []
        assert runtime.start(Lane.COUNTERPART)
        assert not runtime.start(Lane.PRIMARY)
    finally:
        runtime.shutdown()


def test_lane_is_busy_from_stop_until_turn_finishes(tmp_path: Path) -> None:
    messages: list = []
    runtime, mic = _runtime(tmp_path, messages)
    gate = threading.Event()
    try:
        assert runtime.start(Lane.PRIMARY)
        mic.callback(SPEECH)
        # Hold the loop thread so the turn is queued but not yet running.
        runtime._loop.call_soon_threadsafe(gate.wait, 5)
        future = runtime.stop()
        assert future is not None

        assert runtime.progress.in_flight(Lane.PRIMARY)
        assert not runtime.start(Lane.PRIMARY)
        assert messages == [(Lane.PRIMARY, MESSAGES[Outcome.BUSY])]
        assert len(mic.handles) == 1

        gate.set()
        assert future.result(timeout=5).outcome is Outcome.COMPLETED
        assert not runtime.progress.in_flight(Lane.PRIMARY)
        assert runtime.start(Lane.PRIMARY)
    finally:
        gate.set()
        runtime.shutdown()


def test_submit_text_runs_typed_turn(tmp_path: Path) -> None:
    runtime, _ = _runtime(tmp_path, [])
    try:
        result = runtime.submit_text(Lane.COUNTERPART, "Салам").result(timeout=5)
        assert result.outcome is Outcome.COMPLETED
        assert result.turn.source_language == "ky"
        assert result.turn.target_language == "en"
        assert runtime.submit_text(Lane.PRIMARY, "   ") is None
    finally:
        runtime.shutdown()


def test_submit_text_joins_open_session(tmp_path: Path) -> None:
    runtime, _ = _runtime(tmp_path, [])
    try:
        runtime.start(Lane.PRIMARY)
        assert runtime.submit_text(Lane.PRIMARY, "Hello there") is None
        result = runtime.stop().result(timeout=5)
        assert result.transcript == "Hello there"
    finally:
        runtime.shutdown()


def test_switch_user_and_languages(tmp_path: Path) -> None:
    runtime, _ = _runtime(tmp_path, [])
    try:
        runtime.submit_text(Lane.PRIMARY, "Hello").result(timeout=5)
        assert runtime.switch_user("bob") == "bob"
        assert runtime.context.identity == "bob"
        assert runtime.history.total_turns() == 0

        runtime.set_languages("ko", "en")
        assert runtime.context.language_for(Lane.PRIMARY) == "ko"
    finally:
        runtime.shutdown()
    assert runtime.state.state.value == "stopped"


def test_device_failure_reports_on_requested_lane(tmp_path: Path) -> None:
    from parley.audio.mic import MicError

    messages: list = []
    runtime, mic = _runtime(tmp_path, messages)

    def _fail(callback):
        raise MicError("absent")

    mic.open = _fail
    try:
        assert not runtime.start(Lane.COUNTERPART)
        assert messages == [(Lane.COUNTERPART, MicError("absent").user_message)]
    finally:
        runtime.shutdown()
