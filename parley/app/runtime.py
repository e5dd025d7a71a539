from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Callable, Optional

from parley.app.config import stage_timeout_for
from parley.app.state import ConversationContext, RuntimeStateTracker
from parley.audio.recorder import CaptureState, RecordingController, thread_timer
from parley.contracts import Lane, Utterance
from parley.history.store import HistoryStore
from parley.live.orchestrator import MESSAGES, Outcome, TurnOrchestrator, TurnResult
from parley.live.progress import ProgressCoordinator, Stage

logger = logging.getLogger(__name__)


def _log_event(level: int, event: str, **fields: Any) -> None:
    logger.log(level, event, extra=fields)


class ConversationRuntime:
    """
    Wires capture, pipeline and history together.

    Turns run as coroutines on an event loop owned by a background thread, so
    callers (the console prompt, timer threads) never block on a turn.
    """

    def __init__(
        self,
        services: Any,
        context: ConversationContext,
        history: HistoryStore,
        *,
        idle_timeout: float = 90.0,
        silence_timeout: float = 2.5,
        flush_interval: float = 5.0,
        stage_timeout: float = 30.0,
        on_message: Optional[Callable[[Lane, str], None]] = None,
        on_warning: Optional[Callable[[Lane, str], None]] = None,
        on_result: Optional[Callable[[TurnResult], None]] = None,
        on_progress: Optional[Callable[[Lane, Optional[Stage]], None]] = None,
        timer_factory: Callable[..., Any] = thread_timer,
    ) -> None:
        self.services = services
        self.context = context
        self.history = history
        self.on_message = on_message
        self.state = RuntimeStateTracker()
        self.progress = ProgressCoordinator(listener=on_progress)
        self.recorder = RecordingController(
            services.mic,
            services.detector,
            idle_timeout=idle_timeout,
            silence_timeout=silence_timeout,
            flush_interval=flush_interval,
            on_utterance=self._on_utterance,
            on_message=self._on_capture_message,
            timer_factory=timer_factory,
        )
        self.orchestrator = TurnOrchestrator(
            transcriber=services.transcriber,
            translator=services.translator,
            synthesizer=services.synthesizer,
            history=history,
            progress=self.progress,
            context=context,
            release_capture=self.recorder.release,
            playback=services.playback_queue,
            stage_timeout=stage_timeout,
            on_message=on_message,
            on_warning=on_warning,
            on_result=on_result,
        )
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._pending: set[concurrent.futures.Future] = set()
        self._last: Optional[concurrent.futures.Future] = None
        self._starting: Optional[Lane] = None

    @classmethod
    def from_args(cls, args: Any, services: Any, **callbacks: Any) -> "ConversationRuntime":
        context = ConversationContext(
            primary_language=str(args.primary_language),
            counterpart_language=str(args.counterpart_language),
            voice=str(args.voice),
            speech_rate=float(args.speech_rate),
            identity=str(args.identity or "anonymous"),
        )
        history = HistoryStore(args.history_dir, identity=context.identity)
        return cls(
            services,
            context,
            history,
            idle_timeout=float(args.idle_timeout_sec),
            silence_timeout=float(args.silence_timeout_sec),
            flush_interval=float(args.flush_interval_sec),
            stage_timeout=stage_timeout_for(args),
            **callbacks,
        )

    # ---- event loop ------------------------------------------------------

    def open(self) -> None:
        with self._lock:
            if self._loop is not None:
                return
            loop = asyncio.new_event_loop()
            ready = threading.Event()

            def _run() -> None:
                asyncio.set_event_loop(loop)
                loop.call_soon(ready.set)
                loop.run_forever()
                loop.close()

            self._thread = threading.Thread(target=_run, name="parley-turns", daemon=True)
            self._thread.start()
            ready.wait()
            self._loop = loop
        if self.services.player is not None:
            self.services.player.start()
        self.state.set_running()
        _log_event(logging.INFO, "runtime_open", identity=self.history.identity)

    def _submit(self, utt: Utterance) -> concurrent.futures.Future:
        self.open()
        assert self._loop is not None
        # Mark the lane busy before the turn reaches the loop thread, so a
        # start() issued in between already sees it in flight.
        reserved = self.progress.begin(utt.lane)
        try:
            future = asyncio.run_coroutine_threadsafe(self.orchestrator.run(utt, reserved=reserved), self._loop)
        except Exception:
            if reserved:
                self.progress.finish(utt.lane)
            raise
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: concurrent.futures.Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _done, not_done = concurrent.futures.wait(pending, timeout=timeout)
        return not not_done

    # ---- capture ---------------------------------------------------------

    def _on_utterance(self, utt: Utterance) -> None:
        self._last = self._submit(utt)

    def _on_capture_message(self, message: str) -> None:
        lane = self.recorder.lane or self._starting or Lane.PRIMARY
        if self.on_message is not None:
            self.on_message(lane, message)

    def start(self, lane: Lane) -> bool:
        if self.progress.in_flight(lane):
            _log_event(logging.INFO, "start_rejected", lane=lane.value, reason="in_flight")
            if self.on_message is not None:
                self.on_message(lane, MESSAGES[Outcome.BUSY])
            return False
        if self.recorder.state is not CaptureState.IDLE:
            _log_event(logging.INFO, "start_rejected", lane=lane.value, reason="recording")
            return False
        self.open()
        self._starting = lane
        try:
            return self.recorder.start(lane, self.context.language_for(lane))
        finally:
            self._starting = None

    def stop(self) -> Optional[concurrent.futures.Future]:
        self._last = None
        self.recorder.stop("manual")
        return self._last

    def submit_text(self, lane: Lane, text: str) -> Optional[concurrent.futures.Future]:
        """Typed input. Joins the open capture session of `lane` if there is one."""
        text = (text or "").strip()
        if not text:
            return None
        if self.recorder.lane is lane and self.recorder.append_text(text):
            return None
        utt = Utterance(audio=b"", lane=lane, language=self.context.language_for(lane), text=text)
        return self._submit(utt)

    # ---- settings --------------------------------------------------------

    def switch_user(self, identity: Optional[str]) -> str:
        identity = self.history.switch_user(identity)
        self.context.identity = identity
        return identity

    def set_languages(self, primary: str, counterpart: str) -> None:
        self.context.set_languages(primary, counterpart)
        _log_event(logging.INFO, "languages_set", primary=primary, counterpart=counterpart)

    def shutdown(self, timeout: float = 5.0) -> None:
        session = self.recorder.session
        if session is not None:
            self.recorder.release(session.session_id)
        self.wait_idle(timeout=timeout)
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None
        if loop is not None:
            loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout=timeout)
        if self.services.player is not None:
            self.services.player.stop()
        self.history.flush()
        self.state.set_stopped()
        _log_event(logging.INFO, "runtime_shutdown")
