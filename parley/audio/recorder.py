from __future__ import annotations

import itertools
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Protocol

from parley.audio.mic import MicError
from parley.audio.wav import pcm16_duration, pcm16_to_wav
from parley.contracts import Lane, Utterance

logger = logging.getLogger(__name__)


class CaptureState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPING = "stopping"


class ActivityDetector(Protocol):
    def is_speech(self, pcm16: bytes, channels: int = 1) -> bool: ...


class Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[..., None], tuple], Timer]


def thread_timer(interval: float, fn: Callable[..., None], args: tuple) -> Timer:
    timer = threading.Timer(interval, fn, args=args)
    timer.daemon = True
    return timer


@dataclass
class RecordingSession:
    session_id: int
    lane: Lane
    language: str
    handle: Any
    sample_rate: int
    channels: int
    started_at: float
    fragments: List[bytes] = field(default_factory=list)
    pending_text: List[str] = field(default_factory=list)
    speech_seen: bool = False
    timers: dict = field(default_factory=dict)

    def captured_bytes(self) -> int:
        return sum(len(f) for f in self.fragments)


class RecordingController:
    """
    Single capture session, system wide: idle -> recording -> stopping -> idle.

    Fragments arrive on the audio thread. Nothing is kept until the activity
    detector reports speech for the first time; from then on every fragment is
    appended. Every timer callback carries the id of the session that armed it
    and does nothing once that session is gone.
    """

    def __init__(
        self,
        mic: Any,
        detector: ActivityDetector,
        *,
        idle_timeout: float = 90.0,
        silence_timeout: float = 2.5,
        flush_interval: float = 5.0,
        on_utterance: Optional[Callable[[Utterance], None]] = None,
        on_message: Optional[Callable[[str], None]] = None,
        timer_factory: TimerFactory = thread_timer,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if idle_timeout <= 0 or silence_timeout <= 0 or flush_interval <= 0:
            raise ValueError("timer intervals must be > 0")
        self.mic = mic
        self.detector = detector
        self.idle_timeout = float(idle_timeout)
        self.silence_timeout = float(silence_timeout)
        self.flush_interval = float(flush_interval)
        self.on_utterance = on_utterance
        self.on_message = on_message
        self._timer_factory = timer_factory
        self._clock = clock
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._state = CaptureState.IDLE
        self._session: Optional[RecordingSession] = None

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def session(self) -> Optional[RecordingSession]:
        return self._session

    @property
    def lane(self) -> Optional[Lane]:
        session = self._session
        return session.lane if session is not None else None

    def _set_state(self, state: CaptureState) -> None:
        self._state = state

    # ---- timers --------------------------------------------------------

    def _arm(self, session: RecordingSession, name: str, interval: float, fn: Callable[[int], None]) -> None:
        old = session.timers.pop(name, None)
        if old is not None:
            old.cancel()
        timer = self._timer_factory(interval, fn, (session.session_id,))
        session.timers[name] = timer
        timer.start()

    def _disarm(self, session: RecordingSession, name: str) -> None:
        timer = session.timers.pop(name, None)
        if timer is not None:
            timer.cancel()

    def _disarm_all(self, session: RecordingSession) -> None:
        for name in list(session.timers):
            self._disarm(session, name)

    def _current(self, session_id: int) -> Optional[RecordingSession]:
        session = self._session
        if session is None or session.session_id != session_id:
            return None
        if self._state is not CaptureState.RECORDING:
            return None
        return session

    def _on_idle_timeout(self, session_id: int) -> None:
        with self._lock:
            session = self._current(session_id)
            if session is None or session.speech_seen:
                return
        logger.info("capture_idle_timeout", extra={"session_id": session_id})
        self.stop("idle", session_id=session_id)

    def _on_silence_timeout(self, session_id: int) -> None:
        with self._lock:
            if self._current(session_id) is None:
                return
        logger.info("capture_silence_timeout", extra={"session_id": session_id})
        self.stop("silence", session_id=session_id)

    def _on_flush(self, session_id: int) -> None:
        with self._lock:
            session = self._current(session_id)
            if session is None:
                return
            if len(session.fragments) > 1:
                session.fragments = [b"".join(session.fragments)]
            self._arm(session, "flush", self.flush_interval, self._on_flush)

    # ---- session lifecycle ---------------------------------------------

    def start(self, lane: Lane, language: str) -> bool:
        with self._lock:
            if self._state is not CaptureState.IDLE:
                logger.info("capture_rejected", extra={"lane": lane.value, "state": self._state.value})
                return False
            session_id = next(self._ids)
            try:
                handle = self.mic.open(lambda data: self._on_fragment(session_id, data))
            except MicError as e:
                logger.warning("capture_failed", extra={"lane": lane.value, "kind": e.kind})
                error: Optional[MicError] = e
            else:
                error = None
                session = RecordingSession(
                    session_id=session_id,
                    lane=lane,
                    language=language,
                    handle=handle,
                    sample_rate=int(handle.sample_rate),
                    channels=int(handle.channels),
                    started_at=self._clock(),
                )
                self._session = session
                self._set_state(CaptureState.RECORDING)
                self._arm(session, "idle", self.idle_timeout, self._on_idle_timeout)
                self._arm(session, "flush", self.flush_interval, self._on_flush)

        if error is not None:
            if self.on_message is not None:
                self.on_message(error.user_message)
            return False
        logger.info("capture_started", extra={"lane": lane.value, "session_id": session_id})
        return True

    def _on_fragment(self, session_id: int, data: bytes) -> None:
        with self._lock:
            session = self._current(session_id)
            if session is None:
                return
            active = self.detector.is_speech(data, session.channels)
            if active:
                if not session.speech_seen:
                    session.speech_seen = True
                    self._disarm(session, "idle")
                self._arm(session, "silence", self.silence_timeout, self._on_silence_timeout)
            if session.speech_seen:
                session.fragments.append(bytes(data))

    def append_text(self, text: str) -> bool:
        text = (text or "").strip()
        if not text:
            return False
        with self._lock:
            session = self._session
            if session is None or self._state is not CaptureState.RECORDING:
                return False
            session.pending_text.append(text)
            return True

    def stop(self, reason: str = "manual", *, session_id: Optional[int] = None) -> Optional[Utterance]:
        with self._lock:
            session = self._session
            if session is None or self._state is not CaptureState.RECORDING:
                return None
            if session_id is not None and session.session_id != session_id:
                return None
            self._set_state(CaptureState.STOPPING)
            self._disarm_all(session)

        utterance: Optional[Utterance] = None
        try:
            utterance = self._build_utterance(session)
        finally:
            self._close(session)
            with self._lock:
                if self._session is session:
                    self._session = None
                self._set_state(CaptureState.IDLE)

        if utterance is None:
            logger.info(
                "capture_discarded",
                extra={"session_id": session.session_id, "reason": reason},
            )
            return None

        logger.info(
            "capture_stopped",
            extra={
                "session_id": session.session_id,
                "reason": reason,
                "duration_sec": round(utterance.duration_sec, 3),
                "typed": utterance.text is not None,
            },
        )
        if self.on_utterance is not None:
            self.on_utterance(utterance)
        return utterance

    def _build_utterance(self, session: RecordingSession) -> Optional[Utterance]:
        text = " ".join(session.pending_text).strip() or None
        pcm16 = b"".join(session.fragments)
        session.fragments.clear()
        session.pending_text.clear()
        if not pcm16 and text is None:
            return None
        audio = pcm16_to_wav(pcm16, session.sample_rate, session.channels) if pcm16 else b""
        return Utterance(
            audio=audio,
            lane=session.lane,
            language=session.language,
            session_id=session.session_id,
            duration_sec=pcm16_duration(pcm16, session.sample_rate, session.channels),
            text=text,
        )

    def _close(self, session: RecordingSession) -> None:
        handle = session.handle
        if handle is None:
            return
        session.handle = None
        try:
            handle.close()
        except Exception:
            logger.exception("mic_close_failed", extra={"session_id": session.session_id})

    def release(self, session_id: int) -> None:
        """Force the device of `session_id` free. Safe to call any number of times."""
        with self._lock:
            session = self._session
            if session is None or session.session_id != session_id:
                return
            self._disarm_all(session)
            self._session = None
            self._set_state(CaptureState.IDLE)
        session.fragments.clear()
        session.pending_text.clear()
        self._close(session)
        logger.info("capture_released", extra={"session_id": session_id})
