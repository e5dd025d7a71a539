from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from parley.audio.wav import wav_to_samples
from parley.contracts import Lane

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaybackItem:
    audio: bytes
    lane: Lane
    turn_id: Optional[str] = None
    format: str = "wav"


class PlaybackQueue:
    """
    Thread-safe handoff from the pipeline to the audio output thread.
    When full, the oldest clip is dropped so playback never lags far behind.
    """

    def __init__(self, maxsize: int = 8):
        self.q: "queue.Queue[PlaybackItem]" = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def push(self, item: PlaybackItem) -> None:
        try:
            self.q.put_nowait(item)
        except queue.Full:
            try:
                _ = self.q.get_nowait()
                self.dropped += 1
            except queue.Empty:
                return
            try:
                self.q.put_nowait(item)
            except queue.Full:
                return

    def pop(self, timeout: Optional[float] = None) -> Optional[PlaybackItem]:
        try:
            if timeout is None:
                return self.q.get_nowait()
            return self.q.get(timeout=timeout)
        except queue.Empty:
            return None

    def clear(self) -> None:
        while self.pop() is not None:
            pass

    def __len__(self) -> int:
        return self.q.qsize()


def _play_wav(payload: bytes) -> None:
    import sounddevice as sd

    samples, sample_rate = wav_to_samples(payload)
    sd.play(samples, sample_rate)
    sd.wait()


class SoundDevicePlayer:
    """Drains a PlaybackQueue on a daemon thread and plays each clip to the end."""

    def __init__(
        self,
        playback_queue: PlaybackQueue,
        *,
        play: Callable[[bytes], None] = _play_wav,
        poll_sec: float = 0.2,
    ) -> None:
        self.queue = playback_queue
        self._play = play
        self.poll_sec = poll_sec
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="parley-playback", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def play_one(self, item: PlaybackItem) -> bool:
        if item.format != "wav":
            logger.warning("playback_unsupported", extra={"format": item.format, "turn_id": item.turn_id})
            return False
        try:
            self._play(item.audio)
        except Exception:
            logger.exception("playback_failed", extra={"turn_id": item.turn_id, "lane": item.lane.value})
            return False
        logger.info("playback_done", extra={"turn_id": item.turn_id, "lane": item.lane.value})
        return True

    def _run(self) -> None:
        while not self._stop.is_set():
            item = self.queue.pop(timeout=self.poll_sec)
            if item is None:
                continue
            self.play_one(item)
