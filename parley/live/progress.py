from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Dict, Optional

from parley.contracts import Lane

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    END = "end"
    POST_TRANSCRIPTION = "post_transcription"
    INTERMEDIATE = "intermediate"
    FINALIZING = "finalizing"


Listener = Callable[[Lane, Optional[Stage]], None]


class ProgressCoordinator:
    """
    Per-lane progress indicator and in-flight bookkeeping.

    At most one stage is lit per lane. `begin`/`finish` mark a pipeline as
    running so a second Start of a busy lane can be rejected.
    """

    def __init__(self, listener: Optional[Listener] = None) -> None:
        self._lock = threading.Lock()
        self._active: Dict[Lane, Optional[Stage]] = {lane: None for lane in Lane}
        self._in_flight: Dict[Lane, bool] = {lane: False for lane in Lane}
        self.listener = listener

    def _notify(self, lane: Lane, stage: Optional[Stage]) -> None:
        if self.listener is not None:
            self.listener(lane, stage)

    def show(self, lane: Lane, stage: Stage) -> None:
        with self._lock:
            if self._active[lane] is stage:
                return
            self._active[lane] = stage
        self._notify(lane, stage)

    def hide(self, lane: Lane, stage: Stage) -> None:
        with self._lock:
            if self._active[lane] is not stage:
                return
            self._active[lane] = None
        self._notify(lane, None)

    def hide_all(self, lane: Optional[Lane] = None) -> None:
        lanes = [lane] if lane is not None else list(Lane)
        changed = []
        with self._lock:
            for ln in lanes:
                if self._active[ln] is not None:
                    self._active[ln] = None
                    changed.append(ln)
        for ln in changed:
            self._notify(ln, None)

    def active(self, lane: Lane) -> Optional[Stage]:
        with self._lock:
            return self._active[lane]

    def any_active(self) -> bool:
        with self._lock:
            return any(stage is not None for stage in self._active.values())

    def begin(self, lane: Lane) -> bool:
        with self._lock:
            if self._in_flight[lane]:
                return False
            self._in_flight[lane] = True
        logger.debug("lane_busy", extra={"lane": lane.value})
        return True

    def finish(self, lane: Lane) -> None:
        with self._lock:
            self._in_flight[lane] = False

    def in_flight(self, lane: Lane) -> bool:
        with self._lock:
            return self._in_flight[lane]
