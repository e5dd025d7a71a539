from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import threading
import time
import uuid
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Optional

from platformdirs import user_data_dir

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"
DOC_FORMAT = "parley.history"
DOC_VERSION = 1

_SLUG = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class NewTurn:
    original_text: str
    translated_text: str
    source_language: str
    target_language: str
    confidence: float
    duration_seconds: Optional[float] = None


@dataclass(frozen=True)
class ConversationTurn:
    id: str
    timestamp: int  # milliseconds since the epoch
    original_text: str
    translated_text: str
    source_language: str
    target_language: str
    confidence: float
    audio_reference: Optional[str] = None  # relative to the identity directory
    duration_seconds: Optional[float] = None

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "originalText": self.original_text,
            "translatedText": self.translated_text,
            "userLanguage": self.source_language,
            "targetLanguage": self.target_language,
            "confidence": self.confidence,
        }
        if self.audio_reference is not None:
            out["audioUrl"] = self.audio_reference
        if self.duration_seconds is not None:
            out["duration"] = self.duration_seconds
        return out

    @classmethod
    def from_json(
        cls,
        payload: Any,
        *,
        new_id: Callable[[], str],
        now_ms: Callable[[], int],
    ) -> "ConversationTurn":
        if not isinstance(payload, dict):
            raise ValueError("turn must be a JSON object")
        texts = {}
        for key in ("originalText", "translatedText", "userLanguage", "targetLanguage"):
            value = payload.get(key)
            if not isinstance(value, str):
                raise ValueError(f"turn field {key!r} must be a string")
            texts[key] = value
        confidence = payload.get("confidence", 0.0)
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise ValueError("turn field 'confidence' must be a number")
        duration = payload.get("duration")
        if duration is not None and (isinstance(duration, bool) or not isinstance(duration, (int, float))):
            raise ValueError("turn field 'duration' must be a number")
        audio = payload.get("audioUrl")
        if audio is not None and not isinstance(audio, str):
            raise ValueError("turn field 'audioUrl' must be a string")
        timestamp = payload.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)) or timestamp <= 0:
            timestamp = now_ms()
        turn_id = payload.get("id")
        if not isinstance(turn_id, str) or not turn_id:
            turn_id = new_id()
        return cls(
            id=turn_id,
            timestamp=int(timestamp),
            original_text=texts["originalText"],
            translated_text=texts["translatedText"],
            source_language=texts["userLanguage"],
            target_language=texts["targetLanguage"],
            confidence=float(confidence),
            audio_reference=audio,
            duration_seconds=float(duration) if duration is not None else None,
        )


def default_history_root() -> Path:
    return Path(user_data_dir("Parley", "Parley")) / "history"


def normalize_identity(identity: Optional[str]) -> str:
    identity = (identity or "").strip()
    return identity or ANONYMOUS


def identity_key(identity: str) -> str:
    """Filesystem-safe directory name for an identity: readable slug plus a short digest."""
    slug = _SLUG.sub("_", identity).strip("._")[:40] or "user"
    digest = hashlib.sha256(identity.encode("utf-8")).hexdigest()[:10]
    return f"{slug}-{digest}"


def _write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)


class HistoryStore:
    """
    Per-identity conversation ledger, newest turn first.

    Each identity owns a directory under `root` holding `ledger.json` and an
    `audio/` folder with the synthesized clip of each turn. Exactly one ledger
    is active; writes are synchronous and atomic.
    """

    LEDGER_NAME = "ledger.json"

    def __init__(
        self,
        root: Path | str | None = None,
        identity: Optional[str] = None,
        *,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ) -> None:
        self.root = Path(root) if root is not None else default_history_root()
        self._clock = clock
        self._new_id = id_factory
        self._lock = threading.RLock()
        self._identity = normalize_identity(identity)
        self._turns: list[ConversationTurn] = self._load(self._identity)

    # ---- paths -----------------------------------------------------------

    @property
    def identity(self) -> str:
        return self._identity

    def identity_dir(self, identity: Optional[str] = None) -> Path:
        return self.root / identity_key(normalize_identity(identity or self._identity))

    def ledger_path(self, identity: Optional[str] = None) -> Path:
        return self.identity_dir(identity) / self.LEDGER_NAME

    def audio_path(self, turn: ConversationTurn) -> Optional[Path]:
        if not turn.audio_reference:
            return None
        path = self.identity_dir() / turn.audio_reference
        return path if path.exists() else None

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # ---- persistence -----------------------------------------------------

    def _document(self, turns: list[ConversationTurn]) -> dict[str, Any]:
        return {
            "format": DOC_FORMAT,
            "version": DOC_VERSION,
            "identity": self._identity,
            "turns": [t.to_json() for t in turns],
        }

    def _parse(self, text: str) -> list[ConversationTurn]:
        loaded = json.loads(text)
        if isinstance(loaded, list):
            entries = loaded
        elif isinstance(loaded, dict):
            if loaded.get("format", DOC_FORMAT) != DOC_FORMAT:
                raise ValueError(f"unknown document format: {loaded.get('format')!r}")
            entries = loaded.get("turns")
            if not isinstance(entries, list):
                raise ValueError("document 'turns' must be a list")
        else:
            raise ValueError("history document must be a JSON object or array")
        return [ConversationTurn.from_json(e, new_id=self._new_id, now_ms=self._now_ms) for e in entries]

    def _load(self, identity: str) -> list[ConversationTurn]:
        path = self.ledger_path(identity)
        if not path.exists():
            return []
        try:
            turns = self._parse(path.read_text(encoding="utf-8-sig"))
        except (OSError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            logger.error("history_load_failed", extra={"identity": identity, "path": str(path), "detail": str(e)})
            return []
        logger.info("history_loaded", extra={"identity": identity, "turns": len(turns)})
        return turns

    def _save(self, turns: Optional[list[ConversationTurn]] = None) -> None:
        """Write `turns` (default: the current ledger), then make it current."""
        turns = self._turns if turns is None else turns
        payload = json.dumps(self._document(turns), ensure_ascii=False, indent=2) + "\n"
        _write_atomic(self.ledger_path(), payload)
        self._turns = turns

    def flush(self) -> None:
        with self._lock:
            self._save()

    # ---- mutations -------------------------------------------------------

    def add_turn(self, new_turn: NewTurn, audio: Optional[bytes] = None, audio_format: str = "wav") -> ConversationTurn:
        with self._lock:
            turn = ConversationTurn(
                id=self._new_id(),
                timestamp=self._now_ms(),
                original_text=new_turn.original_text,
                translated_text=new_turn.translated_text,
                source_language=new_turn.source_language,
                target_language=new_turn.target_language,
                confidence=float(new_turn.confidence),
                duration_seconds=new_turn.duration_seconds,
            )
            target = None
            if audio:
                reference = f"audio/{turn.id}.{audio_format}"
                target = self.identity_dir() / reference
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(audio)
                turn = replace(turn, audio_reference=reference)
            try:
                self._save([turn, *self._turns])
            except OSError:
                if target is not None:
                    target.unlink(missing_ok=True)
                raise
        logger.info("history_turn_added", extra={"identity": self._identity, "turn_id": turn.id})
        return turn

    def _remove_audio(self, turn: ConversationTurn) -> None:
        path = self.audio_path(turn)
        if path is not None:
            path.unlink(missing_ok=True)

    def delete(self, turn_id: str) -> bool:
        with self._lock:
            kept = [t for t in self._turns if t.id != turn_id]
            if len(kept) == len(self._turns):
                return False
            removed = [t for t in self._turns if t.id == turn_id]
            self._save(kept)
            for t in removed:
                self._remove_audio(t)
        return True

    def clear_all(self) -> None:
        with self._lock:
            removed = self._turns
            self._save([])
            for t in removed:
                self._remove_audio(t)

    def switch_user(self, identity: Optional[str]) -> str:
        identity = normalize_identity(identity)
        with self._lock:
            if identity == self._identity:
                return identity
            if self._turns or self.ledger_path().exists():
                self._save()
            self._identity = identity
            self._turns = self._load(identity)
        logger.info("history_user_switched", extra={"identity": identity, "turns": len(self._turns)})
        return identity

    # ---- queries ---------------------------------------------------------

    def turns(self) -> list[ConversationTurn]:
        with self._lock:
            return list(self._turns)

    def sorted_by_time(self) -> list[ConversationTurn]:
        # sorted() is stable, so equal timestamps keep insertion order.
        return sorted(self.turns(), key=lambda t: t.timestamp, reverse=True)

    def get(self, turn_id: str) -> Optional[ConversationTurn]:
        with self._lock:
            return next((t for t in self._turns if t.id == turn_id), None)

    def search(self, query: str) -> list[ConversationTurn]:
        needle = (query or "").strip().lower()
        ordered = self.sorted_by_time()
        if not needle:
            return ordered
        return [
            t
            for t in ordered
            if needle in t.original_text.lower()
            or needle in t.translated_text.lower()
            or needle in t.source_language.lower()
            or needle in t.target_language.lower()
        ]

    def total_turns(self) -> int:
        with self._lock:
            return len(self._turns)

    def total_duration(self) -> float:
        with self._lock:
            return sum(t.duration_seconds or 0.0 for t in self._turns)

    # ---- export / import -------------------------------------------------

    def export_document(self) -> str:
        with self._lock:
            return json.dumps(self._document(self._turns), ensure_ascii=False, indent=2)

    def import_document(self, document: str) -> bool:
        """Replace the active ledger with `document`. Invalid input or a failed write leaves it untouched."""
        try:
            turns = self._parse(document)
        except ValueError as e:
            logger.warning("history_import_rejected", extra={"identity": self._identity, "detail": str(e)})
            return False
        with self._lock:
            try:
                self._save(turns)
            except OSError as e:
                logger.error("history_import_failed", extra={"identity": self._identity, "detail": str(e)})
                return False
        logger.info("history_imported", extra={"identity": self._identity, "turns": len(turns)})
        return True
