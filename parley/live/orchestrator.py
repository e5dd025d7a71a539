from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from parley.app.diagnostics import user_message
from parley.audio.playback import PlaybackItem, PlaybackQueue
from parley.contracts import Lane, SpeechRequest, TranslationRequest, Utterance
from parley.history.store import ConversationTurn, NewTurn
from parley.live.language_gate import DegenerateTranscriptError, gate
from parley.live.progress import ProgressCoordinator, Stage
from parley.nlp.classifier import is_in_language
from parley.nlp.confidence import score, translation_confidence, turn_confidence
from parley.nlp.prompts import transcription_prompt

logger = logging.getLogger(__name__)

STAGE_TIMEOUTS = {"mobile": 20.0, "desktop": 30.0}


class Outcome(str, Enum):
    COMPLETED = "completed"
    NO_SPEECH = "no_speech"
    SUPPRESSED = "suppressed"
    TRANSLATION_FAILED = "translation_failed"
    AUDIO_FAILED = "audio_failed"
    SYSTEM_ERROR = "system_error"
    TIMEOUT = "timeout"
    ERROR = "error"
    BUSY = "busy"


MESSAGES: Dict[Outcome, str] = {
    Outcome.NO_SPEECH: "No speech detected. Please speak clearly and try again.",
    Outcome.TRANSLATION_FAILED: "Translation failed. Please try again.",
    Outcome.AUDIO_FAILED: "Audio generation failed. Please try again.",
    Outcome.SYSTEM_ERROR: "System processing error detected. Please try again.",
    Outcome.TIMEOUT: "The request took too long. Please try again.",
    Outcome.BUSY: "Please wait for the current translation to finish.",
}


class StageTimeout(TimeoutError):
    def __init__(self, stage: str, seconds: float) -> None:
        super().__init__(f"{stage} timed out after {seconds:g}s")
        self.stage = stage
        self.seconds = seconds


@dataclass(frozen=True)
class TurnResult:
    outcome: Outcome
    lane: Lane
    message: Optional[str] = None
    warning: Optional[str] = None
    transcript: str = ""
    translation: str = ""
    turn: Optional[ConversationTurn] = None

    @property
    def ok(self) -> bool:
        return self.outcome in (Outcome.COMPLETED, Outcome.SUPPRESSED)


@dataclass
class Scratch:
    """Intermediate values of the turn currently running in a lane."""

    transcript: str = ""
    translation: str = ""
    audio: bytes = b""
    warning: Optional[str] = None

    def clear(self) -> None:
        self.transcript = ""
        self.translation = ""
        self.audio = b""
        self.warning = None

    def is_empty(self) -> bool:
        return not (self.transcript or self.translation or self.audio or self.warning)


def _log_event(level: int, event: str, **fields: Any) -> None:
    logger.log(level, event, extra=fields)


class TurnOrchestrator:
    """
    Runs one utterance through transcribe -> language gate -> translate ->
    synthesize -> persist, one linear coroutine per turn.

    Every exit path goes through a single cleanup block, and a failed turn
    produces exactly one user-facing message.
    """

    def __init__(
        self,
        *,
        transcriber: Any,
        translator: Any,
        synthesizer: Any,
        history: Any,
        progress: ProgressCoordinator,
        context: Any,
        release_capture: Callable[[int], None],
        playback: Optional[PlaybackQueue] = None,
        stage_timeout: float = STAGE_TIMEOUTS["desktop"],
        on_message: Optional[Callable[[Lane, str], None]] = None,
        on_warning: Optional[Callable[[Lane, str], None]] = None,
        on_result: Optional[Callable[[TurnResult], None]] = None,
    ) -> None:
        if stage_timeout <= 0:
            raise ValueError("stage_timeout must be > 0")
        self.transcriber = transcriber
        self.translator = translator
        self.synthesizer = synthesizer
        self.history = history
        self.progress = progress
        self.context = context
        self.release_capture = release_capture
        self.playback = playback
        self.stage_timeout = float(stage_timeout)
        self.on_message = on_message
        self.on_warning = on_warning
        self.on_result = on_result
        self._scratch: Dict[Lane, Scratch] = {lane: Scratch() for lane in Lane}

    def scratch(self, lane: Lane) -> Scratch:
        return self._scratch[lane]

    async def _stage(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        call = functools.partial(fn, *args, **kwargs)
        try:
            return await asyncio.wait_for(asyncio.to_thread(call), timeout=self.stage_timeout)
        except asyncio.TimeoutError as e:
            raise StageTimeout(name, self.stage_timeout) from e

    def _warn(self, lane: Lane, scratch: Scratch, warning: Optional[str]) -> None:
        if not warning or scratch.warning == warning:
            return
        scratch.warning = warning
        _log_event(logging.INFO, "turn_language_warning", lane=lane.value, warning=warning)
        if self.on_warning is not None:
            self.on_warning(lane, warning)

    def _result(self, outcome: Outcome, lane: Lane, scratch: Scratch, **kwargs: Any) -> TurnResult:
        kwargs.setdefault("message", MESSAGES.get(outcome))
        return TurnResult(
            outcome=outcome,
            lane=lane,
            warning=scratch.warning,
            transcript=scratch.transcript,
            translation=scratch.translation,
            **kwargs,
        )

    async def run(self, utt: Utterance, *, reserved: bool = False) -> TurnResult:
        """Run one turn. `reserved` means the caller already holds the lane via `progress.begin`."""
        lane = utt.lane
        if not reserved and not self.progress.begin(lane):
            self._release(utt)
            result = TurnResult(outcome=Outcome.BUSY, lane=lane, message=MESSAGES[Outcome.BUSY])
            return self._report(result)

        scratch = self._scratch[lane]
        scratch.clear()
        try:
            result = await self._run_stages(utt, scratch)
        except StageTimeout as e:
            _log_event(logging.WARNING, "turn_timeout", lane=lane.value, stage=e.stage, seconds=e.seconds)
            result = self._result(Outcome.TIMEOUT, lane, scratch)
        except DegenerateTranscriptError as e:
            _log_event(logging.WARNING, "turn_degenerate_transcript", lane=lane.value, reason=e.reason)
            result = self._result(Outcome.SYSTEM_ERROR, lane, scratch)
        except Exception as e:
            logger.exception("turn_error", extra={"lane": lane.value})
            result = self._result(Outcome.ERROR, lane, scratch, message=user_message(e))
        finally:
            self._cleanup(utt, scratch)
        return self._report(result)

    def _report(self, result: TurnResult) -> TurnResult:
        _log_event(
            logging.INFO if result.ok else logging.WARNING,
            "turn_completed" if result.outcome is Outcome.COMPLETED else "turn_ended",
            lane=result.lane.value,
            outcome=result.outcome.value,
            turn_id=result.turn.id if result.turn is not None else None,
        )
        if result.message and self.on_message is not None:
            self.on_message(result.lane, result.message)
        if self.on_result is not None:
            self.on_result(result)
        return result

    def _release(self, utt: Utterance) -> None:
        try:
            self.release_capture(utt.session_id)
        except Exception:
            logger.exception("capture_release_failed", extra={"session_id": utt.session_id})

    def _cleanup(self, utt: Utterance, scratch: Scratch) -> None:
        self._release(utt)
        try:
            self.progress.hide_all(utt.lane)
        except Exception:
            logger.exception("progress_reset_failed", extra={"lane": utt.lane.value})
        scratch.clear()
        self.progress.finish(utt.lane)

    async def _run_stages(self, utt: Utterance, scratch: Scratch) -> TurnResult:
        lane = utt.lane
        source = utt.language or self.context.language_for(lane)
        target = self.context.language_for(lane.other)

        # 1. transcribe
        self.progress.show(lane, Stage.END)
        if utt.text is not None:
            text = utt.text.strip()
            confidence = score(text)
        else:
            transcription = await self._stage(
                "transcribe",
                self.transcriber.transcribe,
                utt.audio,
                language=source,
                prompt=transcription_prompt(source),
                mime_type=utt.mime_type,
            )
            text = (transcription.text or "").strip()
            self._warn(lane, scratch, transcription.language_warning)
            confidence = transcription.confidence if transcription.confidence is not None else score(text)
        if not text:
            return self._result(Outcome.NO_SPEECH, lane, scratch)

        # 2. language gate
        self.progress.show(lane, Stage.POST_TRANSCRIPTION)
        checked = gate(text, source)
        self._warn(lane, scratch, checked.warning)
        if checked.no_speech:
            return self._result(Outcome.NO_SPEECH, lane, scratch)
        scratch.transcript = checked.text

        # 3. translate
        request = TranslationRequest(
            text=checked.text,
            source_lang=source,
            target_lang=target,
            selection_context=self.context.selection(),
        )
        translation = await self._stage("translate", self.translator.translate, request)
        translated = (translation.translated_text or "").strip()
        if not translated:
            if is_in_language(checked.text, target):
                _log_event(logging.INFO, "translation_suppressed", lane=lane.value, target=target)
                return self._result(Outcome.SUPPRESSED, lane, scratch, message=None)
            return self._result(Outcome.TRANSLATION_FAILED, lane, scratch)
        scratch.translation = translated

        # 4. synthesize
        self.progress.show(lane, Stage.INTERMEDIATE)
        speech = SpeechRequest(
            text=translated,
            voice=self.context.voice,
            format=self.context.audio_format,
            speed=self.context.speech_rate,
        )
        audio = await self._stage("synthesize", self.synthesizer.synthesize, speech)
        if not audio:
            return self._result(Outcome.AUDIO_FAILED, lane, scratch)
        scratch.audio = audio

        # 5. persist and present
        self.progress.show(lane, Stage.FINALIZING)
        new_turn = NewTurn(
            original_text=checked.text,
            translated_text=translated,
            source_language=source,
            target_language=target,
            confidence=turn_confidence(confidence, translation_confidence(checked.text, translated)),
            duration_seconds=utt.duration_sec or None,
        )
        # Unbounded: a save that outlives stage_timeout still lands on disk.
        turn = await asyncio.to_thread(self.history.add_turn, new_turn, audio, speech.format)
        if self.playback is not None:
            self.playback.push(PlaybackItem(audio=audio, lane=lane, turn_id=turn.id, format=speech.format))
        return self._result(Outcome.COMPLETED, lane, scratch, message=None, turn=turn)
