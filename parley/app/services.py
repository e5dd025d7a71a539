from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional

from openai import OpenAI

from parley.asr.base import Transcriber
from parley.asr.factory import get_transcriber
from parley.audio.mic import SoundDeviceMicSource
from parley.audio.playback import PlaybackQueue, SoundDevicePlayer
from parley.audio.vad import EnergyVAD
from parley.audio.vad_webrtc import WebRtcVad
from parley.nlp.translator.base import Translator
from parley.nlp.translator.factory import get_translator
from parley.tts.openai_speech import OpenAISpeechSynthesizer

WEBRTC_DEFAULT_SR = 16000


@dataclass(frozen=True)
class ConversationServices:
    mic: SoundDeviceMicSource
    detector: Any
    transcriber: Transcriber
    translator: Translator
    synthesizer: OpenAISpeechSynthesizer
    playback_queue: PlaybackQueue
    player: Optional[SoundDevicePlayer]


def make_openai_client() -> OpenAI:
    api_key = os.environ.get("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set.")
    return OpenAI(api_key=api_key)


def build_detector(args: Any, sample_rate: int | str) -> Any:
    if str(args.vad) == "webrtc":
        return WebRtcVad(sr=int(sample_rate), aggressiveness=int(args.vad_aggressiveness))
    return EnergyVAD(rms_threshold=float(args.rms_th))


def build_services(args: Any, *, client: Any = None) -> ConversationServices:
    if client is None:
        client = make_openai_client()

    sample_rate = args.sr
    if str(args.vad) == "webrtc" and sample_rate == "auto":
        # WebRTC VAD only takes 8/16/32/48 kHz, so the device default cannot be trusted.
        sample_rate = WEBRTC_DEFAULT_SR

    mic = SoundDeviceMicSource(
        sample_rate=sample_rate,
        channels=int(args.channels),
        device=args.device,
    )
    detector = build_detector(args, sample_rate)
    transcriber = get_transcriber(
        str(args.transcriber),
        client=client,
        model=str(args.asr_model),
        local_model=str(args.local_model),
    )
    translator = get_translator(str(args.translator), client=client, model=str(args.translate_model))
    synthesizer = OpenAISpeechSynthesizer(client, model=str(args.tts_model))
    playback_queue = PlaybackQueue(maxsize=max(1, int(args.playback_queue_size)))
    player = SoundDevicePlayer(playback_queue) if args.playback else None
    return ConversationServices(
        mic=mic,
        detector=detector,
        transcriber=transcriber,
        translator=translator,
        synthesizer=synthesizer,
        playback_queue=playback_queue,
        player=player,
    )
