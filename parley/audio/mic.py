from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)

_MESSAGES = {
    "denied": "Microphone access was denied. Allow microphone access for this terminal and try again.",
    "busy": "The microphone is in use by another application.",
    "absent": "No microphone was found. Try --list-devices and select a device id with --device.",
    "unknown": "Failed to open microphone stream. Try --list-devices and select a device id with --device.",
}


class MicError(RuntimeError):
    def __init__(self, kind: str, message: str | None = None) -> None:
        if kind not in _MESSAGES:
            kind = "unknown"
        self.kind = kind
        super().__init__(message or _MESSAGES[kind])

    @property
    def user_message(self) -> str:
        return str(self)


def classify_device_error(exc: BaseException) -> str:
    text = str(exc).lower()
    if "permission" in text or "not authorized" in text or "access denied" in text:
        return "denied"
    if "unavailable" in text or "busy" in text or "in use" in text:
        return "busy"
    if "no default input" in text or "invalid device" in text or "no such device" in text:
        return "absent"
    if "error querying device" in text or "device unavailable" in text:
        return "absent"
    return "unknown"


@dataclass
class MicHandle:
    """An open capture stream. `close()` is idempotent."""

    stream: object
    sample_rate: int
    channels: int
    closed: bool = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self.stream.stop()
        finally:
            self.stream.close()


FragmentCallback = Callable[[bytes], None]


class SoundDeviceMicSource:
    """
    Live microphone source using the `sounddevice` package (PortAudio).
    Delivers raw PCM16 fragments to a callback on the PortAudio thread.
    """

    def __init__(
        self,
        *,
        sample_rate: Union[int, str] = "auto",
        channels: int = 1,
        device: Optional[int] = None,
        block_seconds: float = 0.1,
    ) -> None:
        if channels not in (1, 2):
            raise ValueError("channels must be 1 or 2 (for now)")
        if isinstance(sample_rate, str):
            if sample_rate != "auto":
                raise ValueError("sample_rate must be a positive int or 'auto'")
        elif int(sample_rate) <= 0:
            raise ValueError("sample_rate must be > 0")
        if block_seconds <= 0:
            raise ValueError("block_seconds must be > 0")

        self.sample_rate = sample_rate
        self.channels = int(channels)
        self.device = device
        self.block_seconds = float(block_seconds)

    @staticmethod
    def list_devices() -> str:
        try:
            import sounddevice as sd
        except ImportError as e:
            raise MicError(
                "unknown",
                "sounddevice is not installed. Install with: python -m pip install sounddevice",
            ) from e
        return str(sd.query_devices())

    def resolve_sample_rate(self) -> int:
        if self.sample_rate != "auto":
            return int(self.sample_rate)
        import sounddevice as sd

        try:
            info = sd.query_devices(self.device, "input")
        except Exception as e:
            raise MicError(classify_device_error(e)) from e
        return int(round(float(info["default_samplerate"])))

    def open(self, on_fragment: FragmentCallback) -> MicHandle:
        try:
            import sounddevice as sd
        except ImportError as e:
            raise MicError(
                "unknown",
                "sounddevice is not installed. Install with: python -m pip install sounddevice",
            ) from e

        sample_rate = self.resolve_sample_rate()

        def _callback(indata, frames, time_info, status) -> None:
            if status:
                logger.debug("mic_status", extra={"status": str(status)})
            on_fragment(bytes(indata))

        try:
            stream = sd.RawInputStream(
                samplerate=sample_rate,
                channels=self.channels,
                dtype="int16",
                device=self.device,
                blocksize=max(1, int(sample_rate * self.block_seconds)),
                callback=_callback,
            )
        except Exception as e:
            kind = classify_device_error(e)
            logger.warning("mic_open_failed", extra={"kind": kind, "detail": str(e)})
            raise MicError(kind) from e

        try:
            stream.start()
        except Exception as e:
            stream.close()
            kind = classify_device_error(e)
            logger.warning("mic_open_failed", extra={"kind": kind, "detail": str(e)})
            raise MicError(kind) from e

        logger.info(
            "mic_opened",
            extra={"device": self.device, "sample_rate": sample_rate, "channels": self.channels},
        )
        return MicHandle(stream=stream, sample_rate=sample_rate, channels=self.channels)
