from __future__ import annotations

import argparse
import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir

from parley.nlp.languages import LANGUAGES

DEFAULTS: dict[str, Any] = {
    "list_devices": False,
    "device": None,
    "sr": "auto",
    "channels": 1,
    "vad": "energy",
    "rms_th": 250.0,
    "vad_aggressiveness": 2,
    "idle_timeout_sec": 90.0,
    "silence_timeout_sec": 2.5,
    "flush_interval_sec": 5.0,
    "primary_language": "en",
    "counterpart_language": "ky",
    "transcriber": "openai",
    "translator": "openai",
    "asr_model": "whisper-1",
    "local_model": "small",
    "translate_model": "gpt-4o-mini",
    "tts_model": "gpt-4o-mini-tts",
    "voice": "alloy",
    "speech_rate": 1.0,
    "platform": "desktop",
    "stage_timeout_sec": None,
    "identity": "anonymous",
    "history_dir": None,
    "playback": True,
    "playback_queue_size": 8,
    "debug": False,
}
CONFIG_KEYS: tuple[str, ...] = tuple(DEFAULTS.keys())

PLATFORM_STAGE_TIMEOUTS = {"mobile": 20.0, "desktop": 30.0}


@dataclass(frozen=True)
class AppPaths:
    config_dir: Path
    config_path: Path


def default_asset_config_path() -> Path:
    return Path(__file__).resolve().parents[2] / "assets" / "config" / "default.json"


def app_paths() -> AppPaths:
    config_dir = Path(user_config_dir("Parley", "Parley"))
    return AppPaths(config_dir=config_dir, config_path=config_dir / "config.json")


def _load_json_dict(path: Path) -> dict[str, Any]:
    # Accept UTF-8 with or without BOM for Windows-edited config files.
    with path.open("r", encoding="utf-8-sig") as f:
        loaded = json.load(f)
    if not isinstance(loaded, dict):
        raise ValueError(f"config must be a JSON object: {path}")
    return loaded


def _write_json_dict(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
        f.write("\n")


def _known_only(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: payload[key] for key in CONFIG_KEYS if key in payload}


def load_default_config() -> dict[str, Any]:
    path = default_asset_config_path()
    out = copy.deepcopy(DEFAULTS)
    if path.exists():
        out.update(_known_only(_load_json_dict(path)))
    return out


def ensure_user_config_exists(defaults: dict[str, Any] | None = None) -> Path:
    paths = app_paths()
    if paths.config_path.exists():
        return paths.config_path
    _write_json_dict(paths.config_path, defaults or load_default_config())
    return paths.config_path


def load_user_config(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    defaults = load_default_config()
    if config_path:
        chosen = Path(config_path)
        if not chosen.exists():
            raise SystemExit(f"Config file not found: {chosen}")
    else:
        chosen = ensure_user_config_exists(defaults)
    merged = dict(defaults)
    merged.update(_known_only(_load_json_dict(chosen)))
    return merged, chosen


def save_user_config(values: dict[str, Any], config_path: str | None = None) -> Path:
    payload = _known_only(values)
    path = Path(config_path) if config_path else ensure_user_config_exists()
    existing = _known_only(_load_json_dict(path)) if path.exists() else {}
    merged = dict(load_default_config())
    merged.update(existing)
    merged.update(payload)
    _write_json_dict(path, _known_only(merged))
    return path


def resolve_defaults(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    return load_user_config(config_path=config_path)


def sample_rate_arg(value: Any) -> int | str:
    if value is None or str(value).strip().lower() == "auto":
        return "auto"
    sr = int(value)
    if sr <= 0:
        raise argparse.ArgumentTypeError("sample rate must be > 0 or 'auto'")
    return sr


def stage_timeout_for(args: Any) -> float:
    explicit = getattr(args, "stage_timeout_sec", None)
    if explicit:
        return float(explicit)
    return PLATFORM_STAGE_TIMEOUTS.get(str(getattr(args, "platform", "desktop")), PLATFORM_STAGE_TIMEOUTS["desktop"])


def parser_with_defaults(defaults: dict[str, Any]) -> argparse.ArgumentParser:
    languages = sorted(LANGUAGES)
    p = argparse.ArgumentParser(prog="parley", description="Live two-party speech translation")
    p.add_argument("--config", default=None, help="JSON config path (CLI flags override config)")
    p.add_argument("--list-devices", action="store_true", help="print audio devices and exit")
    p.add_argument("--device", type=int, default=defaults["device"], help="sounddevice input device id")
    p.add_argument("--sr", type=sample_rate_arg, default=defaults["sr"], help="sample rate (Hz) or 'auto'")
    p.add_argument("--channels", type=int, default=defaults["channels"], help="input channels")
    p.add_argument("--vad", default=defaults["vad"], choices=["energy", "webrtc"], help="activity detector")
    p.add_argument("--rms-th", type=float, default=defaults["rms_th"], help="RMS threshold for the energy detector")
    p.add_argument(
        "--vad-aggressiveness",
        type=int,
        default=defaults["vad_aggressiveness"],
        choices=[0, 1, 2, 3],
        help="WebRTC VAD aggressiveness",
    )
    p.add_argument(
        "--idle-timeout-sec",
        type=float,
        default=defaults["idle_timeout_sec"],
        help="stop a session that never heard speech after this long",
    )
    p.add_argument(
        "--silence-timeout-sec",
        type=float,
        default=defaults["silence_timeout_sec"],
        help="stop after this much silence following speech",
    )
    p.add_argument(
        "--flush-interval-sec",
        type=float,
        default=defaults["flush_interval_sec"],
        help="compact captured audio this often",
    )
    p.add_argument("--primary-language", default=defaults["primary_language"], choices=languages)
    p.add_argument("--counterpart-language", default=defaults["counterpart_language"], choices=languages)
    p.add_argument("--transcriber", default=defaults["transcriber"], choices=["openai", "local"])
    p.add_argument("--translator", default=defaults["translator"], choices=["openai", "argos", "stub"])
    p.add_argument("--asr-model", default=defaults["asr_model"], help="OpenAI transcription model")
    p.add_argument("--local-model", default=defaults["local_model"], help="faster-whisper model size")
    p.add_argument("--translate-model", default=defaults["translate_model"], help="OpenAI chat model")
    p.add_argument("--tts-model", default=defaults["tts_model"], help="OpenAI speech model")
    p.add_argument("--voice", default=defaults["voice"], help="speech voice")
    p.add_argument("--speech-rate", type=float, default=defaults["speech_rate"], help="speech speed (0.25-4.0)")
    p.add_argument(
        "--platform",
        default=defaults["platform"],
        choices=sorted(PLATFORM_STAGE_TIMEOUTS),
        help="platform profile; selects the default stage timeout",
    )
    p.add_argument(
        "--stage-timeout-sec",
        type=float,
        default=defaults["stage_timeout_sec"],
        help="per-stage timeout (default from --platform)",
    )
    p.add_argument("--identity", default=defaults["identity"], help="history ledger owner")
    p.add_argument("--history-dir", default=defaults["history_dir"], help="history directory")
    p.add_argument(
        "--playback",
        action=argparse.BooleanOptionalAction,
        default=defaults["playback"],
        help="play synthesized speech",
    )
    p.add_argument(
        "--playback-queue-size",
        type=int,
        default=defaults["playback_queue_size"],
        help="max clips waiting for playback",
    )
    p.add_argument("--debug", action="store_true", help="log at DEBUG level")
    return p


def resolve_args(argv: list[str] | None = None) -> argparse.Namespace:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", default=None)
    pre_args, _ = pre.parse_known_args(argv)
    defaults, _ = resolve_defaults(config_path=pre_args.config)
    defaults["sr"] = sample_rate_arg(defaults.get("sr"))
    parser = parser_with_defaults(defaults)
    args = parser.parse_args(argv)
    if defaults.get("list_devices"):
        args.list_devices = True
    if defaults.get("debug"):
        args.debug = True
    return args
