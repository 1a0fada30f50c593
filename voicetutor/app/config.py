from __future__ import annotations

import argparse
import copy
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir

from voicetutor.live.prompt import DEFAULT_MODEL, DEFAULT_VOICE, STUDENT_LEVELS, TARGET_LANGUAGES

DEFAULTS: dict[str, Any] = {
    "list_devices": False,
    "input_device": None,
    "output_device": None,
    "input_sr": 16000,
    "output_sr": 24000,
    "frame_size": 4096,
    "barge_in_rms": 0.03,
    "rms_stride": 8,
    "target_language": "English",
    "level": "Beginner (A1-A2)",
    "token_url": "",
    "api_key_env": "GEMINI_API_KEY",
    "model": DEFAULT_MODEL,
    "voice": DEFAULT_VOICE,
    "open_timeout_sec": 15.0,
    "token_timeout_sec": 10.0,
    "diag_capacity": 200,
    "poll_ms": 60,
    "queue_maxsize": 32,
    "print_console": False,
    "debug": False,
}
CONFIG_KEYS: tuple[str, ...] = tuple(DEFAULTS.keys())


@dataclass(frozen=True)
class AppPaths:
    config_dir: Path
    config_path: Path


def app_paths() -> AppPaths:
    config_dir = Path(user_config_dir("VoiceTutor", "VoiceTutor"))
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
    out = copy.deepcopy(DEFAULTS)
    env_url = os.getenv("VOICETUTOR_TOKEN_URL", "").strip()
    if env_url:
        out["token_url"] = env_url
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
    defaults = load_default_config()
    if config_path:
        path = Path(config_path)
        existing = _known_only(_load_json_dict(path)) if path.exists() else {}
    else:
        path = ensure_user_config_exists(defaults)
        existing = _known_only(_load_json_dict(path))
    merged = dict(defaults)
    merged.update(existing)
    merged.update(payload)
    _write_json_dict(path, _known_only(merged))
    return path


def resolve_defaults(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    return load_user_config(config_path=config_path)


def parser_with_defaults(defaults: dict[str, Any]) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="voicetutor")
    p.add_argument("--config", default=None, help="JSON config path (CLI flags override config)")
    p.add_argument("--list-devices", action="store_true", help="print audio devices and exit")
    p.add_argument(
        "--input-device", type=int, default=defaults["input_device"], help="sounddevice input device id"
    )
    p.add_argument(
        "--output-device", type=int, default=defaults["output_device"], help="sounddevice output device id"
    )
    p.add_argument("--input-sr", type=int, default=defaults["input_sr"], help="capture sample rate (Hz)")
    p.add_argument("--output-sr", type=int, default=defaults["output_sr"], help="playback sample rate (Hz)")
    p.add_argument(
        "--frame-size", type=int, default=defaults["frame_size"], help="samples per captured frame"
    )
    p.add_argument(
        "--barge-in-rms",
        type=float,
        default=defaults["barge_in_rms"],
        help="approximate RMS above which talking over playback interrupts it",
    )
    p.add_argument(
        "--rms-stride", type=int, default=defaults["rms_stride"], help="sample stride for the RMS estimate"
    )
    p.add_argument(
        "--target-language",
        default=defaults["target_language"],
        choices=list(TARGET_LANGUAGES),
        help="language to practice",
    )
    p.add_argument(
        "--level", default=defaults["level"], choices=list(STUDENT_LEVELS), help="student level"
    )
    p.add_argument("--token-url", default=defaults["token_url"], help="ephemeral token endpoint")
    p.add_argument(
        "--api-key-env",
        default=defaults["api_key_env"],
        help="env var with a developer API key, used only when --token-url is empty",
    )
    p.add_argument("--model", default=defaults["model"], help="live model name")
    p.add_argument("--voice", default=defaults["voice"], help="prebuilt voice name")
    p.add_argument(
        "--open-timeout-sec",
        type=float,
        default=defaults["open_timeout_sec"],
        help="max wait for the channel handshake",
    )
    p.add_argument(
        "--token-timeout-sec",
        type=float,
        default=defaults["token_timeout_sec"],
        help="max wait for the token endpoint",
    )
    p.add_argument(
        "--diag-capacity", type=int, default=defaults["diag_capacity"], help="diagnostics ring size"
    )
    p.add_argument("--poll-ms", type=int, default=defaults["poll_ms"], help="UI poll interval (ms)")
    p.add_argument(
        "--queue-maxsize",
        type=int,
        default=defaults["queue_maxsize"],
        help="max view snapshots queued between worker and UI",
    )
    p.add_argument(
        "--print-console",
        action=argparse.BooleanOptionalAction,
        default=defaults["print_console"],
        help="print finalized transcript entries to console",
    )
    p.add_argument("--debug", action="store_true", help="start with the debug panel open")
    return p


def resolve_args(argv: list[str] | None = None) -> argparse.Namespace:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", default=None)
    pre_args, _ = pre.parse_known_args(argv)
    defaults, _ = resolve_defaults(config_path=pre_args.config)
    parser = parser_with_defaults(defaults)
    args = parser.parse_args(argv)
    if defaults.get("list_devices"):
        args.list_devices = True
    if defaults.get("debug"):
        args.debug = True
    return args
