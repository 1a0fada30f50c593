from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Deque, List, Optional

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class DiagEvent:
    ts: str
    level: str
    event: str
    data: Optional[dict[str, Any]] = None

    def format(self) -> str:
        tail = ""
        if self.data:
            tail = " " + json.dumps(self.data, ensure_ascii=False, default=str)
        return f"{self.ts} [{self.level}] {self.event}{tail}"


class DiagnosticsLog:
    """
    Bounded in-memory record of session events for on-demand display.
    Oldest events are evicted once `capacity` is reached. Every push is
    mirrored to `sink` when one is attached.
    """

    def __init__(self, capacity: int = 200, sink: Optional[logging.Logger] = None) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = int(capacity)
        self.sink = sink
        self._events: Deque[DiagEvent] = deque(maxlen=self.capacity)

    def __len__(self) -> int:
        return len(self._events)

    def push(self, level: str, event: str, /, **data: Any) -> DiagEvent:
        if level not in _LEVELS:
            raise ValueError(f"unknown diagnostics level: {level}")
        ts = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        ev = DiagEvent(ts=ts, level=level, event=event, data=dict(data) or None)
        self._events.append(ev)
        if self.sink is not None:
            self.sink.log(_LEVELS[level], event, extra={"data": dict(data)} if data else None)
        return ev

    def info(self, event: str, /, **data: Any) -> DiagEvent:
        return self.push("info", event, **data)

    def warn(self, event: str, /, **data: Any) -> DiagEvent:
        return self.push("warn", event, **data)

    def error(self, event: str, /, **data: Any) -> DiagEvent:
        return self.push("error", event, **data)

    def last(self, n: int = 30) -> List[DiagEvent]:
        if n <= 0:
            return []
        return list(self._events)[-n:]

    def format_lines(self, n: int = 60) -> str:
        return "\n".join(ev.format() for ev in self.last(n))

    def clear(self) -> None:
        self._events.clear()


def summarize_exception(detail: str, *, max_len: int = 220) -> str:
    text = str(detail or "").strip()
    if not text:
        return "Unknown runtime error."
    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    if not lines:
        return "Unknown runtime error."
    for ln in reversed(lines):
        if ln.startswith("File "):
            continue
        if ln.startswith("^"):
            continue
        if ln.startswith("Traceback "):
            continue
        out = ln
        break
    else:
        out = lines[-1]
    if len(out) > max_len:
        return out[: max_len - 3].rstrip() + "..."
    return out


def classify_close_reason(reason: str | None) -> Optional[str]:
    raw = str(reason or "").lower()
    if not raw:
        return None
    if "reported as leaked" in raw:
        return "leaked"
    if "expired" in raw:
        return "expired"
    if "api_key_invalid" in raw or "api key not valid" in raw or "invalid api key" in raw:
        return "invalid"
    if "permission" in raw or "forbidden" in raw or "unauthenticated" in raw:
        return "permission"
    if "quota" in raw or "rate limit" in raw or "resource_exhausted" in raw:
        return "quota"
    return None


def hint_for_exception(summary: str) -> str:
    s = str(summary or "").lower()
    if "no module named" in s:
        return "A required package is missing in this virtualenv. Reinstall dependencies and retry."
    if "config file not found" in s:
        return "Configured JSON file is missing. Update the config path or restore the file."
    if "microphone" in s or "portaudio" in s or "sounddevice" in s:
        return "Microphone init failed. Check input device selection and app mic permissions."
    if "token server" in s or "no token" in s:
        return "Token server failed. Check that it is running and that token_url is correct."
    verdict = classify_close_reason(s)
    if verdict == "leaked":
        return "The server API key was blocked as leaked. Create a new key on the server and restart it."
    if verdict in ("expired", "invalid", "permission"):
        return "The credential was rejected. Check the server API key and restart the token server."
    if verdict == "quota":
        return "Quota or rate limit reached. Wait a bit and press Start again."
    if "timed out" in s or "timeout" in s:
        return "The connection timed out. Check the network and press Start again."
    return "Check logs for full traceback."
