from __future__ import annotations

import importlib.util
import ipaddress
import platform
from dataclasses import dataclass, field
from typing import Callable, List, Optional
from urllib.parse import urlparse

from voicetutor.audio.mic import MicError, check_input_available

_LOCAL_HOSTS = {"localhost"}


@dataclass
class PreflightReport:
    ok: bool
    lines: List[str] = field(default_factory=list)

    @property
    def failures(self) -> List[str]:
        return [ln for ln in self.lines if ln.startswith("FAIL")]


def is_secure_url(url: str) -> bool:
    """https anywhere, or plain http to a loopback address."""
    parsed = urlparse(url)
    if parsed.scheme == "https":
        return True
    if parsed.scheme != "http":
        return False
    host = (parsed.hostname or "").lower()
    if host in _LOCAL_HOSTS:
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def _module_available(name: str) -> bool:
    try:
        return importlib.util.find_spec(name) is not None
    except (ImportError, ValueError):
        return False


def run_preflight(
    token_url: str = "",
    *,
    input_device: Optional[int] = None,
    mic_check: Callable[[Optional[int]], bool] = check_input_available,
    module_check: Callable[[str], bool] = _module_available,
) -> PreflightReport:
    lines: List[str] = []

    if token_url and not is_secure_url(token_url):
        lines.append(f"FAIL token endpoint is not https/localhost: {token_url}")
    elif token_url:
        lines.append("OK token endpoint is https/localhost.")
    else:
        lines.append("OK no token endpoint configured (developer key mode).")

    try:
        mic_ok = mic_check(input_device)
    except MicError as e:
        mic_ok = False
        lines.append(f"FAIL microphone API unavailable: {e}")
    else:
        if mic_ok:
            lines.append("OK microphone input device available.")
        else:
            lines.append("FAIL no microphone input device found.")

    if module_check("google.genai"):
        lines.append("OK streaming channel API (google-genai) available.")
    else:
        lines.append("FAIL streaming channel API (google-genai) not installed.")

    lines.append(f"INFO platform: {platform.platform()} / python {platform.python_version()}")
    ok = not any(ln.startswith("FAIL") for ln in lines)
    return PreflightReport(ok=ok, lines=lines)
