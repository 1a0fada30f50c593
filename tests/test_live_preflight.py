from __future__ import annotations

from voicetutor.audio.mic import MicError
from voicetutor.live.preflight import is_secure_url, run_preflight


def _all_modules(name: str) -> bool:
    return True


def test_is_secure_url() -> None:
    assert is_secure_url("https://tutor.example/api/token")
    assert is_secure_url("http://localhost:8787/api/token")
    assert is_secure_url("http://127.0.0.1:8787/api/token")
    assert not is_secure_url("http://tutor.example/api/token")
    assert not is_secure_url("ftp://localhost/token")


def test_preflight_passes_with_mic_and_sdk() -> None:
    report = run_preflight(
        "https://tutor.example/api/token",
        mic_check=lambda device: True,
        module_check=_all_modules,
    )
    assert report.ok
    assert report.failures == []
    assert report.lines[-1].startswith("INFO platform:")


def test_preflight_empty_url_is_developer_mode() -> None:
    report = run_preflight("", mic_check=lambda device: True, module_check=_all_modules)
    assert report.ok
    assert "developer key mode" in report.lines[0]


def test_preflight_reports_each_failure() -> None:
    def _no_mic(device):
        raise MicError("sounddevice is not available")

    report = run_preflight(
        "http://tutor.example/token",
        input_device=2,
        mic_check=_no_mic,
        module_check=lambda name: False,
    )
    assert not report.ok
    assert len(report.failures) == 3
    assert any("microphone API unavailable" in ln for ln in report.failures)
    assert any("google-genai" in ln for ln in report.failures)


def test_preflight_passes_device_id_through() -> None:
    seen: list[object] = []
    run_preflight("", input_device=4, mic_check=lambda d: seen.append(d) or False, module_check=_all_modules)
    assert seen == [4]
