from __future__ import annotations

from argparse import Namespace

from voicetutor.app import services as app_services
from voicetutor.app.diagnostics import DiagnosticsLog
from voicetutor.live.preflight import PreflightReport
from voicetutor.live.token import EnvKeyTokenProvider, HttpTokenProvider


def _args(token_url: str = "") -> Namespace:
    return Namespace(
        input_sr=16000,
        output_sr=24000,
        frame_size=2048,
        input_device=1,
        output_device=None,
        barge_in_rms=0.04,
        rms_stride=8,
        token_url=token_url,
        api_key_env="GEMINI_API_KEY",
        token_timeout_sec=10.0,
        open_timeout_sec=15.0,
        model="gemini-test",
        voice="Zephyr",
    )


def test_build_session_wires_settings_and_token_provider(monkeypatch) -> None:
    monkeypatch.delenv("VOICETUTOR_TOKEN_URL", raising=False)
    session = app_services.build_session(
        _args("https://tutor.example/api/token"),
        "German",
        "Advanced (C1-C2)",
        diagnostics=DiagnosticsLog(),
    )
    assert session.target_language == "German"
    assert session.settings.barge_in_rms == 0.04
    assert session.settings.model == "gemini-test"
    assert isinstance(session._token_provider, HttpTokenProvider)
    assert session._mic_source.frame_size == 2048
    assert session._mic_source.device == 1


def test_build_session_preflight_uses_token_url_and_device(monkeypatch) -> None:
    monkeypatch.delenv("VOICETUTOR_TOKEN_URL", raising=False)
    captured: dict[str, object] = {}

    def _fake_preflight(token_url, *, input_device=None):
        captured["token_url"] = token_url
        captured["input_device"] = input_device
        return PreflightReport(ok=True, lines=["OK"])

    monkeypatch.setattr(app_services, "run_preflight", _fake_preflight)
    session = app_services.build_session(_args(), "English", "Beginner (A1-A2)", diagnostics=DiagnosticsLog())
    assert isinstance(session._token_provider, EnvKeyTokenProvider)
    assert session._preflight().ok
    assert captured == {"token_url": "", "input_device": 1}
