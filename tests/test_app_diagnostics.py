from __future__ import annotations

import pytest

from voicetutor.app.diagnostics import (
    DiagnosticsLog,
    classify_close_reason,
    hint_for_exception,
    summarize_exception,
)


def test_summarize_exception_picks_last_meaningful_line() -> None:
    detail = (
        "Traceback (most recent call last):\n"
        '  File "x.py", line 1, in <module>\n'
        "    boom()\n"
        "RuntimeError: failed to open channel"
    )
    assert summarize_exception(detail) == "RuntimeError: failed to open channel"


def test_summarize_exception_truncates_long_line() -> None:
    detail = "ValueError: " + ("x" * 500)
    out = summarize_exception(detail, max_len=60)
    assert out.startswith("ValueError: ")
    assert out.endswith("...")
    assert len(out) <= 60


def test_hint_for_exception_leaked_key() -> None:
    hint = hint_for_exception("Your API key was reported as leaked. Please use another API key.")
    assert "leaked" in hint


def test_hint_for_exception_token_server() -> None:
    hint = hint_for_exception("Token server error (500): boom")
    assert "Token server failed" in hint


def test_hint_for_exception_default() -> None:
    hint = hint_for_exception("RuntimeError: unknown")
    assert hint == "Check logs for full traceback."


@pytest.mark.parametrize(
    ("reason", "verdict"),
    [
        ("Your API key was reported as leaked.", "leaked"),
        ("Auth token expired", "expired"),
        ("API key not valid. Please pass a valid API key.", "invalid"),
        ("PERMISSION_DENIED", "permission"),
        ("RESOURCE_EXHAUSTED: quota exceeded", "quota"),
        ("normal closure", None),
        ("", None),
    ],
)
def test_classify_close_reason(reason: str, verdict) -> None:
    assert classify_close_reason(reason) == verdict


def test_diagnostics_log_evicts_oldest() -> None:
    diag = DiagnosticsLog(capacity=3)
    for i in range(5):
        diag.info("tick", i=i)
    assert len(diag) == 3
    assert [ev.data["i"] for ev in diag.last(10)] == [2, 3, 4]


def test_diagnostics_log_format_lines_tail() -> None:
    diag = DiagnosticsLog(capacity=10)
    diag.info("start_pressed", level="A1")
    diag.error("send_failed")
    lines = diag.format_lines(1).splitlines()
    assert len(lines) == 1
    assert "[error] send_failed" in lines[0]
    assert diag.last(0) == []


def test_diagnostics_log_rejects_unknown_level() -> None:
    diag = DiagnosticsLog()
    with pytest.raises(ValueError):
        diag.push("fatal", "boom")


def test_diagnostics_info_accepts_level_field() -> None:
    diag = DiagnosticsLog(capacity=4)
    ev = diag.info("start_pressed", target_language="French", level="Beginner (A1-A2)")
    assert ev.level == "info"
    assert ev.data == {"target_language": "French", "level": "Beginner (A1-A2)"}
