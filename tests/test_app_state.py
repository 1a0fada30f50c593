from __future__ import annotations

import pytest

from voicetutor.app.state import SessionState, SessionStateTracker


def test_state_tracker_happy_path() -> None:
    tracker = SessionStateTracker()
    assert tracker.state == SessionState.IDLE
    assert tracker.last_error is None
    assert not tracker.is_live

    tracker.set_starting()
    assert tracker.state == SessionState.STARTING
    assert tracker.is_live

    tracker.set_active("Connected")
    assert tracker.state == SessionState.ACTIVE
    assert tracker.status == "Connected"

    assert tracker.set_stopped() is True
    assert tracker.state == SessionState.STOPPED
    assert tracker.set_stopped() is False


def test_state_tracker_rejects_backward_transition() -> None:
    tracker = SessionStateTracker()
    tracker.set_starting()
    tracker.set_stopped()
    with pytest.raises(ValueError):
        tracker.set_starting()


def test_state_tracker_error_flags_clear_on_restart() -> None:
    tracker = SessionStateTracker()
    tracker.set_error("boom", "Failed to start: boom")
    tracker.credential_rejected = True
    assert tracker.needs_attention
    assert tracker.status == "Failed to start: boom"

    tracker.set_starting()
    assert tracker.last_error is None
    assert not tracker.needs_attention
    assert not tracker.credential_rejected
