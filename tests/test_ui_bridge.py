from __future__ import annotations

from voicetutor.contracts import SessionView
from voicetutor.ui.bridge import SessionViewBus


def _view(status: str) -> SessionView:
    return SessionView(state="active", status=status, target_language="English", level="Beginner (A1-A2)")


def test_view_bus_drops_oldest_when_full() -> None:
    bus = SessionViewBus(maxsize=2)
    bus.push(_view("one"))
    bus.push(_view("two"))
    bus.push(_view("three"))

    first = bus.pop()
    second = bus.pop()
    assert first is not None and first.status == "two"
    assert second is not None and second.status == "three"
    assert bus.pop() is None


def test_view_bus_latest_keeps_only_newest() -> None:
    bus = SessionViewBus(maxsize=10)
    assert bus.latest() is None
    for i in range(4):
        bus.push(_view(f"v{i}"))
    newest = bus.latest()
    assert newest is not None and newest.status == "v3"
    assert bus.pop() is None
