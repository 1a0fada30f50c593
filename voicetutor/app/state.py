from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SessionState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPED = "stopped"


_ALLOWED = {
    SessionState.IDLE: {SessionState.STARTING, SessionState.STOPPED},
    SessionState.STARTING: {SessionState.ACTIVE, SessionState.STOPPED},
    SessionState.ACTIVE: {SessionState.STOPPED},
    SessionState.STOPPED: set(),
}


@dataclass
class SessionStateTracker:
    state: SessionState = SessionState.IDLE
    status: str = "Click start to begin"
    last_error: str | None = None
    needs_attention: bool = False
    credential_rejected: bool = False

    def _move(self, target: SessionState) -> bool:
        if target == self.state:
            return False
        if target not in _ALLOWED[self.state]:
            raise ValueError(f"invalid session transition {self.state.value} -> {target.value}")
        self.state = target
        return True

    @property
    def is_live(self) -> bool:
        return self.state in (SessionState.STARTING, SessionState.ACTIVE)

    def set_starting(self) -> None:
        self._move(SessionState.STARTING)
        self.last_error = None
        self.needs_attention = False
        self.credential_rejected = False

    def set_active(self, status: str) -> None:
        self._move(SessionState.ACTIVE)
        self.status = status

    def set_stopped(self) -> bool:
        return self._move(SessionState.STOPPED)

    def set_status(self, status: str) -> None:
        self.status = status

    def set_error(self, detail: str, status: str | None = None) -> None:
        self.last_error = detail
        self.needs_attention = True
        if status is not None:
            self.status = status
