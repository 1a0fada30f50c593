from __future__ import annotations

from typing import Optional, Sequence


class SessionError(RuntimeError):
    pass


class PreflightFailure(SessionError):
    def __init__(self, report: Sequence[str]) -> None:
        failed = [ln for ln in report if ln.startswith("FAIL")]
        super().__init__("Preflight failed: " + "; ".join(failed or list(report)))
        self.report = list(report)


class PermissionDenied(SessionError):
    pass


class CredentialFailure(SessionError):
    pass


class ChannelOpenFailure(SessionError):
    pass


class ChannelRuntimeError(SessionError):
    pass


class ChannelClosedByRemote(SessionError):
    def __init__(self, reason: str = "", verdict: Optional[str] = None) -> None:
        super().__init__(reason or "channel closed by remote")
        self.reason = reason
        self.verdict = verdict

    @property
    def credential_rejected(self) -> bool:
        return self.verdict in ("leaked", "expired", "invalid", "permission")


class SendFailure(SessionError):
    pass
