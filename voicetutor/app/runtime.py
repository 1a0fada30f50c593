from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Callable, Optional

from voicetutor.app.diagnostics import DiagnosticsLog
from voicetutor.app.services import build_session
from voicetutor.app.state import SessionState
from voicetutor.contracts import TranscriptEntry
from voicetutor.live.session import RealtimeSession
from voicetutor.ui.bridge import SessionViewBus

_BUSY = (SessionState.STARTING, SessionState.ACTIVE)


def _log_event(logger: logging.Logger | None, level: int, event: str, /, **fields: Any) -> None:
    if logger is None:
        return
    logger.log(level, event, extra=fields)


def format_entry_line(entry: TranscriptEntry) -> str:
    who = "YOU" if entry.speaker == "user" else "TUTOR"
    return f"[{entry.id:03d}] {who}: {entry.text}"


class SessionRunner:
    """
    Owns the asyncio loop thread that every RealtimeSession runs on.
    Each start() builds a fresh session; views flow to the UI through `bus`.
    """

    def __init__(
        self,
        args: Any,
        bus: SessionViewBus,
        logger: logging.Logger | None = None,
        *,
        session_factory: Callable[..., RealtimeSession] = build_session,
    ) -> None:
        self.args = args
        self.bus = bus
        self.logger = logger
        self.diagnostics = DiagnosticsLog(
            capacity=max(1, int(getattr(args, "diag_capacity", 200))),
            sink=logger,
        )
        self._session_factory = session_factory
        self._session: Optional[RealtimeSession] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def session(self) -> Optional[RealtimeSession]:
        return self._session

    def is_busy(self) -> bool:
        session = self._session
        return session is not None and session.state in _BUSY

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None and self._thread is not None and self._thread.is_alive():
            return self._loop
        loop = asyncio.new_event_loop()
        thread = threading.Thread(
            target=loop.run_forever,
            name="voicetutor-session-loop",
            daemon=True,
        )
        thread.start()
        self._loop = loop
        self._thread = thread
        _log_event(self.logger, logging.INFO, "session_loop_started")
        return loop

    def _print_entries(self, entries: list[TranscriptEntry]) -> None:
        for entry in entries:
            print(format_entry_line(entry))

    def start(self, target_language: str, level: str) -> Optional[concurrent.futures.Future]:
        with self._lock:
            if self.is_busy():
                _log_event(self.logger, logging.INFO, "start_ignored_busy")
                return None
            loop = self._ensure_loop()
            session = self._session_factory(
                self.args,
                target_language,
                level,
                diagnostics=self.diagnostics,
                on_change=self.bus.push,
                on_entries=self._print_entries if bool(getattr(self.args, "print_console", False)) else None,
            )
            self._session = session
            _log_event(
                self.logger,
                logging.INFO,
                "session_start_requested",
                target_language=target_language,
                level=level,
            )
            return asyncio.run_coroutine_threadsafe(session.start(), loop)

    def stop(self) -> None:
        with self._lock:
            session = self._session
            loop = self._loop
            if session is None or loop is None or loop.is_closed():
                return
            loop.call_soon_threadsafe(session.stop)
            _log_event(self.logger, logging.INFO, "session_stop_requested")

    async def _teardown(self, session: Optional[RealtimeSession], timeout: float) -> int:
        """Stop the session, then let pending close tasks finish. Returns how many were cancelled."""
        if session is not None:
            session.stop()
        current = asyncio.current_task()
        pending = [t for t in asyncio.all_tasks() if t is not current and not t.done()]
        if not pending:
            return 0
        _, still = await asyncio.wait(pending, timeout=timeout)
        for task in still:
            task.cancel()
        await asyncio.gather(*still, return_exceptions=True)
        return len(still)

    def shutdown(self, timeout: float = 2.0) -> None:
        with self._lock:
            session = self._session
            loop = self._loop
            thread = self._thread
            self._loop = None
            self._thread = None
        if loop is None:
            return
        cancelled = 0
        if thread is not None and thread.is_alive():
            fut = asyncio.run_coroutine_threadsafe(self._teardown(session, timeout), loop)
            try:
                cancelled = fut.result(timeout=timeout + 1.0)
            except Exception:
                if self.logger is not None:
                    self.logger.exception("session_teardown_failed")
            loop.call_soon_threadsafe(loop.stop)
            thread.join(timeout=timeout)
        if not loop.is_running():
            loop.close()
        _log_event(self.logger, logging.INFO, "session_loop_stopped", cancelled_tasks=cancelled)
