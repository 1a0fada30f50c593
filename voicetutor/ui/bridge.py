from __future__ import annotations

import queue
from typing import Optional

from voicetutor.contracts import SessionView


class SessionViewBus:
    """
    Thread-safe handoff from the session loop thread -> UI thread.
    Session pushes SessionView snapshots. UI polls (non-blocking).
    """
    def __init__(self, maxsize: int = 32):
        self.q: "queue.Queue[SessionView]" = queue.Queue(maxsize=maxsize)

    def push(self, view: SessionView) -> None:
        try:
            self.q.put_nowait(view)
        except queue.Full:
            # drop oldest to keep UI responsive
            try:
                _ = self.q.get_nowait()
            except queue.Empty:
                return
            try:
                self.q.put_nowait(view)
            except queue.Full:
                return

    def pop(self) -> Optional[SessionView]:
        try:
            return self.q.get_nowait()
        except queue.Empty:
            return None

    def latest(self) -> Optional[SessionView]:
        """Drain the queue and return only the newest snapshot."""
        newest = None
        while True:
            view = self.pop()
            if view is None:
                return newest
            newest = view
