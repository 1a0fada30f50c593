from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import numpy as np

from voicetutor.audio.codec import duration_seconds

logger = logging.getLogger("voicetutor.audio.playback")


class PlaybackSource(Protocol):
    def stop(self) -> None:
        ...


class OutputContext(Protocol):
    """The playback-rate audio device and its clock."""

    sample_rate: int

    @property
    def current_time(self) -> float:
        ...

    def start_source(
        self,
        samples: np.ndarray,
        when: float,
        on_ended: Callable[[], None],
    ) -> PlaybackSource:
        ...

    def close(self) -> None:
        ...


@dataclass(eq=False)
class PlaybackChunk:
    start_time: float
    duration: float
    source: PlaybackSource

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration


class PlaybackScheduler:
    """
    Keeps scheduled chunks on one contiguous timeline:
    each chunk starts at max(next_start_time, now) and pushes
    next_start_time forward by its duration.
    """

    def __init__(self, context: OutputContext) -> None:
        self.context = context
        self.next_start_time = 0.0
        self._active: set[PlaybackChunk] = set()

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def has_active(self) -> bool:
        return bool(self._active)

    def schedule(self, samples: np.ndarray, rate: int) -> Optional[PlaybackChunk]:
        n = int(len(samples))
        if n == 0:
            return None
        start = max(self.next_start_time, float(self.context.current_time))
        duration = duration_seconds(n, rate)

        chunk: Optional[PlaybackChunk] = None

        def _ended() -> None:
            if chunk is not None:
                self._active.discard(chunk)

        source = self.context.start_source(samples, start, _ended)
        chunk = PlaybackChunk(start_time=start, duration=duration, source=source)
        self.next_start_time = start + duration
        self._active.add(chunk)
        return chunk

    def _stop_all(self) -> None:
        for chunk in list(self._active):
            try:
                chunk.source.stop()
            except Exception:
                logger.exception("playback_source_stop_failed")
        self._active.clear()

    def interrupt(self) -> int:
        """Force-stop everything scheduled and restart the timeline at now."""
        stopped = len(self._active)
        self._stop_all()
        self.next_start_time = float(self.context.current_time)
        return stopped

    def reset(self) -> None:
        self._stop_all()
        self.next_start_time = 0.0


class _ScheduledSource:
    def __init__(
        self,
        ctx: "SoundDeviceOutputContext",
        samples: np.ndarray,
        start_frame: int,
        on_ended: Callable[[], None],
    ) -> None:
        self._ctx = ctx
        self.samples = samples
        self.start_frame = start_frame
        self.end_frame = start_frame + len(samples)
        self.on_ended = on_ended

    def stop(self) -> None:
        self._ctx._remove(self)


class SoundDeviceOutputContext:
    """
    Output device backed by a `sounddevice.OutputStream`.
    The stream callback mixes every scheduled source into each block;
    the device clock is the number of frames rendered so far.
    """

    def __init__(
        self,
        *,
        sample_rate: int = 24000,
        device: Optional[int] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError("sample_rate must be > 0")
        self.sample_rate = int(sample_rate)
        self.device = device
        self._loop = loop
        self._lock = threading.Lock()
        self._sources: list[_ScheduledSource] = []
        self._frames_rendered = 0
        self._stream = None
        self._closed = False

    def open(self) -> "SoundDeviceOutputContext":
        try:
            import sounddevice as sd
        except (ImportError, OSError) as e:
            raise RuntimeError(
                "sounddevice is not available. Install with: python -m pip install sounddevice"
            ) from e
        self._stream = sd.OutputStream(
            samplerate=self.sample_rate,
            channels=1,
            dtype="float32",
            device=self.device,
            callback=self._callback,
        )
        self._stream.start()
        return self

    @property
    def current_time(self) -> float:
        with self._lock:
            return self._frames_rendered / float(self.sample_rate)

    def start_source(
        self,
        samples: np.ndarray,
        when: float,
        on_ended: Callable[[], None],
    ) -> _ScheduledSource:
        data = np.asarray(samples, dtype=np.float32).reshape(-1)
        with self._lock:
            # start no earlier than the render head
            start_frame = max(int(round(when * self.sample_rate)), self._frames_rendered)
            src = _ScheduledSource(self, data, start_frame, on_ended)
            self._sources.append(src)
        return src

    def _remove(self, src: _ScheduledSource) -> None:
        with self._lock:
            try:
                self._sources.remove(src)
            except ValueError:
                pass

    def _notify_ended(self, src: _ScheduledSource) -> None:
        if self._loop is not None:
            try:
                self._loop.call_soon_threadsafe(src.on_ended)
            except RuntimeError:
                # loop already closed
                pass
        else:
            src.on_ended()

    def render(self, frames: int) -> np.ndarray:
        out = np.zeros(frames, dtype=np.float32)
        ended: list[_ScheduledSource] = []
        with self._lock:
            t0 = self._frames_rendered
            t1 = t0 + frames
            for src in self._sources:
                lo = max(t0, src.start_frame)
                hi = min(t1, src.end_frame)
                if hi > lo:
                    out[lo - t0 : hi - t0] += src.samples[lo - src.start_frame : hi - src.start_frame]
                if src.end_frame <= t1:
                    ended.append(src)
            for src in ended:
                self._sources.remove(src)
            self._frames_rendered = t1
        for src in ended:
            self._notify_ended(src)
        np.clip(out, -1.0, 1.0, out=out)
        return out

    def _callback(self, outdata, frames, time_info, status) -> None:
        outdata[:, 0] = self.render(frames)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        with self._lock:
            self._sources.clear()
        stream = self._stream
        self._stream = None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
