"""Realtime tutoring session: capture -> encode -> send, receive -> decode -> play.

One `RealtimeSession` is one streaming conversation. It runs on a single
asyncio loop; the only cross-thread entry point is the microphone callback,
which hops onto the loop with `call_soon_threadsafe`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, fields
from typing import Any, Callable, Optional

import numpy as np

from voicetutor.app.diagnostics import (
    DiagnosticsLog,
    classify_close_reason,
    hint_for_exception,
)
from voicetutor.app.state import SessionState, SessionStateTracker
from voicetutor.audio import codec
from voicetutor.audio.mic import MicError, MicStream, SoundDeviceMicSource
from voicetutor.audio.playback import OutputContext, PlaybackScheduler
from voicetutor.audio.vad import BargeInDetector
from voicetutor.contracts import InboundMessage, OutboundFrame, SessionView, TranscriptEntry
from voicetutor.errors import (
    ChannelClosedByRemote,
    ChannelOpenFailure,
    CredentialFailure,
    PermissionDenied,
    PreflightFailure,
    SessionError,
)
from voicetutor.live.channel import ChannelCallbacks, ChannelConnector, LiveChannel
from voicetutor.live.preflight import PreflightReport
from voicetutor.live.prompt import DEFAULT_MODEL, DEFAULT_VOICE, build_live_config
from voicetutor.live.token import TokenProvider
from voicetutor.live.transcript import TranscriptReconciler

logger = logging.getLogger("voicetutor.live.session")

STATUS_IDLE = "Click start to begin"
STATUS_ENDED = "Session ended. Click start to begin again."
STATUS_CONNECTED = "Connected! Speak normally. (Use headphones)"
STATUS_PREFLIGHT_FAILED = "Preflight failed. Open debug and check the FAIL lines."


@dataclass(frozen=True)
class SessionSettings:
    input_rate: int = 16000
    output_rate: int = 24000
    barge_in_rms: float = 0.03
    rms_stride: int = 8
    token_timeout_sec: float = 10.0
    open_timeout_sec: float = 15.0
    model: str = DEFAULT_MODEL
    voice: str = DEFAULT_VOICE

    @classmethod
    def from_args(cls, args: Any) -> "SessionSettings":
        mapping = {
            "input_rate": "input_sr",
            "output_rate": "output_sr",
            "barge_in_rms": "barge_in_rms",
            "rms_stride": "rms_stride",
            "token_timeout_sec": "token_timeout_sec",
            "open_timeout_sec": "open_timeout_sec",
            "model": "model",
            "voice": "voice",
        }
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            value = getattr(args, mapping[f.name], None)
            if value is not None:
                kwargs[f.name] = type(f.default)(value)
        return cls(**kwargs)


@dataclass
class SessionResources:
    """Every handle a session acquires. Released together, each independently."""

    microphone: Optional[MicStream] = None
    channel: Optional[LiveChannel] = None
    playback: Optional[PlaybackScheduler] = None
    output: Optional[OutputContext] = None

    def release_all(self, diagnostics: DiagnosticsLog) -> list[str]:
        steps: tuple[tuple[str, Callable[[Any], None]], ...] = (
            ("microphone", lambda mic: (mic.disconnect(), mic.close())),
            ("channel", lambda ch: ch.close()),
            ("playback", lambda pb: pb.reset()),
            ("output", lambda out: out.close()),
        )
        failed: list[str] = []
        for name, release in steps:
            handle = getattr(self, name)
            setattr(self, name, None)
            if handle is None:
                continue
            try:
                release(handle)
            except Exception as exc:
                failed.append(name)
                diagnostics.error("release_failed", resource=name, message=str(exc))
        return failed

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


class RealtimeSession:
    def __init__(
        self,
        target_language: str,
        level: str,
        *,
        mic_source: SoundDeviceMicSource,
        token_provider: TokenProvider,
        connector: ChannelConnector,
        output_factory: Callable[[asyncio.AbstractEventLoop], OutputContext],
        preflight: Callable[[], PreflightReport],
        settings: SessionSettings | None = None,
        diagnostics: DiagnosticsLog | None = None,
        on_change: Callable[[SessionView], None] | None = None,
        on_entries: Callable[[list[TranscriptEntry]], None] | None = None,
    ) -> None:
        self.target_language = target_language
        self.level = level
        self.settings = settings or SessionSettings()
        self.diagnostics = diagnostics or DiagnosticsLog()
        self.on_change = on_change
        self.on_entries = on_entries

        self._mic_source = mic_source
        self._token_provider = token_provider
        self._connector = connector
        self._output_factory = output_factory
        self._preflight = preflight

        self._tracker = SessionStateTracker(status=STATUS_IDLE)
        self._resources = SessionResources()
        self._reconciler = TranscriptReconciler()
        self._barge_in = BargeInDetector(self.settings.barge_in_rms, self.settings.rms_stride)
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        self._send_in_flight = False
        self._send_task: Optional[asyncio.Task[None]] = None
        self.frames_sent = 0
        self.frames_dropped = 0

    # -- read side --

    @property
    def state(self) -> SessionState:
        return self._tracker.state

    @property
    def status(self) -> str:
        return self._tracker.status

    @property
    def resources(self) -> SessionResources:
        return self._resources

    @property
    def reconciler(self) -> TranscriptReconciler:
        return self._reconciler

    @property
    def send_in_flight(self) -> bool:
        return self._send_in_flight

    def view(self) -> SessionView:
        return SessionView(
            state=self._tracker.state.value,
            status=self._tracker.status,
            target_language=self.target_language,
            level=self.level,
            entries=self._reconciler.entries,
            live_input=self._reconciler.live_input,
            live_output=self._reconciler.live_output,
            needs_attention=self._tracker.needs_attention,
            credential_rejected=self._tracker.credential_rejected,
            frames_sent=self.frames_sent,
            frames_dropped=self.frames_dropped,
        )

    def _notify(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(self.view())
        except Exception:
            logger.exception("session_on_change_failed")

    def _set_status(self, status: str) -> None:
        self._tracker.set_status(status)
        self._notify()

    def _aborted(self) -> bool:
        return self._tracker.state == SessionState.STOPPED

    # -- lifecycle --

    async def start(self) -> None:
        if self._tracker.state != SessionState.IDLE:
            self.diagnostics.warn("start_ignored", state=self._tracker.state.value)
            return

        self._loop = asyncio.get_running_loop()
        self._tracker.set_starting()
        try:
            self.diagnostics.info(
                "start_pressed", target_language=self.target_language, level=self.level
            )
            await self._start_steps()
        except Exception as exc:
            self._fail_start(exc)

    async def _start_steps(self) -> None:
        self._set_status("Running preflight checks...")
        report = self._preflight()
        for line in report.lines:
            self.diagnostics.push("error" if line.startswith("FAIL") else "info", "preflight", line=line)
        if not report.ok:
            raise PreflightFailure(report.failures)

        self._set_status("Requesting microphone access...")
        try:
            mic = self._mic_source.open(self._on_capture)
        except MicError as exc:
            raise PermissionDenied(f"Microphone access failed: {exc}") from exc
        self._resources.microphone = mic
        self.diagnostics.info("microphone_granted")

        self._set_status("Getting ephemeral token...")
        try:
            token = await asyncio.wait_for(
                self._token_provider.fetch(), timeout=self.settings.token_timeout_sec
            )
        except asyncio.TimeoutError as exc:
            raise CredentialFailure(
                f"Token server timed out after {self.settings.token_timeout_sec:g}s"
            ) from exc
        if self._aborted():
            return
        self.diagnostics.info("token_received")

        config = build_live_config(
            self.target_language,
            self.level,
            model=self.settings.model,
            voice=self.settings.voice,
        )
        self._set_status("Connecting to Gemini Live...")
        callbacks = ChannelCallbacks(
            on_open=self.handle_open,
            on_message=self.handle_message,
            on_close=self.handle_close,
            on_error=self.handle_error,
        )
        try:
            channel = await asyncio.wait_for(
                self._connector.connect(token, config, callbacks),
                timeout=self.settings.open_timeout_sec,
            )
        except asyncio.TimeoutError as exc:
            raise ChannelOpenFailure(
                f"Channel open timed out after {self.settings.open_timeout_sec:g}s"
            ) from exc
        except SessionError:
            raise
        except Exception as exc:
            raise ChannelOpenFailure(str(exc) or type(exc).__name__) from exc

        if self._aborted():
            # stop() ran while the handshake was in flight
            channel.close()
            return
        self._resources.channel = channel
        self.diagnostics.info("channel_ref_set")

    def _fail_start(self, exc: Exception) -> None:
        message = str(exc) or type(exc).__name__
        if self._aborted():
            # stop() already ran; keep its status
            self.diagnostics.info("start_aborted", error_type=type(exc).__name__, message=message)
            return
        self.diagnostics.error("start_failed", error_type=type(exc).__name__, message=message)
        if isinstance(exc, PreflightFailure):
            status = STATUS_PREFLIGHT_FAILED
        else:
            status = f"Failed to start: {message}"
        self.diagnostics.info("hint", text=hint_for_exception(message))
        self._tracker.set_error(message, status)
        self.stop()

    def stop(self, status: str | None = None) -> None:
        """Release everything and end in `stopped`. Safe from any state; never raises."""
        previous = self._tracker.state
        try:
            if previous != SessionState.STOPPED:
                self.diagnostics.warn("session_stopping", state=previous.value)
            task = self._send_task
            self._send_task = None
            if task is not None and not task.done():
                task.cancel()
            self._resources.release_all(self.diagnostics)
            self._reconciler.reset()
            self._send_in_flight = False
        except Exception as exc:
            self.diagnostics.error("stop_failed", message=str(exc))
        finally:
            self._tracker.set_stopped()
            if status is not None:
                self._tracker.set_status(status)
            elif previous != SessionState.STOPPED and not self._tracker.needs_attention:
                self._tracker.set_status(STATUS_ENDED)
            self._notify()

    # -- channel callbacks (event loop) --

    def handle_open(self) -> None:
        if self._tracker.state != SessionState.STARTING:
            return
        self.diagnostics.info("channel_open")
        assert self._loop is not None
        try:
            output = self._output_factory(self._loop)
            self._resources.output = output
            self._resources.playback = PlaybackScheduler(output)
            self._tracker.set_active(STATUS_CONNECTED)
            mic = self._resources.microphone
            if mic is None:
                raise PermissionDenied("Microphone was released before capture started")
            mic.start()
        except Exception as exc:
            self._fail_start(exc)
            return
        self.diagnostics.info("capture_started", input_rate=self.settings.input_rate)
        self._notify()

    def handle_message(self, msg: InboundMessage) -> None:
        if self._tracker.state != SessionState.ACTIVE:
            return

        if msg.input_text:
            self._reconciler.add_input(msg.input_text)
        if msg.output_text:
            self._reconciler.add_output(msg.output_text)

        if msg.audio:
            self._play_audio(msg.audio)

        if msg.interrupted:
            playback = self._resources.playback
            if playback is not None and playback.has_active:
                stopped = playback.interrupt()
                self.diagnostics.info("server_interrupted", stopped_chunks=stopped)

        if msg.turn_complete:
            added = self._reconciler.complete_turn()
            self.diagnostics.info("turn_complete", entries_added=len(added))
            if added and self.on_entries is not None:
                try:
                    self.on_entries(added)
                except Exception:
                    logger.exception("session_on_entries_failed")

        self._notify()

    def _play_audio(self, audio: bytes | str) -> None:
        playback = self._resources.playback
        if playback is None:
            return
        try:
            samples = codec.decode(audio, self.settings.output_rate, 1)
            playback.schedule(samples, self.settings.output_rate)
        except Exception as exc:
            self.diagnostics.error("audio_playback_failed", message=str(exc))

    def handle_close(self, reason: str = "") -> None:
        if self._tracker.state == SessionState.STOPPED:
            return
        verdict = classify_close_reason(reason)
        self.diagnostics.warn("channel_closed", reason=reason, verdict=verdict)
        closed = ChannelClosedByRemote(reason, verdict)
        if closed.credential_rejected:
            self._tracker.credential_rejected = True
            self._tracker.set_error(
                reason,
                f"The credential was rejected ({verdict}). {hint_for_exception(reason)}",
            )
            self.stop()
            return
        self.stop(status=f"Session closed by server: {reason}" if reason else None)

    def handle_error(self, exc: BaseException) -> None:
        if self._tracker.state == SessionState.STOPPED:
            return
        message = str(exc) or type(exc).__name__
        self.diagnostics.error("channel_error", message=message)
        self._tracker.set_error(message, f"Error: {message}")
        self.stop()

    # -- capture / send path --

    def _on_capture(self, samples: np.ndarray) -> None:
        # PortAudio thread
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self.process_frame, samples)
        except RuntimeError:
            pass

    def process_frame(self, samples: np.ndarray) -> None:
        if self._tracker.state != SessionState.ACTIVE:
            return

        playback = self._resources.playback
        if playback is not None and playback.has_active and self._barge_in.is_speech(samples):
            stopped = playback.interrupt()
            self.diagnostics.info("barge_in", stopped_chunks=stopped)

        channel = self._resources.channel
        if channel is None:
            return
        if self._send_in_flight:
            self.frames_dropped += 1
            return
        self._send_in_flight = True
        assert self._loop is not None
        self._send_task = self._loop.create_task(self._send_frame(channel, samples))

    async def _send_frame(self, channel: LiveChannel, samples: np.ndarray) -> None:
        rate = self.settings.input_rate
        try:
            frame = OutboundFrame(data=codec.encode(samples, rate), mime_type=codec.mime_type(rate))
            await channel.send(frame)
            self.frames_sent += 1
        except Exception as exc:
            self.diagnostics.error("send_failed", message=str(exc) or type(exc).__name__)
        finally:
            self._send_in_flight = False
