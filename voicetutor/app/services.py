from __future__ import annotations

import asyncio
import os
from typing import Any, Callable

from voicetutor.app.diagnostics import DiagnosticsLog
from voicetutor.audio.mic import SoundDeviceMicSource
from voicetutor.audio.playback import SoundDeviceOutputContext
from voicetutor.contracts import SessionView, TranscriptEntry
from voicetutor.live.channel import GeminiLiveConnector
from voicetutor.live.preflight import run_preflight
from voicetutor.live.session import RealtimeSession, SessionSettings
from voicetutor.live.token import TOKEN_URL_ENV, build_token_provider


def _output_factory(args: Any) -> Callable[[asyncio.AbstractEventLoop], SoundDeviceOutputContext]:
    def _open(loop: asyncio.AbstractEventLoop) -> SoundDeviceOutputContext:
        return SoundDeviceOutputContext(
            sample_rate=int(args.output_sr),
            device=args.output_device,
            loop=loop,
        ).open()

    return _open


def build_session(
    args: Any,
    target_language: str,
    level: str,
    *,
    diagnostics: DiagnosticsLog,
    on_change: Callable[[SessionView], None] | None = None,
    on_entries: Callable[[list[TranscriptEntry]], None] | None = None,
) -> RealtimeSession:
    mic = SoundDeviceMicSource(
        sample_rate=int(args.input_sr),
        frame_size=int(args.frame_size),
        device=args.input_device,
    )
    token_url = str(args.token_url or os.getenv(TOKEN_URL_ENV, "")).strip()
    return RealtimeSession(
        target_language,
        level,
        mic_source=mic,
        token_provider=build_token_provider(args),
        connector=GeminiLiveConnector(),
        output_factory=_output_factory(args),
        preflight=lambda: run_preflight(token_url, input_device=args.input_device),
        settings=SessionSettings.from_args(args),
        diagnostics=diagnostics,
        on_change=on_change,
        on_entries=on_entries,
    )
