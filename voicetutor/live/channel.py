"""Bidirectional streaming channel to the hosted speech model.

The session only sees `LiveChannel` (send/close) and `ChannelCallbacks`
(open/message/close/error). `GeminiLiveConnector` is the google-genai
implementation; tests substitute their own connector.
"""

from __future__ import annotations

import asyncio
import base64
import contextlib
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from voicetutor.contracts import InboundMessage, LiveSessionConfig, OutboundFrame
from voicetutor.errors import ChannelRuntimeError, SendFailure

logger = logging.getLogger("voicetutor.live.channel")


@dataclass(frozen=True)
class ChannelCallbacks:
    on_open: Callable[[], None]
    on_message: Callable[[InboundMessage], None]
    on_close: Callable[[str], None]
    on_error: Callable[[BaseException], None]


class LiveChannel(Protocol):
    async def send(self, frame: OutboundFrame) -> None:
        ...

    def close(self) -> None:
        ...


class ChannelConnector(Protocol):
    async def connect(
        self,
        credential: str,
        config: LiveSessionConfig,
        callbacks: ChannelCallbacks,
    ) -> LiveChannel:
        ...


def message_from_server(msg: Any) -> InboundMessage:
    """Flatten a google-genai LiveServerMessage into an InboundMessage."""
    sc = getattr(msg, "server_content", None)
    if sc is None:
        return InboundMessage()

    input_tx = getattr(sc, "input_transcription", None)
    output_tx = getattr(sc, "output_transcription", None)

    audio_parts: list[bytes] = []
    model_turn = getattr(sc, "model_turn", None)
    for part in getattr(model_turn, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        data = getattr(inline, "data", None)
        if not data:
            continue
        audio_parts.append(base64.b64decode(data) if isinstance(data, str) else bytes(data))

    return InboundMessage(
        input_text=getattr(input_tx, "text", None) or None,
        output_text=getattr(output_tx, "text", None) or None,
        audio=b"".join(audio_parts) if audio_parts else None,
        turn_complete=bool(getattr(sc, "turn_complete", False)),
        interrupted=bool(getattr(sc, "interrupted", False)),
    )


def _close_reason(exc: BaseException) -> Optional[str]:
    """Return the close reason if `exc` reports the socket being closed, else None."""
    rcvd = getattr(exc, "rcvd", None)
    if rcvd is not None:
        return str(getattr(rcvd, "reason", "") or "")
    if type(exc).__name__.startswith("ConnectionClosed"):
        return str(getattr(exc, "reason", "") or "")
    from google.genai import errors as genai_errors

    if isinstance(exc, genai_errors.APIError):
        return str(getattr(exc, "message", None) or exc)
    return None


class GeminiLiveChannel:
    def __init__(self, ctxmgr: Any, live: Any, callbacks: ChannelCallbacks) -> None:
        self._ctxmgr = ctxmgr
        self._live = live
        self._callbacks = callbacks
        self._closing = False
        self._closed = False
        self._recv_task: Optional[asyncio.Task[None]] = None
        self._close_task: Optional[asyncio.Task[None]] = None

    def start(self) -> None:
        self._recv_task = asyncio.get_running_loop().create_task(
            self._receive_loop(), name="voicetutor-live-recv"
        )

    async def send(self, frame: OutboundFrame) -> None:
        from google.genai import types

        if self._closing:
            return
        try:
            await self._live.send_realtime_input(
                audio=types.Blob(data=base64.b64decode(frame.data), mime_type=frame.mime_type),
            )
        except Exception as e:
            raise SendFailure(str(e) or type(e).__name__) from e

    async def _receive_loop(self) -> None:
        self._callbacks.on_open()
        reason = ""
        try:
            while not self._closing:
                got_any = False
                async for response in self._live.receive():
                    got_any = True
                    self._callbacks.on_message(message_from_server(response))
                if not got_any:
                    # receive() yields nothing once the socket is gone
                    break
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if self._closing:
                return
            close_reason = _close_reason(exc)
            if close_reason is None:
                logger.warning("live_receive_error", extra={"error": str(exc)})
                self._callbacks.on_error(ChannelRuntimeError(str(exc) or type(exc).__name__))
                return
            reason = close_reason
        if not self._closing:
            self._callbacks.on_close(reason)

    def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        task = self._recv_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._close_task = asyncio.get_running_loop().create_task(
            self.aclose(), name="voicetutor-live-close"
        )

    async def aclose(self) -> None:
        self._closing = True
        if self._closed:
            return
        self._closed = True
        with contextlib.suppress(Exception):
            await self._ctxmgr.__aexit__(None, None, None)


class GeminiLiveConnector:
    """Opens Gemini Live sessions, using the ephemeral credential as the API key."""

    def __init__(self, *, api_version: str = "v1alpha") -> None:
        self.api_version = api_version

    def _live_config(self, config: LiveSessionConfig) -> Any:
        from google.genai import types

        kwargs: dict[str, Any] = {
            "response_modalities": [types.Modality(m) for m in config.response_modalities],
            "speech_config": types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=config.voice)
                )
            ),
            "system_instruction": config.instruction,
        }
        if config.input_transcription:
            kwargs["input_audio_transcription"] = types.AudioTranscriptionConfig()
        if config.output_transcription:
            kwargs["output_audio_transcription"] = types.AudioTranscriptionConfig()
        return types.LiveConnectConfig(**kwargs)

    async def connect(
        self,
        credential: str,
        config: LiveSessionConfig,
        callbacks: ChannelCallbacks,
    ) -> GeminiLiveChannel:
        from google import genai
        from google.genai import types

        client = genai.Client(
            api_key=credential,
            http_options=types.HttpOptions(api_version=self.api_version),
        )
        ctxmgr = client.aio.live.connect(model=config.model, config=self._live_config(config))
        live = await ctxmgr.__aenter__()
        channel = GeminiLiveChannel(ctxmgr, live, callbacks)
        channel.start()
        return channel
