from __future__ import annotations

import asyncio
import base64
from types import SimpleNamespace

from voicetutor.contracts import OutboundFrame
from voicetutor.live.channel import ChannelCallbacks, GeminiLiveChannel, message_from_server


def _server_message(**content) -> SimpleNamespace:
    return SimpleNamespace(server_content=SimpleNamespace(**content))


def test_message_from_server_flattens_content() -> None:
    msg = _server_message(
        input_transcription=SimpleNamespace(text="hola"),
        output_transcription=SimpleNamespace(text="Hello"),
        model_turn=SimpleNamespace(
            parts=[
                SimpleNamespace(inline_data=SimpleNamespace(data=b"\x01\x00")),
                SimpleNamespace(inline_data=None),
                SimpleNamespace(inline_data=SimpleNamespace(data=base64.b64encode(b"\x02\x00").decode())),
            ]
        ),
        turn_complete=True,
        interrupted=False,
    )
    out = message_from_server(msg)
    assert out.input_text == "hola"
    assert out.output_text == "Hello"
    assert out.audio == b"\x01\x00\x02\x00"
    assert out.turn_complete is True
    assert out.interrupted is False


def test_message_without_server_content_is_empty() -> None:
    out = message_from_server(SimpleNamespace(server_content=None, setup_complete=True))
    assert out.input_text is None and out.output_text is None
    assert out.audio is None
    assert not out.turn_complete


class _FakeCtx:
    def __init__(self) -> None:
        self.exited = 0

    async def __aexit__(self, *exc) -> None:
        self.exited += 1


class _FakeLive:
    def __init__(self, turns: list[list[object]]) -> None:
        self._turns = list(turns)
        self.sent: list[object] = []

    async def receive(self):
        if not self._turns:
            return
        for item in self._turns.pop(0):
            yield item

    async def send_realtime_input(self, *, audio) -> None:
        self.sent.append(audio)


def _recorder():
    events: list[tuple[str, object]] = []
    callbacks = ChannelCallbacks(
        on_open=lambda: events.append(("open", None)),
        on_message=lambda m: events.append(("message", m)),
        on_close=lambda reason: events.append(("close", reason)),
        on_error=lambda exc: events.append(("error", exc)),
    )
    return events, callbacks


def test_receive_loop_opens_delivers_and_closes() -> None:
    events, callbacks = _recorder()
    live = _FakeLive([[_server_message(output_transcription=SimpleNamespace(text="Hi"))]])

    async def _run() -> None:
        channel = GeminiLiveChannel(_FakeCtx(), live, callbacks)
        channel.start()
        await channel._recv_task

    asyncio.run(_run())
    assert [kind for kind, _ in events] == ["open", "message", "close"]
    assert events[1][1].output_text == "Hi"


def test_send_decodes_base64_into_blob() -> None:
    _, callbacks = _recorder()
    live = _FakeLive([])
    channel = GeminiLiveChannel(_FakeCtx(), live, callbacks)
    frame = OutboundFrame(data=base64.b64encode(b"\x00\x01").decode(), mime_type="audio/pcm;rate=16000")

    asyncio.run(channel.send(frame))
    assert len(live.sent) == 1
    assert live.sent[0].data == b"\x00\x01"
    assert live.sent[0].mime_type == "audio/pcm;rate=16000"


def test_close_is_idempotent_and_silences_callbacks() -> None:
    events, callbacks = _recorder()
    ctx = _FakeCtx()

    async def _run() -> None:
        channel = GeminiLiveChannel(ctx, _FakeLive([]), callbacks)
        channel.start()
        channel.close()
        channel.close()
        await channel.aclose()

    asyncio.run(_run())
    assert ctx.exited == 1
    assert ("close", "") not in events
