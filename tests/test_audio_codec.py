from __future__ import annotations

import base64

import numpy as np
import pytest

from voicetutor.audio import codec


def test_encode_decode_round_trip_within_one_step() -> None:
    x = np.linspace(-1.0, 1.0, 513, dtype=np.float32)
    y = codec.decode(codec.encode(x, 16000), 16000)
    assert y.dtype == np.float32
    assert y.shape == x.shape
    # asymmetric scale plus truncation: under two steps near full scale
    assert np.max(np.abs(y - x)) < 2.0 / 32768.0
    assert np.max(np.abs(y[x <= 0] - x[x <= 0])) <= 1.0 / 32768.0 + 1e-7


def test_encode_clamps_out_of_range_samples() -> None:
    clamped = codec.decode(codec.encode(np.array([1.5, 1.0, -2.0, -1.0]), 16000), 16000)
    assert clamped[0] == clamped[1]
    assert clamped[2] == clamped[3] == -1.0


def test_float_to_pcm16_is_asymmetric_little_endian() -> None:
    raw = codec.float_to_pcm16([1.0, -1.0, 0.0])
    assert raw == b"\xff\x7f\x00\x80\x00\x00"


def test_encode_empty_returns_empty_string() -> None:
    assert codec.encode(np.zeros(0, dtype=np.float32), 16000) == ""
    assert codec.decode(b"", 24000).size == 0


def test_decode_ignores_trailing_odd_byte() -> None:
    out = codec.decode(b"\x00\x40\x01", 24000)
    assert out.tolist() == [0.5]


def test_decode_accepts_base64_text() -> None:
    text = base64.b64encode(b"\x00\xc0").decode("ascii")
    assert codec.decode(text, 24000).tolist() == [-0.5]


def test_decode_rejects_bad_base64() -> None:
    with pytest.raises(ValueError):
        codec.decode("not base64!!", 24000)


def test_decode_keeps_first_channel() -> None:
    stereo = codec.float_to_pcm16([0.5, -0.5, 0.25, -0.25])
    out = codec.decode(stereo, 24000, channels=2)
    assert out.size == 2
    assert out[0] > 0 and out[1] > 0


def test_rates_must_be_positive() -> None:
    with pytest.raises(ValueError):
        codec.encode([0.1], 0)
    with pytest.raises(ValueError):
        codec.decode(b"\x00\x00", -1)


def test_mime_type_and_duration() -> None:
    assert codec.mime_type(16000) == "audio/pcm;rate=16000"
    assert codec.duration_seconds(24000, 24000) == 1.0
    assert codec.duration_seconds(4096, 16000) == pytest.approx(0.256)
