from __future__ import annotations

import base64
import binascii

import numpy as np

# Live API audio is always 16-bit little-endian PCM.
# Input is typically 16 kHz mono, output is 24 kHz mono.
_NEG_SCALE = 32768.0  # 2**15
_POS_SCALE = 32767.0  # 2**15 - 1


def mime_type(rate: int) -> str:
    return f"audio/pcm;rate={int(rate)}"


def float_to_pcm16(samples) -> bytes:
    """Clamp float samples to [-1, 1] and pack them as little-endian int16 bytes."""
    x = np.asarray(samples, dtype=np.float64).reshape(-1)
    if x.size == 0:
        return b""
    x = np.clip(x, -1.0, 1.0)
    scaled = np.where(x < 0, x * _NEG_SCALE, x * _POS_SCALE)
    return scaled.astype("<i2").tobytes()


def encode(samples, source_rate: int) -> str:
    """Encode float samples as base64 PCM16 for the streaming channel."""
    if source_rate <= 0:
        raise ValueError("source_rate must be > 0")
    pcm = float_to_pcm16(samples)
    if not pcm:
        return ""
    return base64.b64encode(pcm).decode("ascii")


def pcm16_to_float(data: bytes) -> np.ndarray:
    n = len(data) // 2
    if n == 0:
        return np.zeros(0, dtype=np.float32)
    ints = np.frombuffer(data, dtype="<i2", count=n)
    return (ints.astype(np.float32) / np.float32(_NEG_SCALE)).astype(np.float32)


def _as_bytes(data: bytes | bytearray | memoryview | str) -> bytes:
    if isinstance(data, str):
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("audio payload is not valid base64") from e
    return bytes(data)


def decode(data: bytes | str, rate: int, channels: int = 1) -> np.ndarray:
    """
    Decode PCM16 (raw bytes or base64 text) into float32 samples in [-1, 1).
    Multi-channel payloads are reduced to their first channel.
    """
    if rate <= 0:
        raise ValueError("rate must be > 0")
    if channels < 1:
        raise ValueError("channels must be >= 1")
    samples = pcm16_to_float(_as_bytes(data))
    if channels > 1:
        usable = (samples.size // channels) * channels
        samples = samples[:usable:channels]
    return samples


def duration_seconds(n_samples: int, rate: int) -> float:
    if rate <= 0:
        return 0.0
    return n_samples / float(rate)
