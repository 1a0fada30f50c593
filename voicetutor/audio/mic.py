from __future__ import annotations

from typing import Any, Callable, Optional

import numpy as np


class MicError(RuntimeError):
    pass


def _import_sounddevice():
    try:
        import sounddevice as sd
    except (ImportError, OSError) as e:
        raise MicError(
            "sounddevice is not available. Install with: python -m pip install sounddevice"
        ) from e
    return sd


def check_input_available(device: Optional[int] = None) -> bool:
    sd = _import_sounddevice()
    try:
        info = sd.query_devices(device, "input")
    except Exception:
        return False
    return int(info.get("max_input_channels", 0)) > 0


class MicStream:
    """
    An opened (not yet started) microphone. Blocks are copied out of the
    PortAudio callback and handed to `on_frame` on the audio thread.
    """

    def __init__(self, on_frame: Callable[[np.ndarray], None], stream: Any = None) -> None:
        self._stream = stream
        self._on_frame: Optional[Callable[[np.ndarray], None]] = on_frame
        self._closed = False

    def _callback(self, indata, frames, time_info, status) -> None:
        handler = self._on_frame
        if handler is None:
            return
        # indata is (frames, channels) float32; keep the first channel.
        handler(np.array(indata[:, 0], dtype=np.float32, copy=True))

    def start(self) -> None:
        if self._closed or self._stream is None:
            raise MicError("microphone stream is not open")
        self._stream.start()

    def disconnect(self) -> None:
        self._on_frame = None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._on_frame = None
        if self._stream is None:
            return
        try:
            self._stream.stop()
        finally:
            self._stream.close()


class SoundDeviceMicSource:
    """
    Live microphone source using the `sounddevice` package (PortAudio).
    Delivers mono float32 frames of `frame_size` samples.
    """

    def __init__(
        self,
        *,
        sample_rate: int = 16000,
        frame_size: int = 4096,
        device: Optional[int] = None,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError("sample_rate must be > 0")
        if frame_size <= 0:
            raise ValueError("frame_size must be > 0")
        self.sample_rate = int(sample_rate)
        self.frame_size = int(frame_size)
        self.device = device

    @staticmethod
    def list_devices() -> str:
        sd = _import_sounddevice()
        return str(sd.query_devices())

    def open(self, on_frame: Callable[[np.ndarray], None]) -> MicStream:
        sd = _import_sounddevice()
        mic = MicStream(on_frame)
        try:
            mic._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                device=self.device,
                blocksize=self.frame_size,
                callback=mic._callback,
            )
        except Exception as e:
            raise MicError(
                "Failed to open microphone stream. "
                "Check microphone permissions or pick a device id with --input-device."
            ) from e
        return mic
