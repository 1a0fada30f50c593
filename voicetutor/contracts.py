from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class AudioFrame:
    """
    One captured block of mono float32 samples in [-1, 1].
    Consumed immediately by the send path; never retained.
    """
    samples: Any  # numpy.ndarray[float32]
    sample_rate: int

    @property
    def duration(self) -> float:
        return len(self.samples) / float(self.sample_rate) if self.sample_rate > 0 else 0.0


@dataclass(frozen=True)
class OutboundFrame:
    # Wire shape: {"audio": {"data": <base64 PCM16>, "mimeType": "audio/pcm;rate=N"}}
    data: str
    mime_type: str


@dataclass(frozen=True)
class InboundMessage:
    input_text: Optional[str] = None
    output_text: Optional[str] = None
    audio: bytes | str | None = None  # raw PCM16 bytes or base64 text
    turn_complete: bool = False
    interrupted: bool = False


@dataclass(frozen=True)
class StructuredReply:
    raw: str
    original: Optional[str] = None
    translation: Optional[str] = None
    question: Optional[str] = None

    @property
    def is_structured(self) -> bool:
        return any(v is not None for v in (self.original, self.translation, self.question))


@dataclass(frozen=True)
class TranscriptEntry:
    id: int
    speaker: str  # "user" | "model"
    text: str
    reply: Optional[StructuredReply] = None


@dataclass(frozen=True)
class LiveSessionConfig:
    model: str
    voice: str
    instruction: str
    input_transcription: bool = True
    output_transcription: bool = True
    response_modalities: tuple[str, ...] = field(default=("AUDIO",))


@dataclass(frozen=True)
class SessionView:
    """Immutable snapshot of a session, safe to hand to the UI thread."""
    state: str
    status: str
    target_language: str
    level: str
    entries: tuple[TranscriptEntry, ...] = ()
    live_input: str = ""
    live_output: str = ""
    needs_attention: bool = False
    credential_rejected: bool = False
    frames_sent: int = 0
    frames_dropped: int = 0
