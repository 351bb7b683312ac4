"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

SAMPLE_RATE = 16000
CHANNELS = 1


class RecordingState(str, Enum):
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    TRANSCRIBING = "TRANSCRIBING"
    POLISHING = "POLISHING"
    CLIPBOARD_READY = "CLIPBOARD_READY"


@dataclass(frozen=True)
class TranscriptionRequest:
    audio: bytes
    filename: str = "audio.wav"
    mime_type: str = "audio/wav"
    language: Optional[str] = None
    backend: str = ""


@dataclass(frozen=True)
class AudioChunk:
    index: int
    data: bytes
    start: int
    end: int
    has_leading_overlap: bool = False

    def __len__(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ChunkTranscription:
    index: int
    text: str
    has_leading_overlap: bool = False


@dataclass(frozen=True)
class BackendDescriptor:
    name: str
    display_name: str
    backend: Any
    requires_api_key: bool = True


@dataclass(frozen=True)
class Preset:
    name: str
    description: str
    prompt: str
    polisher: Optional[str] = None
    model: Optional[str] = None
    source: str = "built-in"


@dataclass(frozen=True)
class StatusResponse:
    state: RecordingState
    config_valid: bool


@dataclass
class DeliveryResult:
    success: bool
    reason: str = "ok"


@dataclass
class TranscriptionOutcome:
    """What a finished (or failed) recording produced.

    ``error`` is set for fatal failures and ``text`` is then empty. Non-fatal
    problems (refinement, delivery) land in ``warnings`` as ``(code, message)``.
    """

    text: str = ""
    raw_text: str = ""
    error: Optional[Exception] = None
    warnings: list[tuple[str, str]] = field(default_factory=list)
    delivered: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None
