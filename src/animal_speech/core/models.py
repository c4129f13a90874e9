from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    REJECTED = "rejected"

    @property
    def accepted(self) -> bool:
        return self in (Confidence.HIGH, Confidence.MEDIUM)


class RecognizerState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    PROCESSING = "processing"
    STOPPING = "stopping"
    PAUSED = "paused"
    CLOSED = "closed"


class CompletionStatus(str, Enum):
    SUCCESS = "success"
    USER_CANCELED = "user_canceled"
    TIMEOUT_EXCEEDED = "timeout_exceeded"
    AUDIO_QUALITY_FAILURE = "audio_quality_failure"
    MICROPHONE_UNAVAILABLE = "microphone_unavailable"
    UNKNOWN = "unknown"


class LoopState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    LISTENING = "listening"
    IDLE = "idle"
    DISPOSED = "disposed"


class UpdateKind(str, Enum):
    RESULT = "result"
    COMPLETED = "completed"


@dataclass(slots=True, frozen=True)
class ListConstraint:
    commands: tuple[str, ...]
    tag: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "commands", tuple(self.commands))


@dataclass(slots=True)
class RecognitionResult:
    text: str
    confidence: Confidence
    raw_confidence: float | None = None
    ts: str = field(default_factory=utc_now_iso)


@dataclass(slots=True)
class LoopUpdate:
    kind: UpdateKind
    generation: int
    result: RecognitionResult | None = None
    status: CompletionStatus | None = None
    recognizer_state: RecognizerState | None = None


@dataclass(slots=True)
class DisplayState:
    image_source: Path | None = None
    label_text: str = ""
