"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

SAMPLE_RATE = 16000
CHANNELS = 1


class SessionState(str, Enum):
    IDLE = "IDLE"
    ARMING = "ARMING"
    RECORDING = "RECORDING"
    STOPPING = "STOPPING"


class StreamState(str, Enum):
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"
    FAILED = "FAILED"


class RecognitionKind(str, Enum):
    RESULT = "result"
    ERROR = "error"
    CLOSED = "closed"


@dataclass(frozen=True)
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = SAMPLE_RATE
    channels: int = CHANNELS
    timestamp_ms: int = 0
    seq: int = 0


@dataclass(frozen=True)
class TranscriptSegment:
    text: str
    confidence: float = 0.0
    is_final: bool = False


@dataclass
class RecognitionEvent:
    kind: str
    segment: Optional[TranscriptSegment] = None
    code: str = ""
    message: str = ""


@dataclass(frozen=True)
class StreamParams:
    model: str = "nova-2"
    language: str = "en"
    punctuate: bool = True
    smart_format: bool = True

    def query(self) -> dict[str, str]:
        """Connection query parameters for the live endpoint."""
        return {
            "model": self.model,
            "language": self.language,
            "punctuate": query_flag(self.punctuate),
            "smart_format": query_flag(self.smart_format),
            "interim_results": "true",
            "encoding": "linear16",
            "sample_rate": str(SAMPLE_RATE),
            "channels": str(CHANNELS),
        }


@dataclass
class StreamingSession:
    params: StreamParams
    state: StreamState = StreamState.CONNECTING
    created_at: float = 0.0


@dataclass
class RecordingSession:
    state: SessionState = SessionState.IDLE
    armed_at: Optional[float] = None
    final_text: str = ""
    live_text: str = ""
    confidence: float = 0.0


@dataclass(frozen=True)
class HistoryEntry:
    timestamp: datetime
    transcript: str
    confidence: float


@dataclass
class BatchResult:
    success: bool
    transcript: str = ""
    confidence: float = 0.0
    error: str = ""
    raw: dict = field(default_factory=dict)


def query_flag(value: bool) -> str:
    return "true" if value else "false"
