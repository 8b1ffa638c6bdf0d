"""Core data models for the recording pipeline."""

from __future__ import annotations

import io
import time
import uuid
import wave
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class RecordingMode(str, Enum):
    SINGLE = "single"
    CONTINUOUS = "continuous"


class SessionState(str, Enum):
    IDLE = "IDLE"
    INITIALIZING = "INITIALIZING"
    RECORDING = "RECORDING"
    STOPPING_FINAL = "STOPPING_FINAL"
    CANCELLED = "CANCELLED"


class FailureStage(str, Enum):
    TRANSCRIPTION = "transcription"
    FORMATTING = "formatting"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass(frozen=True)
class AudioSegment:
    """A finalized chunk of one session's audio covering ``[start_s, end_s)``."""

    segment_id: str
    session_id: int
    index: int
    pcm16_bytes: bytes
    start_s: float
    end_s: float
    sample_rate: int = 16000
    channels: int = 1
    chunk_count: int = 0

    @property
    def duration_s(self) -> float:
        return self.end_s - self.start_s

    def to_wav_bytes(self) -> bytes:
        buf = io.BytesIO()
        with wave.open(buf, "wb") as wf:
            wf.setnchannels(self.channels)
            wf.setsampwidth(2)
            wf.setframerate(self.sample_rate)
            wf.writeframes(self.pcm16_bytes)
        return buf.getvalue()


@dataclass(frozen=True)
class QueueEntry:
    segment: AudioSegment
    credential: str
    contextual_settings: Dict[str, str] = field(default_factory=dict)
    model: Optional[str] = None
    entry_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ProcessingArtifact:
    entry_id: str
    segment_id: str
    transcript: str
    formatted_text: str
    start_s: float = 0.0
    end_s: float = 0.0
    completed_at: float = field(default_factory=time.time)

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class ProcessingFailure:
    entry_id: str
    segment_id: str
    stage: FailureStage
    code: str
    message: str = ""
    failed_at: float = field(default_factory=time.time)

    @property
    def ok(self) -> bool:
        return False


@dataclass
class GameSettings:
    """Table setup the user dictates hands for."""

    game_type: str = "cash"
    table_size: str = "9"
    small_blind: str = ""
    big_blind: str = ""
    ante: str = ""
    buy_in: str = ""
    starting_stack: str = ""
    currency: str = "$"

    def to_context(self) -> Dict[str, str]:
        context: Dict[str, str] = {}
        cash = self.game_type == "cash"
        currency = self.currency or "$"
        if self.game_type:
            context["Game type"] = "Cash Game" if cash else "Tournament"
        if cash and self.small_blind and self.big_blind:
            context["Stakes"] = f"{currency}{self.small_blind}/{currency}{self.big_blind}"
            if self.ante and self.ante != "0":
                context["Ante"] = f"{currency}{self.ante}"
        if not cash and self.buy_in:
            context["Buy-in"] = f"{currency}{self.buy_in}"
        if self.table_size:
            context["Table size"] = f"{self.table_size}-max"
        if self.starting_stack:
            unit = "BB" if cash else " chips"
            context["Starting stack"] = f"{self.starting_stack}{unit}"
        return context

    @classmethod
    def from_dict(cls, data: dict) -> "GameSettings":
        known = {k: str(v) for k, v in data.items() if k in cls.__dataclass_fields__ and v is not None}
        return cls(**known)


@dataclass
class CopyResult:
    success: bool
    reason: str
