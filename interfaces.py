"""Protocol interfaces used by SessionController and ProcessingQueue."""

from __future__ import annotations

from typing import Callable, Mapping, Optional, Protocol

from errors import DeviceError
from models import AudioFrame, AudioSegment

ChunkCallback = Callable[[AudioFrame], None]
LevelCallback = Callable[[float], None]
DeviceErrorCallback = Callable[[DeviceError], None]


class CaptureHandle(Protocol):
    def release(self) -> None: ...


class CaptureDevice(Protocol):
    def acquire(
        self,
        on_chunk: ChunkCallback,
        on_level: Optional[LevelCallback] = None,
        on_error: Optional[DeviceErrorCallback] = None,
    ) -> CaptureHandle: ...


class Transcriber(Protocol):
    def transcribe(
        self,
        segment: AudioSegment,
        credential: str,
        timeout_s: Optional[float] = None,
    ) -> str: ...


class HandFormatter(Protocol):
    def format_hand(
        self,
        transcript: str,
        credential: str,
        contextual_settings: Optional[Mapping[str, str]] = None,
        model: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ) -> str: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...
