"""Microphone capture adapter."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional

from errors import (
    DEVICE_DISCONNECTED,
    DEVICE_NOT_FOUND,
    PERMISSION_DENIED,
    UNSUPPORTED_PLATFORM,
    DeviceError,
)
from interfaces import ChunkCallback, DeviceErrorCallback, LevelCallback
from models import AudioFrame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

_PERMISSION_HINTS = ("permission", "not permitted", "access denied", "not allowed", "-9986")


def rms_level(pcm16_bytes: bytes) -> float:
    """Normalized RMS amplitude of int16 PCM, in ``[0, 1]``."""
    if np is None or not pcm16_bytes:
        return 0.0
    samples = np.frombuffer(pcm16_bytes, dtype=np.int16).astype(np.float32)
    if samples.size == 0:
        return 0.0
    rms = float(np.sqrt(np.mean(samples * samples))) / 32768.0
    return min(1.0, rms)


def classify_device_error(exc: BaseException) -> DeviceError:
    if isinstance(exc, DeviceError):
        return exc
    message = str(exc)
    low = message.lower()
    if isinstance(exc, PermissionError) or any(hint in low for hint in _PERMISSION_HINTS):
        return DeviceError(PERMISSION_DENIED, message)
    return DeviceError(DEVICE_NOT_FOUND, message)


class SoundDeviceCaptureHandle:
    """Live input stream. ``release()`` may be called any number of times."""

    def __init__(
        self,
        sample_rate: int,
        channels: int,
        on_chunk: ChunkCallback,
        on_level: Optional[LevelCallback] = None,
        on_error: Optional[DeviceErrorCallback] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self._on_chunk = on_chunk
        self._on_level = on_level
        self._on_error = on_error
        self._stream: Any = None
        self._lock = threading.Lock()
        self._running = False
        self._released = False
        self.dropped_chunks = 0

    @property
    def active(self) -> bool:
        return self._running

    def open(self, blocksize: int) -> None:
        self._stream = sd.InputStream(
            samplerate=self.sample_rate,
            channels=self.channels,
            dtype="int16",
            blocksize=blocksize,
            callback=self._on_audio,
            finished_callback=self._on_finished,
        )
        self._stream.start()
        self._running = True

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
            self._running = False
            stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        except Exception as exc:
            logger.warning("Stopping input stream failed: %s", exc)
        try:
            stream.close()
        except Exception as exc:
            logger.warning("Closing input stream failed: %s", exc)

    def __enter__(self) -> "SoundDeviceCaptureHandle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or np is None:
            return
        if status:
            logger.debug("Input stream status: %s", status)
        try:
            payload = np.asarray(indata, dtype=np.int16).tobytes()
            frame = AudioFrame(
                pcm16_bytes=payload,
                sample_rate=self.sample_rate,
                channels=self.channels,
                timestamp_ms=int(time.time() * 1000),
            )
            self._on_chunk(frame)
        except Exception:
            self.dropped_chunks += 1
            logger.exception("Dropping audio chunk")
            return
        if self._on_level is None:
            return
        try:
            self._on_level(rms_level(payload))
        except Exception as exc:
            logger.debug("Amplitude update skipped: %s", exc)

    def _on_finished(self) -> None:
        with self._lock:
            if self._released:
                return
            self._running = False
        logger.warning("Input stream finished unexpectedly")
        if self._on_error is not None:
            self._on_error(DeviceError(DEVICE_DISCONNECTED))


class SoundDeviceCapture:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms

    def acquire(
        self,
        on_chunk: ChunkCallback,
        on_level: Optional[LevelCallback] = None,
        on_error: Optional[DeviceErrorCallback] = None,
    ) -> SoundDeviceCaptureHandle:
        if sd is None or np is None:
            raise DeviceError(UNSUPPORTED_PLATFORM, "sounddevice is not installed")
        handle = SoundDeviceCaptureHandle(
            self.sample_rate, self.channels, on_chunk, on_level=on_level, on_error=on_error
        )
        blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
        try:
            sd.query_devices(kind="input")
            handle.open(blocksize)
        except Exception as exc:
            handle.release()
            error = classify_device_error(exc)
            logger.error("Microphone unavailable: %s", error)
            raise error from exc
        logger.info("Microphone acquired (%d Hz, %d ch)", self.sample_rate, self.channels)
        return handle
