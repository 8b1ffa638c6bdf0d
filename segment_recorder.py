"""Turns the live chunk stream into finalized audio segments."""

from __future__ import annotations

import threading
import uuid
from typing import List, Optional

from errors import EmptySegmentError
from models import AudioFrame, AudioSegment


class SegmentRecorder:
    """Accumulates chunks between boundaries.

    Chunks appended after ``finalize()`` returns belong to the next segment;
    appends while closed are dropped.
    """

    def __init__(self, sample_rate: int = 16000, channels: int = 1) -> None:
        self._sample_rate = sample_rate
        self._channels = channels
        self._lock = threading.Lock()
        self._chunks: List[bytes] = []
        self._session_id: Optional[int] = None
        self._index = 0

    @property
    def is_open(self) -> bool:
        return self._session_id is not None

    @property
    def buffered_chunks(self) -> int:
        with self._lock:
            return len(self._chunks)

    @property
    def buffered_bytes(self) -> int:
        with self._lock:
            return sum(len(c) for c in self._chunks)

    def open(self, session_id: int) -> None:
        with self._lock:
            self._session_id = session_id
            self._chunks = []
            self._index = 0

    def append(self, frame: AudioFrame, session_id: Optional[int] = None) -> None:
        """Buffer one chunk; frames tagged with another session are dropped."""
        with self._lock:
            if self._session_id is None or not frame.pcm16_bytes:
                return
            if session_id is not None and session_id != self._session_id:
                return
            self._sample_rate = frame.sample_rate
            self._channels = frame.channels
            self._chunks.append(frame.pcm16_bytes)

    def finalize(self, start_s: float, end_s: float) -> AudioSegment:
        with self._lock:
            chunks, self._chunks = self._chunks, []
            if self._session_id is None or not chunks:
                raise EmptySegmentError()
            segment = AudioSegment(
                segment_id=uuid.uuid4().hex,
                session_id=self._session_id,
                index=self._index,
                pcm16_bytes=b"".join(chunks),
                start_s=start_s,
                end_s=end_s,
                sample_rate=self._sample_rate,
                channels=self._channels,
                chunk_count=len(chunks),
            )
            self._index += 1
            return segment

    def discard(self) -> None:
        with self._lock:
            self._chunks = []

    def close(self) -> None:
        with self._lock:
            self._chunks = []
            self._session_id = None
