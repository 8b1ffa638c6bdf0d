"""Ordered processing queue drained by a single worker thread.

Each entry goes through transcription then formatting. An entry is fully
finished, as an artifact or a failure record, before the next one starts,
so results reach the sink in enqueue order.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Deque, List, Mapping, Optional, Set

from errors import (
    ASR_PROTOCOL_ERROR,
    EMPTY_AUDIO,
    MALFORMED_RESPONSE,
    DuplicateSegmentError,
    QueueClosedError,
    QueueFullError,
    TranscriptionError,
    classify_exception,
)
from interfaces import HandFormatter, Transcriber
from models import AudioSegment, FailureStage, ProcessingArtifact, ProcessingFailure, QueueEntry
from result_sink import ResultSink

logger = logging.getLogger(__name__)


class ProcessingQueue:
    def __init__(
        self,
        transcriber: Transcriber,
        formatter: HandFormatter,
        sink: ResultSink,
        max_depth: Optional[int] = None,
        call_timeout_s: Optional[float] = None,
        seen_limit: int = 1024,
    ) -> None:
        self._transcriber = transcriber
        self._formatter = formatter
        self._sink = sink
        self._max_depth = max_depth
        self._call_timeout_s = call_timeout_s

        self._cond = threading.Condition()
        self._pending: Deque[QueueEntry] = deque()
        # Ids pending or in flight, plus a bounded window of recently drained ones.
        self._active_ids: Set[str] = set()
        self._recent_ids: Deque[str] = deque(maxlen=seen_limit)
        self._in_flight: Optional[QueueEntry] = None
        self._thread: Optional[threading.Thread] = None
        self._closing = False

    @property
    def sink(self) -> ResultSink:
        return self._sink

    @property
    def in_flight(self) -> Optional[QueueEntry]:
        with self._cond:
            return self._in_flight

    def pending(self) -> List[QueueEntry]:
        with self._cond:
            return list(self._pending)

    def start(self) -> None:
        with self._cond:
            if self._closing or (self._thread and self._thread.is_alive()):
                return
            self._thread = threading.Thread(target=self._worker, name="processing-queue", daemon=True)
            self._thread.start()

    def enqueue(
        self,
        segment: AudioSegment,
        credential: str,
        contextual_settings: Optional[Mapping[str, str]] = None,
        model: Optional[str] = None,
    ) -> QueueEntry:
        with self._cond:
            if self._closing:
                raise QueueClosedError()
            if segment.segment_id in self._active_ids or segment.segment_id in self._recent_ids:
                raise DuplicateSegmentError(message=f"segment {segment.segment_id} already queued")
            if self._max_depth is not None and len(self._pending) >= self._max_depth:
                raise QueueFullError()
            entry = QueueEntry(
                segment=segment,
                credential=credential,
                contextual_settings=dict(contextual_settings or {}),
                model=model,
            )
            self._active_ids.add(segment.segment_id)
            self._pending.append(entry)
            self._cond.notify_all()
        logger.info(
            "Queued segment %s [%.2f, %.2f) as entry %s",
            segment.segment_id, segment.start_s, segment.end_s, entry.entry_id,
        )
        self.start()
        return entry

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Return True once nothing is pending or in flight."""
        with self._cond:
            return self._cond.wait_for(
                lambda: not self._pending and self._in_flight is None, timeout=timeout
            )

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop the worker after the entry currently in flight.

        A closed queue refuses new entries; entries still pending are dropped.
        """
        with self._cond:
            self._closing = True
            self._cond.notify_all()
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _worker(self) -> None:
        while True:
            with self._cond:
                while not self._pending and not self._closing:
                    self._cond.wait()
                if self._closing:
                    if self._pending:
                        logger.warning("Queue closed with %d entries still pending", len(self._pending))
                        self._pending.clear()
                        self._cond.notify_all()
                    return
                entry = self._pending.popleft()
                self._in_flight = entry
            try:
                record = self._drain(entry)
                self._sink.publish(record)
            except Exception:
                logger.exception("Unexpected failure draining entry %s", entry.entry_id)
            finally:
                with self._cond:
                    self._active_ids.discard(entry.segment.segment_id)
                    self._recent_ids.append(entry.segment.segment_id)
                    self._in_flight = None
                    self._cond.notify_all()

    def _drain(self, entry: QueueEntry) -> ProcessingArtifact | ProcessingFailure:
        segment = entry.segment
        try:
            transcript = self._transcriber.transcribe(
                segment, entry.credential, timeout_s=self._call_timeout_s
            )
            if not transcript or not transcript.strip():
                raise TranscriptionError(EMPTY_AUDIO)
        except Exception as exc:
            return self._failure(entry, FailureStage.TRANSCRIPTION, exc)

        try:
            formatted = self._formatter.format_hand(
                transcript,
                entry.credential,
                contextual_settings=entry.contextual_settings,
                model=entry.model,
                timeout_s=self._call_timeout_s,
            )
            if not formatted or not formatted.strip():
                raise ValueError("formatting service returned no text")
        except Exception as exc:
            return self._failure(entry, FailureStage.FORMATTING, exc, default=MALFORMED_RESPONSE)

        logger.info("Entry %s processed", entry.entry_id)
        return ProcessingArtifact(
            entry_id=entry.entry_id,
            segment_id=segment.segment_id,
            transcript=transcript,
            formatted_text=formatted.strip(),
            start_s=segment.start_s,
            end_s=segment.end_s,
        )

    def _failure(
        self,
        entry: QueueEntry,
        stage: FailureStage,
        exc: BaseException,
        default: str = ASR_PROTOCOL_ERROR,
    ) -> ProcessingFailure:
        code = classify_exception(exc, default)
        message = getattr(exc, "message", "") or str(exc)
        logger.warning("Entry %s failed at %s: %s (%s)", entry.entry_id, stage.value, message, code)
        return ProcessingFailure(
            entry_id=entry.entry_id,
            segment_id=entry.segment.segment_id,
            stage=stage,
            code=code,
            message=message,
        )
