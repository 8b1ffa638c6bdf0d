"""Append-only, ordered collection of processed hands."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Union

from models import ProcessingArtifact, ProcessingFailure

logger = logging.getLogger(__name__)

SinkRecord = Union[ProcessingArtifact, ProcessingFailure]
SinkListener = Callable[[SinkRecord], None]


class ResultSink:
    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._records: List[SinkRecord] = []
        self._listeners: List[SinkListener] = []

    def publish(self, record: SinkRecord) -> None:
        with self._cond:
            self._records.append(record)
            listeners = list(self._listeners)
            self._cond.notify_all()
        for listener in listeners:
            try:
                listener(record)
            except Exception:
                logger.exception("Result listener failed")

    def subscribe(self, listener: SinkListener) -> None:
        with self._cond:
            self._listeners.append(listener)

    def entries(self) -> List[SinkRecord]:
        with self._cond:
            return list(self._records)

    def artifacts(self) -> List[ProcessingArtifact]:
        return [r for r in self.entries() if isinstance(r, ProcessingArtifact)]

    def failures(self) -> List[ProcessingFailure]:
        return [r for r in self.entries() if isinstance(r, ProcessingFailure)]

    def wait_for(self, count: int, timeout: float | None = None) -> bool:
        """Block until at least ``count`` records were published."""
        with self._cond:
            return self._cond.wait_for(lambda: len(self._records) >= count, timeout=timeout)

    def export_text(self) -> str:
        """Render every finished hand as one plain-text document."""
        blocks = []
        for number, hand in enumerate(self.artifacts(), start=1):
            stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(hand.completed_at))
            blocks.append(f"--- Hand #{number} ({stamp}) ---\n\n{hand.formatted_text}\n\n")
        return "\n".join(blocks)

    def __len__(self) -> int:
        with self._cond:
            return len(self._records)
