"""Clipboard helpers for finished hands."""

from __future__ import annotations

import logging

from models import CopyResult, ProcessingArtifact
from result_sink import ResultSink

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

logger = logging.getLogger(__name__)


class ClipboardExporter:
    def copy_hand(self, hand: ProcessingArtifact) -> CopyResult:
        return self._copy(hand.formatted_text)

    def copy_all(self, sink: ResultSink) -> CopyResult:
        return self._copy(sink.export_text())

    def _copy(self, text: str) -> CopyResult:
        if not text.strip():
            return CopyResult(success=False, reason="nothing to copy")
        if pyperclip is None:
            return CopyResult(success=False, reason="clipboard dependency missing")
        try:
            pyperclip.copy(text)
        except Exception as exc:
            logger.warning("Clipboard copy failed: %s", exc)
            return CopyResult(success=False, reason=str(exc))
        return CopyResult(success=True, reason="ok")
