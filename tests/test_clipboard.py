from __future__ import annotations

from unittest.mock import MagicMock, patch

import clipboard
from clipboard import ClipboardExporter
from models import ProcessingArtifact
from result_sink import ResultSink


def _hand(text: str = "PokerStars Hand #1") -> ProcessingArtifact:
    return ProcessingArtifact(entry_id="e1", segment_id="s1", transcript="t", formatted_text=text)


def test_copy_returns_failure_when_dependency_missing(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(clipboard, "pyperclip", None)

    result = ClipboardExporter().copy_hand(_hand())

    assert result.success is False
    assert "missing" in result.reason


def test_copy_returns_failure_on_empty_text() -> None:
    result = ClipboardExporter().copy_all(ResultSink())
    assert result.success is False


@patch("clipboard.pyperclip")
def test_copy_hand_writes_clipboard(mock_clip: MagicMock) -> None:
    result = ClipboardExporter().copy_hand(_hand("Seat 1: Hero"))

    assert result.success is True
    mock_clip.copy.assert_called_once_with("Seat 1: Hero")


@patch("clipboard.pyperclip")
def test_copy_all_exports_every_hand(mock_clip: MagicMock) -> None:
    sink = ResultSink()
    sink.publish(_hand("first"))
    sink.publish(_hand("second"))

    result = ClipboardExporter().copy_all(sink)

    assert result.success is True
    copied = mock_clip.copy.call_args.args[0]
    assert "--- Hand #1" in copied and "--- Hand #2" in copied


@patch("clipboard.pyperclip")
def test_clipboard_error_is_reported(mock_clip: MagicMock) -> None:
    mock_clip.copy.side_effect = RuntimeError("no clipboard mechanism")

    result = ClipboardExporter().copy_hand(_hand())

    assert result.success is False
    assert "no clipboard" in result.reason
