from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

import hotkey as hotkey_mod
from hotkey import GlobalHotkeyAdapter


def test_press_fires_once_until_release() -> None:
    calls: list[str] = []
    adapter = GlobalHotkeyAdapter({"Key.alt_l": lambda: calls.append("record")})

    adapter._on_press("Key.alt_l")
    adapter._on_press("Key.alt_l")  # auto-repeat while held
    adapter._on_release("Key.alt_l")
    adapter._on_press("Key.alt_l")

    assert calls == ["record", "record"]


def test_unbound_keys_are_ignored() -> None:
    calls: list[str] = []
    adapter = GlobalHotkeyAdapter({"Key.alt_r": lambda: calls.append("mark")})

    adapter._on_press("Key.shift")
    adapter._on_press("Key.alt_r")

    assert calls == ["mark"]


def test_failing_action_does_not_break_listener() -> None:
    def boom() -> None:
        raise RuntimeError("rejected")

    calls: list[str] = []
    adapter = GlobalHotkeyAdapter({"Key.alt_l": boom, "Key.alt_r": lambda: calls.append("mark")})

    adapter._on_press("Key.alt_l")
    adapter._on_press("Key.alt_r")

    assert calls == ["mark"]


@patch("hotkey.keyboard")
def test_start_and_stop_listener(mock_keyboard: MagicMock) -> None:
    adapter = GlobalHotkeyAdapter({"Key.alt_l": lambda: None})
    adapter.start()

    mock_keyboard.Listener.return_value.start.assert_called_once()
    adapter.stop()
    mock_keyboard.Listener.return_value.stop.assert_called_once()


def test_start_without_pynput(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(hotkey_mod, "keyboard", None)
    with pytest.raises(RuntimeError, match="pynput is not installed"):
        GlobalHotkeyAdapter({}).start()
