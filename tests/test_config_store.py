from __future__ import annotations

from pathlib import Path

import pytest

from config import JsonConfigStore, PipelineConfig, validate_credential
from errors import CREDENTIAL_INVALID, CREDENTIAL_MISSING, CredentialError
from models import GameSettings, RecordingMode


def test_config_read_write(tmp_path: Path, monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.delenv("DASHSCOPE_API_KEY", raising=False)
    path = tmp_path / "config.json"
    store = JsonConfigStore(path=path)

    assert store.get_api_key() == ""
    assert store.get_record_hotkey() == "Key.alt_l"
    assert store.get_mark_hotkey() == "Key.alt_r"
    assert store.get_mode() == RecordingMode.SINGLE

    store.set_api_key(" sk-abc12345 ")
    store.set_record_hotkey("Key.f8")
    store.set_mark_hotkey("Key.f9")
    store.set_mode(RecordingMode.CONTINUOUS)
    store.set_model("qwen-max")

    reloaded = JsonConfigStore(path=path)
    assert reloaded.get_api_key() == "sk-abc12345"
    assert reloaded.get_record_hotkey() == "Key.f8"
    assert reloaded.get_mark_hotkey() == "Key.f9"
    assert reloaded.get_mode() == RecordingMode.CONTINUOUS
    assert reloaded.get_model() == "qwen-max"


def test_config_invalid_json_fallback(tmp_path: Path, monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.delenv("DASHSCOPE_API_KEY", raising=False)
    path = tmp_path / "config.json"
    path.write_text("{invalid", encoding="utf-8")

    store = JsonConfigStore(path=path)
    assert store.get_api_key() == ""
    assert store.get_mode() == RecordingMode.SINGLE
    assert store.get_log_level() == "INFO"


def test_env_credential_fallback(tmp_path: Path, monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setenv("DASHSCOPE_API_KEY", "sk-from-env")
    store = JsonConfigStore(path=tmp_path / "config.json")
    assert store.get_api_key() == "sk-from-env"


def test_unknown_mode_falls_back_to_single(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text('{"mode": "burst"}', encoding="utf-8")
    assert JsonConfigStore(path=path).get_mode() == RecordingMode.SINGLE


def test_pipeline_config_snapshot(tmp_path: Path, monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.delenv("DASHSCOPE_API_KEY", raising=False)
    path = tmp_path / "config.json"
    path.write_text(
        '{"api_key": "sk-abc12345", "mode": "continuous", "call_timeout_s": 30,'
        ' "max_queue_depth": "bad"}',
        encoding="utf-8",
    )
    store = JsonConfigStore(path=path)
    store.set_game_settings(GameSettings(small_blind="1", big_blind="2", table_size="6"))

    config = store.pipeline_config()

    assert isinstance(config, PipelineConfig)
    assert config.mode == RecordingMode.CONTINUOUS
    assert config.credential == "sk-abc12345"
    assert config.contextual_settings["Stakes"] == "$1/$2"
    assert config.call_timeout_s == 30.0
    assert config.max_queue_depth is None
    assert config.model == "qwen-plus"


def test_game_settings_round_trip(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    assert store.get_game_settings() is None

    store.set_game_settings(GameSettings(game_type="tournament", buy_in="109"))
    settings = store.get_game_settings()
    assert settings.game_type == "tournament"
    assert settings.buy_in == "109"

    store.set_game_settings(None)
    assert store.get_game_settings() is None


@pytest.mark.parametrize("value", ["", "   ", None])
def test_validate_credential_missing(value) -> None:  # noqa: ANN001
    with pytest.raises(CredentialError) as excinfo:
        validate_credential(value)
    assert excinfo.value.code == CREDENTIAL_MISSING


@pytest.mark.parametrize("value", ["abc12345678", "sk-", "sk-abc def1"])
def test_validate_credential_invalid(value: str) -> None:
    with pytest.raises(CredentialError) as excinfo:
        validate_credential(value)
    assert excinfo.value.code == CREDENTIAL_INVALID


def test_validate_credential_strips() -> None:
    assert validate_credential("  sk-abc12345\n") == "sk-abc12345"
