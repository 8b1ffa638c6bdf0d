"""JSON-based config store and the pipeline configuration snapshot."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from errors import CREDENTIAL_INVALID, CREDENTIAL_MISSING, CredentialError
from models import GameSettings, RecordingMode

logger = logging.getLogger(__name__)

DEFAULT_RECORD_HOTKEY = "Key.alt_l"
DEFAULT_MARK_HOTKEY = "Key.alt_r"
DEFAULT_MODEL = "qwen-plus"
CREDENTIAL_PREFIX = "sk-"


def validate_credential(credential: Optional[str]) -> str:
    """Return the stripped credential or raise ``CredentialError``."""
    value = (credential or "").strip()
    if not value:
        raise CredentialError(CREDENTIAL_MISSING)
    if not value.startswith(CREDENTIAL_PREFIX) or len(value) < 8 or any(c.isspace() for c in value):
        raise CredentialError(CREDENTIAL_INVALID, f"API key must start with '{CREDENTIAL_PREFIX}'")
    return value


@dataclass
class PipelineConfig:
    mode: RecordingMode = RecordingMode.SINGLE
    credential: str = ""
    contextual_settings: Dict[str, str] = field(default_factory=dict)
    model: Optional[str] = None
    call_timeout_s: Optional[float] = None
    max_queue_depth: Optional[int] = None


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "hand_scribe" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", "") or os.getenv("DASHSCOPE_API_KEY", ""))

    def set_api_key(self, key: str) -> None:
        self._set("api_key", key.strip())

    def get_record_hotkey(self) -> str:
        return str(self._read_all().get("record_hotkey", DEFAULT_RECORD_HOTKEY))

    def set_record_hotkey(self, hotkey: str) -> None:
        self._set("record_hotkey", hotkey)

    def get_mark_hotkey(self) -> str:
        return str(self._read_all().get("mark_hotkey", DEFAULT_MARK_HOTKEY))

    def set_mark_hotkey(self, hotkey: str) -> None:
        self._set("mark_hotkey", hotkey)

    def get_mode(self) -> RecordingMode:
        value = self._read_all().get("mode", RecordingMode.SINGLE.value)
        try:
            return RecordingMode(value)
        except ValueError:
            logger.warning("Unknown recording mode %r in config, using single", value)
            return RecordingMode.SINGLE

    def set_mode(self, mode: RecordingMode) -> None:
        self._set("mode", RecordingMode(mode).value)

    def get_model(self) -> str:
        return str(self._read_all().get("model", DEFAULT_MODEL))

    def set_model(self, model: str) -> None:
        self._set("model", model)

    def get_game_settings(self) -> Optional[GameSettings]:
        raw = self._read_all().get("game_settings")
        if not isinstance(raw, dict):
            return None
        return GameSettings.from_dict(raw)

    def set_game_settings(self, settings: Optional[GameSettings]) -> None:
        self._set("game_settings", settings.__dict__.copy() if settings else None)

    def get_log_level(self) -> str:
        return str(self._read_all().get("log_level", "INFO")).upper()

    def pipeline_config(self) -> PipelineConfig:
        data = self._read_all()
        settings = self.get_game_settings()
        return PipelineConfig(
            mode=self.get_mode(),
            credential=self.get_api_key(),
            contextual_settings=settings.to_context() if settings else {},
            model=self.get_model(),
            call_timeout_s=_optional_number(data.get("call_timeout_s"), float),
            max_queue_depth=_optional_number(data.get("max_queue_depth"), int),
        )

    def _set(self, key: str, value: object) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("Config file %s is unreadable, using defaults", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def _optional_number(value: object, kind: type) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = kind(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None
