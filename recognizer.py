"""Speech-to-text adapter using DashScope qwen3-asr-flash.

The model accepts complete audio as a base64 data URI. Each finalized
segment is wrapped into a WAV container and submitted in one request; the
transcript comes back in the first choice of the response message.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Optional

from errors import (
    ASR_PROTOCOL_ERROR,
    AUTH_FAILED,
    EMPTY_AUDIO,
    NETWORK_ERROR,
    UNSUPPORTED_AUDIO,
    TranscriptionError,
    classify_exception,
)
from models import AudioSegment

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)


def response_field(obj: Any, key: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def response_error_code(response: Any, default: str) -> str:
    """Map a non-200 DashScope response to an error code."""
    status = response_field(response, "status_code")
    code = str(response_field(response, "code", "") or "")
    message = str(response_field(response, "message", "") or "").lower()
    if status in (401, 403) or "apikey" in code.lower() or "api key" in message:
        return AUTH_FAILED
    if isinstance(status, int) and status >= 500:
        return NETWORK_ERROR
    if status == 400 and ("audio" in message or "format" in message or "audio" in code.lower()):
        return UNSUPPORTED_AUDIO
    return default


def extract_message_text(response: Any) -> str:
    """Pull text from a DashScope ``result_format='message'`` response."""
    output = response_field(response, "output") or {}
    choices = response_field(output, "choices") or []
    if not choices:
        return ""
    message = response_field(choices[0], "message") or {}
    content = response_field(message, "content")
    if isinstance(content, str):
        return content
    if not content:
        return ""
    value = content[0]
    if isinstance(value, dict):
        return str(value.get("text", ""))
    return ""


class DashscopeTranscriber:
    def __init__(self, model: str = "qwen3-asr-flash") -> None:
        self._model = model

    def transcribe(
        self,
        segment: AudioSegment,
        credential: str,
        timeout_s: Optional[float] = None,
    ) -> str:
        if dashscope is None:
            raise TranscriptionError(ASR_PROTOCOL_ERROR, "dashscope is not installed")
        if not credential:
            raise TranscriptionError(AUTH_FAILED, "No API key configured")
        if not segment.pcm16_bytes:
            raise TranscriptionError(EMPTY_AUDIO)

        wav_b64 = base64.b64encode(segment.to_wav_bytes()).decode("ascii")
        kwargs = {}
        if timeout_s is not None:
            kwargs["timeout"] = timeout_s
        logger.debug(
            "Transcribing segment %s (%.2fs, %d bytes)",
            segment.segment_id, segment.duration_s, len(segment.pcm16_bytes),
        )
        try:
            response = dashscope.MultiModalConversation.call(
                api_key=credential,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": f"data:audio/wav;base64,{wav_b64}"}]},
                ],
                result_format="message",
                asr_options={"enable_itn": False},
                **kwargs,
            )
        except Exception as exc:
            raise TranscriptionError(classify_exception(exc), str(exc)) from exc

        status = response_field(response, "status_code")
        if status is not None and status != 200:
            raise TranscriptionError(
                response_error_code(response, ASR_PROTOCOL_ERROR),
                str(response_field(response, "message", "") or f"HTTP {status}"),
            )
        text = extract_message_text(response).strip()
        if not text:
            raise TranscriptionError(EMPTY_AUDIO)
        return text
