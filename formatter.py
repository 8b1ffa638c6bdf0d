"""Hand-history formatter backed by a DashScope text model."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from errors import AUTH_FAILED, MALFORMED_RESPONSE, FormattingError, classify_exception
from recognizer import extract_message_text, response_error_code, response_field

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)

CONTEXT_MARKER = "Additional context:"

FORMAT_PROMPT = """You are a poker hand history formatter. Convert the following verbal description of a poker hand into standard poker hand history format.
{context_hint}
Follow these formatting rules:
1. Include game type, stakes, and table information in the header
2. List all players with positions and stack sizes
3. Format each street (preflop, flop, turn, river) with proper indentation
4. Include all actions (fold, call, raise) with bet sizes
5. Format cards as: Ah (ace of hearts), Kd (king of diamonds), etc.
6. Include pot sizes after each street
7. Show the winner and amount won

Here's the {input_kind}verbal description:
{transcript}

Return ONLY the formatted hand history text with no additional explanation."""

CONTEXT_HINT = (
    'The input may include an "Additional context:" section with game settings. '
    "Use this information to enhance the hand history output.\n"
)


def build_context_block(settings: Optional[Mapping[str, str]]) -> str:
    """Render contextual settings as ``Additional context: Key: value. ...``."""
    if not settings:
        return ""
    parts = [f"{key}: {value}." for key, value in settings.items() if str(value).strip()]
    if not parts:
        return ""
    return f"{CONTEXT_MARKER} " + " ".join(parts)


def with_context(transcript: str, settings: Optional[Mapping[str, str]]) -> str:
    block = build_context_block(settings)
    if not block:
        return transcript
    return f"{block}\n\n{transcript}"


def build_prompt(text: str) -> str:
    has_context = CONTEXT_MARKER in text
    return FORMAT_PROMPT.format(
        context_hint=CONTEXT_HINT if has_context else "",
        input_kind="input with context and " if has_context else "",
        transcript=text,
    )


class DashscopeHandFormatter:
    def __init__(self, default_model: str = "qwen-plus") -> None:
        self._default_model = default_model

    def format_hand(
        self,
        transcript: str,
        credential: str,
        contextual_settings: Optional[Mapping[str, str]] = None,
        model: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ) -> str:
        if dashscope is None:
            raise FormattingError(MALFORMED_RESPONSE, "dashscope is not installed")
        if not credential:
            raise FormattingError(AUTH_FAILED, "No API key configured")

        prompt = build_prompt(with_context(transcript, contextual_settings))
        kwargs = {}
        if timeout_s is not None:
            kwargs["timeout"] = timeout_s
        model_name = model or self._default_model
        logger.debug("Formatting hand with %s (%d chars)", model_name, len(transcript))
        try:
            response = dashscope.Generation.call(
                api_key=credential,
                model=model_name,
                messages=[{"role": "user", "content": prompt}],
                result_format="message",
                **kwargs,
            )
        except Exception as exc:
            raise FormattingError(classify_exception(exc, MALFORMED_RESPONSE), str(exc)) from exc

        status = response_field(response, "status_code")
        if status is not None and status != 200:
            raise FormattingError(
                response_error_code(response, MALFORMED_RESPONSE),
                str(response_field(response, "message", "") or f"HTTP {status}"),
            )
        text = extract_message_text(response).strip()
        if not text:
            raise FormattingError(MALFORMED_RESPONSE, "response contained no hand history")
        return text
