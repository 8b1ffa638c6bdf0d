"""Shared error codes, user-facing messages and pipeline exceptions."""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
DEVICE_NOT_FOUND = "DEVICE_NOT_FOUND"
UNSUPPORTED_PLATFORM = "UNSUPPORTED_PLATFORM"
DEVICE_DISCONNECTED = "DEVICE_DISCONNECTED"
CREDENTIAL_MISSING = "CREDENTIAL_MISSING"
CREDENTIAL_INVALID = "CREDENTIAL_INVALID"
EMPTY_SEGMENT = "EMPTY_SEGMENT"
ACTION_REJECTED = "ACTION_REJECTED"
QUEUE_FULL = "QUEUE_FULL"
QUEUE_CLOSED = "QUEUE_CLOSED"
DUPLICATE_SEGMENT = "DUPLICATE_SEGMENT"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
UNSUPPORTED_AUDIO = "UNSUPPORTED_AUDIO"
EMPTY_AUDIO = "EMPTY_AUDIO"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"
MALFORMED_RESPONSE = "MALFORMED_RESPONSE"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone access was denied. Allow access, then choose Retry Microphone Access.",
    DEVICE_NOT_FOUND: "No microphone was found. Connect one and try again.",
    UNSUPPORTED_PLATFORM: "Audio recording is not supported on this system.",
    DEVICE_DISCONNECTED: "The microphone stopped unexpectedly.",
    CREDENTIAL_MISSING: "Please set your API key first.",
    CREDENTIAL_INVALID: "API key format is invalid.",
    EMPTY_SEGMENT: "No audio data was recorded.",
    ACTION_REJECTED: "Another action is still being applied.",
    QUEUE_FULL: "Too many hands are waiting to be processed.",
    QUEUE_CLOSED: "Processing has shut down.",
    DUPLICATE_SEGMENT: "This hand is already queued.",
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    UNSUPPORTED_AUDIO: "Audio format was rejected by the transcription service.",
    EMPTY_AUDIO: "No speech was detected in the recording.",
    ASR_PROTOCOL_ERROR: "ASR response format is invalid.",
    MALFORMED_RESPONSE: "The formatting service returned an unusable response.",
}


class PipelineError(Exception):
    """Base error carrying one of the codes above."""

    default_code = ASR_PROTOCOL_ERROR

    def __init__(self, code: str | None = None, message: str = "") -> None:
        self.code = code or self.default_code
        self.message = message or ERROR_MESSAGES.get(self.code, self.code)
        super().__init__(f"{self.code}: {self.message}")


class DeviceError(PipelineError):
    default_code = DEVICE_NOT_FOUND


class CredentialError(PipelineError):
    default_code = CREDENTIAL_MISSING


class EmptySegmentError(PipelineError):
    default_code = EMPTY_SEGMENT


class ConcurrentActionRejected(PipelineError):
    default_code = ACTION_REJECTED


class QueueFullError(PipelineError):
    default_code = QUEUE_FULL


class QueueClosedError(PipelineError):
    default_code = QUEUE_CLOSED


class DuplicateSegmentError(PipelineError):
    default_code = DUPLICATE_SEGMENT


class TranscriptionError(PipelineError):
    default_code = ASR_PROTOCOL_ERROR


class FormattingError(PipelineError):
    default_code = MALFORMED_RESPONSE


def classify_exception(exc: BaseException, default: str = ASR_PROTOCOL_ERROR) -> str:
    """Map an SDK/network exception to an error code."""
    if isinstance(exc, PipelineError):
        return exc.code
    low = str(exc).lower()
    if "401" in low or "auth" in low or "api key" in low or "apikey" in low:
        return AUTH_FAILED
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return NETWORK_ERROR
    if "timeout" in low or "timed out" in low or "network" in low or "connection" in low:
        return NETWORK_ERROR
    return default
