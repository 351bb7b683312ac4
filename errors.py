"""Shared error codes, user-facing messages and exception types."""

from __future__ import annotations

from typing import Optional

CONFIG_ERROR = "CONFIG_ERROR"
BACKEND_NOT_FOUND = "BACKEND_NOT_FOUND"
ENCODE_ERROR = "ENCODE_ERROR"
CAPTURE_FAILED = "CAPTURE_FAILED"
AUTH_FAILED = "AUTH_FAILED"
RATE_LIMITED = "RATE_LIMITED"
NETWORK_ERROR = "NETWORK_ERROR"
MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
REFINEMENT_FAILED = "REFINEMENT_FAILED"
DELIVERY_FAILED = "DELIVERY_FAILED"
INVALID_TRANSITION = "INVALID_TRANSITION"
UNEXPECTED_ERROR = "UNEXPECTED_ERROR"

RETRYABLE_CODES = frozenset({RATE_LIMITED, NETWORK_ERROR})

ERROR_MESSAGES = {
    CONFIG_ERROR: "Configuration is incomplete, check the API key.",
    BACKEND_NOT_FOUND: "The selected transcription service is not available.",
    ENCODE_ERROR: "Recorded audio could not be encoded.",
    CAPTURE_FAILED: "Microphone could not be opened.",
    AUTH_FAILED: "API key is invalid.",
    RATE_LIMITED: "The service is throttling requests, please retry later.",
    NETWORK_ERROR: "Network failed, please retry.",
    MALFORMED_RESPONSE: "Transcription response format is invalid.",
    UNSUPPORTED_FORMAT: "The service rejected the audio format.",
    REFINEMENT_FAILED: "Cleanup failed, the raw transcript was used.",
    DELIVERY_FAILED: "Text could not be delivered to the clipboard.",
    INVALID_TRANSITION: "Another recording is still in progress.",
    UNEXPECTED_ERROR: "Something went wrong.",
}


class Talk2TextError(Exception):
    """Base error carrying a stable ``code`` and a safe ``message``."""

    code = UNEXPECTED_ERROR

    def __init__(self, message: str = "", code: Optional[str] = None) -> None:
        if code is not None:
            self.code = code
        self.message = message or ERROR_MESSAGES.get(self.code, "")
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ConfigError(Talk2TextError):
    code = CONFIG_ERROR


class BackendNotFoundError(ConfigError):
    code = BACKEND_NOT_FOUND

    def __init__(self, name: str) -> None:
        super().__init__(f"backend not registered: {name!r}")
        self.name = name


class EncodeError(Talk2TextError):
    code = ENCODE_ERROR


class BackendError(Talk2TextError):
    def __init__(
        self,
        code: str,
        message: str = "",
        *,
        retryable: Optional[bool] = None,
        backend: str = "",
    ) -> None:
        super().__init__(message, code=code)
        self.retryable = code in RETRYABLE_CODES if retryable is None else retryable
        self.backend = backend


class RefinementError(Talk2TextError):
    code = REFINEMENT_FAILED


class StateError(Talk2TextError):
    code = INVALID_TRANSITION


class DeliveryError(Talk2TextError):
    code = DELIVERY_FAILED


def user_message(code: str) -> str:
    return ERROR_MESSAGES.get(code, ERROR_MESSAGES[UNEXPECTED_ERROR])
