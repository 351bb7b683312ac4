"""Speech-to-text backends for the hosted transcription services.

OpenAI, Groq and Mistral share the OpenAI audio-transcription API and differ
only in base URL and model. DashScope (qwen3-asr-flash) takes the whole clip
inlined as base64 through its multimodal conversation endpoint.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any, Optional

import openai
from openai import AsyncOpenAI, OpenAI

from backends import DEFAULT_TIMEOUT_S, BackendRegistry, RetryPolicy, TranscriptionBackend
from errors import (
    AUTH_FAILED,
    MALFORMED_RESPONSE,
    NETWORK_ERROR,
    RATE_LIMITED,
    UNSUPPORTED_FORMAT,
    BackendError,
)
from models import TranscriptionRequest

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

log = logging.getLogger(__name__)


def classify_message(message: str) -> tuple[str, bool]:
    """Best-effort error code for an exception that carries only text."""
    low = message.lower()
    if "401" in low or "403" in low or "auth" in low or "api key" in low:
        return AUTH_FAILED, False
    if "429" in low or "rate limit" in low or "throttl" in low:
        return RATE_LIMITED, True
    if "timeout" in low or "timed out" in low or "network" in low or "connection" in low:
        return NETWORK_ERROR, True
    if "format" in low or "decode" in low:
        return UNSUPPORTED_FORMAT, False
    return MALFORMED_RESPONSE, False


def map_openai_error(exc: Exception, backend: str) -> BackendError:
    """Translate an ``openai`` SDK exception into a BackendError."""
    message = str(exc)
    if isinstance(exc, openai.APIConnectionError):  # includes APITimeoutError
        return BackendError(NETWORK_ERROR, message, backend=backend)
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return BackendError(AUTH_FAILED, message, backend=backend)
    if isinstance(exc, openai.RateLimitError):
        return BackendError(RATE_LIMITED, message, backend=backend)
    if isinstance(exc, (openai.BadRequestError, openai.UnprocessableEntityError)):
        return BackendError(UNSUPPORTED_FORMAT, message, backend=backend)
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code == 408 or exc.status_code >= 500:
            return BackendError(NETWORK_ERROR, message, backend=backend)
        return BackendError(MALFORMED_RESPONSE, message, backend=backend)
    code, retryable = classify_message(message)
    return BackendError(code, message, retryable=retryable, backend=backend)


def _response_text(response: Any, backend: str) -> str:
    text = getattr(response, "text", None)
    if text is None and isinstance(response, dict):
        text = response.get("text")
    if not isinstance(text, str):
        raise BackendError(MALFORMED_RESPONSE, "response has no text field", backend=backend)
    return text


class OpenAICompatibleBackend(TranscriptionBackend):
    """Any service exposing ``POST {base_url}/audio/transcriptions``."""

    def __init__(
        self,
        name: str,
        display_name: str,
        model: str,
        base_url: Optional[str] = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        super().__init__(retry_policy)
        self.name = name
        self.display_name = display_name
        self.model = model
        self.base_url = base_url
        self.timeout_s = timeout_s

    def _create_kwargs(self, request: TranscriptionRequest) -> dict[str, Any]:
        log.debug("%s: sending %s (%d bytes)", self.name, request.filename, len(request.audio))
        kwargs: dict[str, Any] = {
            "model": self.model,
            "file": (request.filename, request.audio, request.mime_type),
        }
        if request.language:
            kwargs["language"] = request.language
        return kwargs

    def _check_key(self, api_key: str) -> None:
        if not api_key:
            raise BackendError(AUTH_FAILED, "No API key configured", backend=self.name)

    def _transcribe_once(self, api_key: str, request: TranscriptionRequest) -> str:
        self._check_key(api_key)
        try:
            with OpenAI(
                api_key=api_key, base_url=self.base_url, timeout=self.timeout_s, max_retries=0
            ) as client:
                response = client.audio.transcriptions.create(**self._create_kwargs(request))
        except openai.OpenAIError as exc:
            raise map_openai_error(exc, self.name) from exc
        return _response_text(response, self.name)

    async def _transcribe_once_async(self, api_key: str, request: TranscriptionRequest) -> str:
        self._check_key(api_key)
        try:
            async with AsyncOpenAI(
                api_key=api_key, base_url=self.base_url, timeout=self.timeout_s, max_retries=0
            ) as client:
                response = await client.audio.transcriptions.create(**self._create_kwargs(request))
        except openai.OpenAIError as exc:
            raise map_openai_error(exc, self.name) from exc
        return _response_text(response, self.name)


def response_field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


class DashscopeBackend(TranscriptionBackend):
    name = "dashscope"
    display_name = "DashScope Qwen ASR"

    def __init__(
        self,
        model: str = "qwen3-asr-flash",
        timeout_s: float = DEFAULT_TIMEOUT_S,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        super().__init__(retry_policy)
        self.model = model
        self.timeout_s = timeout_s

    def _transcribe_once(self, api_key: str, request: TranscriptionRequest) -> str:
        if dashscope is None:
            raise BackendError(MALFORMED_RESPONSE, "dashscope is not installed", retryable=False, backend=self.name)
        if not api_key:
            raise BackendError(AUTH_FAILED, "No API key configured", backend=self.name)

        audio_b64 = base64.b64encode(request.audio).decode("ascii")
        asr_options: dict[str, Any] = {"enable_itn": False}
        if request.language:
            asr_options["language"] = request.language
        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self.model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": f"data:{request.mime_type};base64,{audio_b64}"}]},
                ],
                result_format="message",
                asr_options=asr_options,
                timeout=self.timeout_s,
            )
        except Exception as exc:
            code, retryable = classify_message(str(exc))
            raise BackendError(code, str(exc), retryable=retryable, backend=self.name) from exc

        self._raise_for_status(response)
        text = self._extract_text(response)
        if text is None:
            raise BackendError(MALFORMED_RESPONSE, "no text in DashScope response", backend=self.name)
        return text

    async def _transcribe_once_async(self, api_key: str, request: TranscriptionRequest) -> str:
        return await asyncio.to_thread(self._transcribe_once, api_key, request)

    def _raise_for_status(self, response: Any) -> None:
        status = response_field(response, "status_code", 200)
        if status in (None, 200):
            return
        message = f"{response_field(response, 'code', '')}: {response_field(response, 'message', '')}".strip(": ")
        if status in (401, 403):
            code = AUTH_FAILED
        elif status == 429:
            code = RATE_LIMITED
        elif status == 400:
            code = UNSUPPORTED_FORMAT
        elif status >= 500:
            code = NETWORK_ERROR
        else:
            code = MALFORMED_RESPONSE
        raise BackendError(code, message or f"HTTP {status}", backend=self.name)

    def _extract_text(self, response: Any) -> Optional[str]:
        """Pull text from a DashScope message-format response."""
        output = response_field(response, "output") or {}
        choices = response_field(output, "choices") or []
        if not choices:
            return None
        message = response_field(choices[0], "message") or {}
        content = response_field(message, "content") or []
        if not content:
            return ""
        value = content[0]
        if isinstance(value, dict):
            return str(value.get("text", ""))
        return None


def builtin_backends() -> list[TranscriptionBackend]:
    return [
        OpenAICompatibleBackend("openai", "OpenAI Whisper", "whisper-1"),
        OpenAICompatibleBackend(
            "groq", "Groq Whisper", "whisper-large-v3-turbo", base_url="https://api.groq.com/openai/v1"
        ),
        OpenAICompatibleBackend(
            "mistral", "Mistral Voxtral", "voxtral-mini-latest", base_url="https://api.mistral.ai/v1"
        ),
        DashscopeBackend(),
    ]


def default_registry() -> BackendRegistry:
    registry = BackendRegistry()
    for backend in builtin_backends():
        registry.register(backend)
    return registry.freeze()
