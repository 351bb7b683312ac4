"""Tests for the hosted transcription backends."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from backends import NO_RETRY, RetryPolicy
from errors import (
    AUTH_FAILED,
    MALFORMED_RESPONSE,
    NETWORK_ERROR,
    RATE_LIMITED,
    UNSUPPORTED_FORMAT,
    BackendError,
)
from models import TranscriptionRequest
from recognizer import (
    DashscopeBackend,
    OpenAICompatibleBackend,
    classify_message,
    default_registry,
    map_openai_error,
)

URL = "https://api.example.com/v1/audio/transcriptions"


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

def _status_error(cls, status: int):  # noqa: ANN001, ANN202
    request = httpx.Request("POST", URL)
    response = httpx.Response(status, request=request)
    return cls(f"HTTP {status}", response=response, body=None)


def _request(language: str | None = None) -> TranscriptionRequest:
    return TranscriptionRequest(audio=b"RIFF....", filename="audio.wav", mime_type="audio/wav", language=language)


def _backend() -> OpenAICompatibleBackend:
    return OpenAICompatibleBackend("openai", "OpenAI Whisper", "whisper-1", retry_policy=NO_RETRY)


def _sync_client(mock_openai: MagicMock) -> MagicMock:
    client = MagicMock()
    mock_openai.return_value.__enter__.return_value = client
    return client


# ---------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------

@pytest.mark.parametrize(
    "cls, status, code",
    [
        (openai.AuthenticationError, 401, AUTH_FAILED),
        (openai.PermissionDeniedError, 403, AUTH_FAILED),
        (openai.RateLimitError, 429, RATE_LIMITED),
        (openai.BadRequestError, 400, UNSUPPORTED_FORMAT),
        (openai.UnprocessableEntityError, 422, UNSUPPORTED_FORMAT),
        (openai.InternalServerError, 503, NETWORK_ERROR),
        (openai.NotFoundError, 404, MALFORMED_RESPONSE),
    ],
)
def test_status_errors_map_to_codes(cls, status: int, code: str) -> None:  # noqa: ANN001
    error = map_openai_error(_status_error(cls, status), "openai")

    assert error.code == code
    assert error.backend == "openai"
    assert error.retryable is (code in (RATE_LIMITED, NETWORK_ERROR))


def test_connection_and_timeout_errors_are_network_errors() -> None:
    request = httpx.Request("POST", URL)

    assert map_openai_error(openai.APIConnectionError(request=request), "groq").code == NETWORK_ERROR
    assert map_openai_error(openai.APITimeoutError(request=request), "groq").code == NETWORK_ERROR


def test_classify_message_fallbacks() -> None:
    assert classify_message("401 Unauthorized: invalid api key") == (AUTH_FAILED, False)
    assert classify_message("Throttling.RateQuota") == (RATE_LIMITED, True)
    assert classify_message("read timed out") == (NETWORK_ERROR, True)
    assert classify_message("cannot decode audio") == (UNSUPPORTED_FORMAT, False)
    assert classify_message("???") == (MALFORMED_RESPONSE, False)


# ---------------------------------------------------------------
# OpenAI-compatible backend
# ---------------------------------------------------------------

@patch("recognizer.OpenAI")
def test_transcribe_sends_file_and_language(mock_openai: MagicMock) -> None:
    client = _sync_client(mock_openai)
    client.audio.transcriptions.create.return_value = SimpleNamespace(text="hello world")

    text = _backend().transcribe("sk-test", _request(language="de"))

    assert text == "hello world"
    kwargs = client.audio.transcriptions.create.call_args.kwargs
    assert kwargs["model"] == "whisper-1"
    assert kwargs["file"] == ("audio.wav", b"RIFF....", "audio/wav")
    assert kwargs["language"] == "de"
    assert mock_openai.call_args.kwargs["max_retries"] == 0


@patch("recognizer.OpenAI")
def test_language_omitted_when_not_set(mock_openai: MagicMock) -> None:
    client = _sync_client(mock_openai)
    client.audio.transcriptions.create.return_value = SimpleNamespace(text="x")

    _backend().transcribe("sk-test", _request())

    assert "language" not in client.audio.transcriptions.create.call_args.kwargs


@patch("recognizer.OpenAI")
def test_sdk_error_becomes_backend_error(mock_openai: MagicMock) -> None:
    client = _sync_client(mock_openai)
    client.audio.transcriptions.create.side_effect = _status_error(openai.AuthenticationError, 401)

    with pytest.raises(BackendError) as info:
        _backend().transcribe("sk-bad", _request())
    assert info.value.code == AUTH_FAILED


@patch("recognizer.OpenAI")
def test_missing_text_is_malformed(mock_openai: MagicMock) -> None:
    client = _sync_client(mock_openai)
    client.audio.transcriptions.create.return_value = SimpleNamespace(text=None)

    with pytest.raises(BackendError) as info:
        _backend().transcribe("sk-test", _request())
    assert info.value.code == MALFORMED_RESPONSE


@patch("recognizer.OpenAI")
def test_empty_key_fails_without_a_request(mock_openai: MagicMock) -> None:
    with pytest.raises(BackendError) as info:
        _backend().transcribe("", _request())

    assert info.value.code == AUTH_FAILED
    mock_openai.assert_not_called()


@patch("recognizer.OpenAI")
def test_rate_limit_is_retried_then_succeeds(mock_openai: MagicMock) -> None:
    client = _sync_client(mock_openai)
    client.audio.transcriptions.create.side_effect = [
        _status_error(openai.RateLimitError, 429),
        SimpleNamespace(text="after retry"),
    ]
    backend = OpenAICompatibleBackend(
        "openai", "OpenAI Whisper", "whisper-1", retry_policy=RetryPolicy(base_delay_s=0.0, max_delay_s=0.0)
    )

    assert backend.transcribe("sk-test", _request()) == "after retry"
    assert client.audio.transcriptions.create.call_count == 2


@patch("recognizer.AsyncOpenAI")
def test_async_transcribe_uses_async_client(mock_async: MagicMock) -> None:
    client = MagicMock()
    client.audio.transcriptions.create = AsyncMock(return_value=SimpleNamespace(text="async hello"))
    mock_async.return_value.__aenter__.return_value = client
    backend = OpenAICompatibleBackend(
        "groq", "Groq Whisper", "whisper-large-v3-turbo", base_url="https://api.groq.com/openai/v1",
        retry_policy=NO_RETRY,
    )

    text = asyncio.run(backend.transcribe_async("gsk-test", _request()))

    assert text == "async hello"
    assert mock_async.call_args.kwargs["base_url"] == "https://api.groq.com/openai/v1"
    assert client.audio.transcriptions.create.await_args.kwargs["model"] == "whisper-large-v3-turbo"


@patch("recognizer.AsyncOpenAI")
def test_async_error_maps_like_sync(mock_async: MagicMock) -> None:
    client = MagicMock()
    client.audio.transcriptions.create = AsyncMock(
        side_effect=openai.APIConnectionError(request=httpx.Request("POST", URL))
    )
    mock_async.return_value.__aenter__.return_value = client

    with pytest.raises(BackendError) as info:
        asyncio.run(_backend().transcribe_async("sk-test", _request()))
    assert info.value.code == NETWORK_ERROR
    assert info.value.retryable is True


# ---------------------------------------------------------------
# DashScope backend
# ---------------------------------------------------------------

def _dashscope_response(text: str) -> dict:
    return {"status_code": 200, "output": {"choices": [{"message": {"content": [{"text": text}]}}]}}


@patch("recognizer.dashscope")
def test_dashscope_returns_text(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = _dashscope_response("你好世界")

    text = DashscopeBackend(retry_policy=NO_RETRY).transcribe("ds-key", _request(language="zh"))

    assert text == "你好世界"
    kwargs = mock_ds.MultiModalConversation.call.call_args.kwargs
    assert kwargs["model"] == "qwen3-asr-flash"
    assert kwargs["asr_options"]["language"] == "zh"
    audio = kwargs["messages"][1]["content"][0]["audio"]
    assert audio.startswith("data:audio/wav;base64,")


@patch("recognizer.dashscope")
def test_dashscope_async_runs_the_blocking_call(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = _dashscope_response("hi")

    assert asyncio.run(DashscopeBackend(retry_policy=NO_RETRY).transcribe_async("ds-key", _request())) == "hi"


@pytest.mark.parametrize("status, code", [(401, AUTH_FAILED), (429, RATE_LIMITED), (400, UNSUPPORTED_FORMAT), (500, NETWORK_ERROR)])
@patch("recognizer.dashscope")
def test_dashscope_status_codes(mock_ds: MagicMock, status: int, code: str) -> None:
    mock_ds.MultiModalConversation.call.return_value = {"status_code": status, "code": "Err", "message": "nope"}

    with pytest.raises(BackendError) as info:
        DashscopeBackend(retry_policy=NO_RETRY).transcribe("ds-key", _request())
    assert info.value.code == code


@patch("recognizer.dashscope")
def test_dashscope_network_exception(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = ConnectionError("network timeout")

    with pytest.raises(BackendError) as info:
        DashscopeBackend(retry_policy=NO_RETRY).transcribe("ds-key", _request())
    assert info.value.code == NETWORK_ERROR
    assert info.value.retryable is True


@patch("recognizer.dashscope")
def test_dashscope_response_without_choices_is_malformed(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = {"status_code": 200, "output": {}}

    with pytest.raises(BackendError) as info:
        DashscopeBackend(retry_policy=NO_RETRY).transcribe("ds-key", _request())
    assert info.value.code == MALFORMED_RESPONSE


@patch("recognizer.dashscope", None)
def test_dashscope_not_installed() -> None:
    with pytest.raises(BackendError) as info:
        DashscopeBackend(retry_policy=NO_RETRY).transcribe("ds-key", _request())
    assert "not installed" in info.value.message


# ---------------------------------------------------------------
# Default registry
# ---------------------------------------------------------------

def test_default_registry_has_builtin_backends() -> None:
    registry = default_registry()

    assert registry.names() == ["dashscope", "groq", "mistral", "openai"]
    with pytest.raises(RuntimeError):
        registry.register(_backend(), name="another")
