"""Text-generation backends used to clean up transcripts."""

from __future__ import annotations

from typing import Any, Optional

import openai
from openai import OpenAI

from backends import BackendRegistry, RefinementBackend, RetryPolicy
from errors import AUTH_FAILED, MALFORMED_RESPONSE, BackendError
from recognizer import classify_message, map_openai_error, response_field

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

DEFAULT_TIMEOUT_S = 60.0
DEFAULT_OLLAMA_URL = "http://localhost:11434/v1"


def _messages(instruction: str, text: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": instruction},
        {"role": "user", "content": text},
    ]


class OpenAIChatPolisher(RefinementBackend):
    """Chat-completions polisher for OpenAI and the services that mimic it."""

    def __init__(
        self,
        name: str,
        display_name: str,
        default_model: str,
        base_url: Optional[str] = None,
        requires_api_key: bool = True,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        super().__init__(retry_policy)
        self.name = name
        self.display_name = display_name
        self.default_model = default_model
        self.base_url = base_url
        self.requires_api_key = requires_api_key
        self.timeout_s = timeout_s

    def _refine_once(self, api_key: str, instruction: str, text: str, model: str) -> str:
        if self.requires_api_key and not api_key:
            raise BackendError(AUTH_FAILED, "No API key configured", backend=self.name)
        try:
            # Ollama ignores the key but the client insists on one
            with OpenAI(
                api_key=api_key or "unused",
                base_url=self.base_url,
                timeout=self.timeout_s,
                max_retries=0,
            ) as client:
                response = client.chat.completions.create(model=model, messages=_messages(instruction, text))
        except openai.OpenAIError as exc:
            raise map_openai_error(exc, self.name) from exc

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise BackendError(MALFORMED_RESPONSE, f"No response from {self.display_name}", backend=self.name)
        return content.strip()


class DashscopePolisher(RefinementBackend):
    name = "dashscope"
    display_name = "DashScope Qwen"
    default_model = "qwen-plus"

    def _refine_once(self, api_key: str, instruction: str, text: str, model: str) -> str:
        if dashscope is None:
            raise BackendError(MALFORMED_RESPONSE, "dashscope is not installed", retryable=False, backend=self.name)
        if not api_key:
            raise BackendError(AUTH_FAILED, "No API key configured", backend=self.name)
        try:
            response: Any = dashscope.Generation.call(
                api_key=api_key,
                model=model,
                messages=_messages(instruction, text),
                result_format="message",
            )
        except Exception as exc:
            code, retryable = classify_message(str(exc))
            raise BackendError(code, str(exc), retryable=retryable, backend=self.name) from exc

        status = response_field(response, "status_code", 200)
        if status not in (None, 200):
            code, retryable = classify_message(f"{status} {response_field(response, 'message', '')}")
            raise BackendError(code, f"HTTP {status}", retryable=retryable, backend=self.name)
        choices = response_field(response_field(response, "output") or {}, "choices") or []
        content = response_field(response_field(choices[0], "message") or {}, "content") if choices else None
        if not content:
            raise BackendError(MALFORMED_RESPONSE, "No response from DashScope", backend=self.name)
        return str(content).strip()


def builtin_polishers() -> list[RefinementBackend]:
    return [
        OpenAIChatPolisher("openai", "OpenAI", "gpt-4o-mini"),
        OpenAIChatPolisher("mistral", "Mistral", "mistral-small-latest", base_url="https://api.mistral.ai/v1"),
        OpenAIChatPolisher(
            "ollama", "Ollama (local)", "llama3.2", base_url=DEFAULT_OLLAMA_URL, requires_api_key=False
        ),
        DashscopePolisher(),
    ]


def default_polisher_registry() -> BackendRegistry:
    registry = BackendRegistry()
    for polisher in builtin_polishers():
        registry.register(polisher)
    return registry.freeze()
