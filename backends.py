"""Backend contracts, name-keyed registry and the shared retry budget.

Dispatching and refinement only ever hold these base types; vendor modules
(``recognizer.py``, ``polishers.py``) subclass them and translate their SDK
failures into :class:`errors.BackendError`.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator, Optional, TypeVar

from errors import RATE_LIMITED, BackendError, BackendNotFoundError
from models import BackendDescriptor, TranscriptionRequest

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_S = 300.0


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay_s: float = 1.0
    max_delay_s: float = 16.0
    rate_limit_multiplier: float = 2.0

    def delay_for_attempt(self, attempt: int, rate_limited: bool = False) -> float:
        delay = min(self.base_delay_s * (2 ** attempt), self.max_delay_s)
        if rate_limited:
            delay *= self.rate_limit_multiplier
        return delay


NO_RETRY = RetryPolicy(max_retries=0)


def _should_retry(exc: BackendError, attempt: int, policy: RetryPolicy) -> bool:
    return exc.retryable and attempt < policy.max_retries


def call_with_retry(fn: Callable[[], T], policy: RetryPolicy) -> T:
    attempt = 0
    while True:
        try:
            return fn()
        except BackendError as exc:
            if not _should_retry(exc, attempt, policy):
                raise
            delay = policy.delay_for_attempt(attempt, exc.code == RATE_LIMITED)
            log.warning("%s (attempt %d/%d), retrying in %.1fs", exc, attempt + 1, policy.max_retries, delay)
            time.sleep(delay)
            attempt += 1


async def call_with_retry_async(fn: Callable[[], Awaitable[T]], policy: RetryPolicy) -> T:
    attempt = 0
    while True:
        try:
            return await fn()
        except BackendError as exc:
            if not _should_retry(exc, attempt, policy):
                raise
            delay = policy.delay_for_attempt(attempt, exc.code == RATE_LIMITED)
            log.warning("%s (attempt %d/%d), retrying in %.1fs", exc, attempt + 1, policy.max_retries, delay)
            await asyncio.sleep(delay)
            attempt += 1


class TranscriptionBackend(ABC):
    """A speech-to-text service.

    ``transcribe`` and ``transcribe_async`` must agree: same request, same
    text, same error codes. Subclasses implement the ``_once`` variants; the
    public methods add the retry budget.
    """

    name: str = ""
    display_name: str = ""
    requires_api_key: bool = True

    def __init__(self, retry_policy: Optional[RetryPolicy] = None) -> None:
        self.retry_policy = retry_policy or RetryPolicy()

    def transcribe(self, api_key: str, request: TranscriptionRequest) -> str:
        return call_with_retry(lambda: self._transcribe_once(api_key, request), self.retry_policy)

    async def transcribe_async(self, api_key: str, request: TranscriptionRequest) -> str:
        return await call_with_retry_async(
            lambda: self._transcribe_once_async(api_key, request), self.retry_policy
        )

    @abstractmethod
    def _transcribe_once(self, api_key: str, request: TranscriptionRequest) -> str: ...

    @abstractmethod
    async def _transcribe_once_async(self, api_key: str, request: TranscriptionRequest) -> str: ...


class RefinementBackend(ABC):
    """A text-generation service used to clean up a finished transcript."""

    name: str = ""
    display_name: str = ""
    requires_api_key: bool = True
    default_model: str = ""

    def __init__(self, retry_policy: Optional[RetryPolicy] = None) -> None:
        self.retry_policy = retry_policy or RetryPolicy(max_retries=1)

    def refine(self, api_key: str, instruction: str, text: str, model: Optional[str] = None) -> str:
        return call_with_retry(
            lambda: self._refine_once(api_key, instruction, text, model or self.default_model),
            self.retry_policy,
        )

    @abstractmethod
    def _refine_once(self, api_key: str, instruction: str, text: str, model: str) -> str: ...


class BackendRegistry:
    """Name -> descriptor map, filled at start-up and read-only after ``freeze()``."""

    def __init__(self) -> None:
        self._descriptors: dict[str, BackendDescriptor] = {}
        self._lock = threading.Lock()
        self._frozen = False

    def register(self, backend: object, name: Optional[str] = None) -> BackendDescriptor:
        key = name or getattr(backend, "name", "")
        if not key:
            raise ValueError("backend needs a name")
        descriptor = BackendDescriptor(
            name=key,
            display_name=getattr(backend, "display_name", "") or key,
            backend=backend,
            requires_api_key=getattr(backend, "requires_api_key", True),
        )
        with self._lock:
            if self._frozen:
                raise RuntimeError("registry is frozen")
            if key in self._descriptors:
                raise ValueError(f"backend already registered: {key!r}")
            self._descriptors[key] = descriptor
        return descriptor

    def freeze(self) -> "BackendRegistry":
        with self._lock:
            self._frozen = True
        return self

    def descriptor(self, name: str) -> BackendDescriptor:
        try:
            return self._descriptors[name]
        except KeyError:
            raise BackendNotFoundError(name) from None

    def lookup(self, name: str):  # noqa: ANN201
        return self.descriptor(name).backend

    def names(self) -> list[str]:
        return sorted(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __iter__(self) -> Iterator[BackendDescriptor]:
        return iter([self._descriptors[n] for n in self.names()])

    def __len__(self) -> int:
        return len(self._descriptors)
