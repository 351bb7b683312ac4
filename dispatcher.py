"""Parallel chunk transcription with bounded concurrency and ordered merge."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, Optional

from backends import TranscriptionBackend
from limiter import MAX_CONCURRENT_REQUESTS, ConcurrencyLimiter
from models import AudioChunk, ChunkTranscription, TranscriptionRequest

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def merge_transcripts(results: Iterable[ChunkTranscription]) -> str:
    """Join chunk texts in index order, whatever order they finished in."""
    ordered = sorted(results, key=lambda r: r.index)
    if len(ordered) == 1:
        return ordered[0].text
    parts = [r.text.strip() for r in ordered]
    return " ".join(p for p in parts if p)


class TranscriptionDispatcher:
    def __init__(
        self,
        max_concurrency: int = MAX_CONCURRENT_REQUESTS,
        cancel_on_failure: bool = True,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.max_concurrency = max_concurrency
        self.cancel_on_failure = cancel_on_failure
        self._on_progress = on_progress

    def transcribe(
        self,
        backend: TranscriptionBackend,
        api_key: str,
        chunks: list[AudioChunk],
        language: Optional[str] = None,
        extension: str = "wav",
        mime_type: str = "audio/wav",
    ) -> str:
        """Blocking entry point. Must not be called from a running event loop."""
        if not chunks:
            return ""
        if len(chunks) == 1:
            request = self._request(backend, chunks[0], language, "audio", extension, mime_type)
            text = backend.transcribe(api_key, request)
            self._report(1, 1)
            return text
        return asyncio.run(
            self.dispatch(backend, api_key, chunks, language=language, extension=extension, mime_type=mime_type)
        )

    async def dispatch(
        self,
        backend: TranscriptionBackend,
        api_key: str,
        chunks: list[AudioChunk],
        language: Optional[str] = None,
        extension: str = "wav",
        mime_type: str = "audio/wav",
        limiter: Optional[ConcurrencyLimiter] = None,
    ) -> str:
        """Transcribe every chunk concurrently and merge by chunk index.

        All units are scheduled up front and queue on ``limiter``; a unit
        releases its permit whether its call succeeded or not. The first
        failure aborts the merge and is raised as-is: the other results are
        never returned. Pending units are cancelled when
        ``cancel_on_failure`` is set, otherwise they are left to finish and
        their results dropped.
        """
        if not chunks:
            return ""
        limiter = limiter or ConcurrencyLimiter(self.max_concurrency)
        total = len(chunks)
        done_count = 0

        async def run_unit(chunk: AudioChunk) -> ChunkTranscription:
            nonlocal done_count
            request = self._request(backend, chunk, language, f"audio_chunk_{chunk.index}", extension, mime_type)
            async with limiter:
                log.debug("chunk %d/%d: sending %d bytes", chunk.index + 1, total, len(chunk.data))
                text = await backend.transcribe_async(api_key, request)
            done_count += 1
            log.debug("chunk %d/%d: done", chunk.index + 1, total)
            self._report(done_count, total)
            return ChunkTranscription(chunk.index, text, chunk.has_leading_overlap)

        tasks = [asyncio.create_task(run_unit(chunk), name=f"chunk-{chunk.index}") for chunk in chunks]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            failed = [t for t in tasks if t in done and t.exception() is not None]
            if failed:
                if self.cancel_on_failure:
                    for task in pending:
                        task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
                exc = failed[0].exception()
                log.info("chunk %s failed, dropping %d sibling result(s)", failed[0].get_name(), total - 1)
                raise exc  # type: ignore[misc]
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        return merge_transcripts(t.result() for t in tasks)

    def _request(
        self,
        backend: TranscriptionBackend,
        chunk: AudioChunk,
        language: Optional[str],
        stem: str,
        extension: str,
        mime_type: str,
    ) -> TranscriptionRequest:
        return TranscriptionRequest(
            audio=chunk.data,
            filename=f"{stem}.{extension}",
            mime_type=mime_type,
            language=language,
            backend=backend.name,
        )

    def _report(self, done: int, total: int) -> None:
        if self._on_progress:
            self._on_progress(done, total)
