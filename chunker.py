"""Split oversized encoded payloads into overlapping chunks.

Services cap a single upload (20 MB for the Whisper-style APIs), so longer
recordings are cut into ``ceil(size / threshold)`` contiguous byte ranges.
Every chunk after the first starts ``overlap`` bytes before the previous one
ended, so a word cut at the boundary is heard whole by at least one request.
Repeated words at the seam are left as they are.
"""

from __future__ import annotations

import math
import struct

from models import AudioChunk

CHUNK_THRESHOLD_BYTES = 20 * 1024 * 1024
# ~2 s of 16 kHz mono 16-bit PCM
CHUNK_OVERLAP_BYTES = 2 * 16000 * 2


def chunk_count(size: int, threshold: int = CHUNK_THRESHOLD_BYTES) -> int:
    if size <= 0:
        return 0
    if size <= threshold:
        return 1
    return math.ceil(size / threshold)


def split_payload(
    payload: bytes,
    threshold: int = CHUNK_THRESHOLD_BYTES,
    overlap: int = CHUNK_OVERLAP_BYTES,
    header_size: int = 0,
) -> list[AudioChunk]:
    """Return the chunks to dispatch for ``payload``.

    Args:
        payload: Encoded audio bytes.
        threshold: Largest payload sent as a single request.
        overlap: Bytes repeated from the end of chunk ``i-1`` at the start of
            chunk ``i``. Clamped to half a chunk, and to whatever room the
            threshold leaves once the header and one step are counted.
        header_size: Length of a container header at the start of the payload.
            When non-zero it is copied in front of every chunk after the first
            so each one decodes on its own; ``start``/``end`` still describe
            the range taken from ``payload``. A canonical 44-byte WAV header
            gets its RIFF and data sizes rewritten for each chunk.

    Returns:
        An empty list for an empty payload, a single chunk spanning the whole
        payload when it fits under ``threshold``, otherwise
        ``ceil(len(payload) / threshold)`` chunks indexed from 0. No chunk is
        longer than ``threshold`` except when a step plus the header alone
        already exceeds it; then the overlap is zero and later chunks are
        up to ``header_size`` bytes over.
    """
    if threshold <= 0:
        raise ValueError("threshold must be positive")
    if overlap < 0 or header_size < 0:
        raise ValueError("overlap and header_size must not be negative")

    if not isinstance(payload, bytes):
        payload = bytes(payload)
    size = len(payload)
    count = chunk_count(size, threshold)
    if count == 0:
        return []
    if count == 1:
        return [AudioChunk(index=0, data=payload, start=0, end=size)]

    header = payload[:header_size] if header_size and header_size < size else b""
    step = math.ceil(size / count)
    # a chunk never grows past threshold unless step + header already does
    overlap = min(overlap, step // 2, max(threshold - step - len(header), 0))

    chunks: list[AudioChunk] = []
    for index in range(count):
        base = index * step
        end = min(base + step, size)
        if base >= end:
            break
        start = 0 if index == 0 else max(base - overlap, len(header))
        body = payload[max(start, len(header)):end]
        chunks.append(
            AudioChunk(
                index=index,
                data=_with_header(header, body),
                start=start,
                end=end,
                has_leading_overlap=index > 0 and start < base,
            )
        )
    return chunks


def _with_header(header: bytes, body: bytes) -> bytes:
    """Prefix ``body`` with ``header``, fixing the sizes of a canonical WAV header."""
    if len(header) != 44 or header[:4] != b"RIFF" or header[8:12] != b"WAVE" or header[36:40] != b"data":
        return header + body
    patched = bytearray(header)
    struct.pack_into("<I", patched, 4, 36 + len(body))
    struct.pack_into("<I", patched, 40, len(body))
    return bytes(patched) + body
