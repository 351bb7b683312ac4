"""PCM samples -> WAV bytes."""

from __future__ import annotations

import io
import wave
from typing import Any

import numpy as np

from errors import EncodeError
from models import CHANNELS, SAMPLE_RATE

WAV_HEADER_SIZE = 44


def to_int16(samples: Any) -> np.ndarray:
    """Convert int16 or float ([-1, 1]) samples to a flat int16 array."""
    data = np.asarray(samples)
    if data.dtype == np.int16:
        return data.reshape(-1)
    if np.issubdtype(data.dtype, np.floating):
        clipped = np.clip(data, -1.0, 1.0)
        return (clipped * np.iinfo(np.int16).max).astype(np.int16).reshape(-1)
    if np.issubdtype(data.dtype, np.integer):
        info = np.iinfo(np.int16)
        return np.clip(data, info.min, info.max).astype(np.int16).reshape(-1)
    raise EncodeError(f"unsupported sample type: {data.dtype}")


def pcm_to_int16(raw: bytes, sample_width: int) -> np.ndarray:
    """Decode little-endian PCM frames of any width ``wave`` reads into int16.

    8-bit WAV is unsigned, wider formats are signed; only the top 16 bits of
    24- and 32-bit samples are kept.
    """
    if sample_width == 1:
        return ((np.frombuffer(raw, dtype=np.uint8).astype(np.int16) - 128) << 8).astype(np.int16)
    if sample_width == 2:
        return np.frombuffer(raw, dtype="<i2").astype(np.int16)
    if sample_width == 3:
        frames = np.frombuffer(raw, dtype=np.uint8)
        if frames.size % 3:
            raise EncodeError("truncated 24-bit PCM data")
        # bytes 1 and 2 of each little-endian triple are the high 16 bits
        triples = frames.reshape(-1, 3)
        return (triples[:, 1].astype(np.uint16) | (triples[:, 2].astype(np.uint16) << 8)).view(np.int16)
    if sample_width == 4:
        return (np.frombuffer(raw, dtype="<i4") >> 16).astype(np.int16)
    raise EncodeError(f"unsupported sample width: {sample_width} bytes")


class WavEncoder:
    extension = "wav"
    mime_type = "audio/wav"
    header_size = WAV_HEADER_SIZE

    def encode(self, samples: Any, sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS) -> bytes:
        if sample_rate <= 0 or channels <= 0:
            raise EncodeError(f"invalid format: {sample_rate} Hz, {channels} channel(s)")
        try:
            pcm = to_int16(samples)
        except (TypeError, ValueError) as exc:
            raise EncodeError(str(exc)) from exc
        if pcm.size == 0:
            raise EncodeError("No audio data recorded")
        if pcm.size % channels:
            raise EncodeError("sample count is not a multiple of the channel count")

        buf = io.BytesIO()
        with wave.open(buf, "wb") as wf:
            wf.setnchannels(channels)
            wf.setsampwidth(2)
            wf.setframerate(sample_rate)
            wf.writeframes(pcm.astype("<i2").tobytes())
        return buf.getvalue()
