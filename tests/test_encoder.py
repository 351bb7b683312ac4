from __future__ import annotations

import io
import wave

import numpy as np
import pytest

from encoder import WAV_HEADER_SIZE, WavEncoder, pcm_to_int16, to_int16
from errors import ENCODE_ERROR, EncodeError


def test_encode_writes_16khz_mono_wav() -> None:
    samples = np.arange(1600, dtype=np.int16)
    data = WavEncoder().encode(samples, 16000, 1)

    assert data[:4] == b"RIFF"
    assert len(data) == WAV_HEADER_SIZE + 1600 * 2
    with wave.open(io.BytesIO(data), "rb") as wf:
        assert wf.getframerate() == 16000
        assert wf.getnchannels() == 1
        assert wf.getsampwidth() == 2
        assert np.frombuffer(wf.readframes(1600), dtype="<i2").tolist() == samples.tolist()


def test_float_samples_are_scaled_and_clipped() -> None:
    result = to_int16(np.array([0.0, 1.0, -2.0], dtype=np.float32))
    assert result.tolist() == [0, 32767, -32767]


def test_empty_samples_raise_encode_error() -> None:
    with pytest.raises(EncodeError) as info:
        WavEncoder().encode(np.zeros(0, dtype=np.int16))
    assert info.value.code == ENCODE_ERROR


def test_channel_mismatch_raises() -> None:
    with pytest.raises(EncodeError):
        WavEncoder().encode(np.zeros(3, dtype=np.int16), 16000, 2)


def test_invalid_rate_raises() -> None:
    with pytest.raises(EncodeError):
        WavEncoder().encode(np.zeros(10, dtype=np.int16), 0, 1)


def test_pcm_widths_are_widened_or_narrowed_to_int16() -> None:
    assert pcm_to_int16(bytes([0, 128, 255]), 1).tolist() == [-32768, 0, 32512]
    assert pcm_to_int16(np.array([-2, 300], dtype="<i2").tobytes(), 2).tolist() == [-2, 300]
    # 24-bit little-endian: 0x7FFFFF, -1, 0x123456
    raw24 = bytes([0xFF, 0xFF, 0x7F, 0xFF, 0xFF, 0xFF, 0x56, 0x34, 0x12])
    assert pcm_to_int16(raw24, 3).tolist() == [32767, -1, 0x1234]
    raw32 = np.array([2**31 - 1, -(2**31), 0x12345678], dtype="<i4").tobytes()
    assert pcm_to_int16(raw32, 4).tolist() == [32767, -32768, 0x1234]


def test_unsupported_pcm_width_raises() -> None:
    with pytest.raises(EncodeError):
        pcm_to_int16(b"\x00" * 8, 8)
    with pytest.raises(EncodeError):
        pcm_to_int16(b"\x00" * 4, 3)
