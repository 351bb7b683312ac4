"""Microphone capture via sounddevice."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from interfaces import SampleCallback
from models import CHANNELS, SAMPLE_RATE

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

log = logging.getLogger(__name__)


def input_devices() -> list[tuple[int, str]]:
    """``(index, name)`` for every device that can record."""
    if sd is None:
        return []
    return [
        (index, str(info["name"]))
        for index, info in enumerate(sd.query_devices())
        if info.get("max_input_channels", 0) > 0
    ]


class SoundDeviceRecorder:
    """Push-style source: each captured block goes to ``on_samples`` as flat int16.

    The callback runs on the PortAudio thread and must return quickly.
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        channels: int = CHANNELS,
        chunk_ms: int = 100,
        device: Optional[int | str] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.blocksize = sample_rate * chunk_ms // 1000
        self.device = device
        self.status_errors = 0
        self._stream: Any = None
        self._sink: Optional[SampleCallback] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._stream is not None

    def start(self, on_samples: SampleCallback) -> None:
        with self._lock:
            if self._stream is not None:
                return
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            self._sink = on_samples
            self.status_errors = 0
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=self.blocksize,
                device=self.device,
                callback=self._on_audio,
            )
            try:
                stream.start()
            except Exception:
                self._sink = None
                stream.close()
                raise
            self._stream = stream
        log.debug("input stream open: %d Hz, %d ch, device=%s", self.sample_rate, self.channels, self.device)

    def stop(self) -> None:
        with self._lock:
            stream, self._stream = self._stream, None
            self._sink = None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
        if self.status_errors:
            log.warning("input stream reported %d overflow/underflow block(s)", self.status_errors)

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        sink = self._sink
        if sink is None or np is None:
            return
        if status:
            self.status_errors += 1
        # PortAudio reuses indata after the callback returns
        sink(np.array(indata, dtype=np.int16).reshape(-1))
