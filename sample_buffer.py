"""Thread-safe sample store for one in-progress recording."""

from __future__ import annotations

import threading
from typing import Any

import numpy as np


class SampleBuffer:
    """Append-only buffer written by the capture callback, drained once by the controller."""

    def __init__(self, dtype: Any = np.int16) -> None:
        self._dtype = np.dtype(dtype)
        self._lock = threading.Lock()
        self._blocks: list[np.ndarray] = []
        self._count = 0
        self._accepting = True

    def append(self, samples: Any) -> None:
        block = np.array(samples, dtype=self._dtype, copy=True).reshape(-1)
        if block.size == 0:
            return
        with self._lock:
            if not self._accepting:
                return
            self._blocks.append(block)
            self._count += block.size

    def drain(self) -> np.ndarray:
        """Stop accepting, hand back everything collected so far and reset."""
        with self._lock:
            self._accepting = False
            blocks = self._blocks
            self._blocks = []
            self._count = 0
        if not blocks:
            return np.zeros(0, dtype=self._dtype)
        return np.concatenate(blocks)

    def reset(self) -> None:
        with self._lock:
            self._blocks = []
            self._count = 0
            self._accepting = True

    @property
    def accepting(self) -> bool:
        return self._accepting

    def __len__(self) -> int:
        return self._count
