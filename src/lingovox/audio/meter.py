"""Input level analysis used to drive a live recording visualiser."""

from __future__ import annotations

import threading
from collections import deque

import numpy as np

DEFAULT_WINDOW = 50


class LevelMeter:
    """Keeps a rolling window of RMS levels computed from captured blocks.

    ``feed`` is safe to call from the PortAudio callback thread.
    """

    def __init__(self, window: int = DEFAULT_WINDOW) -> None:
        self._levels: deque[float] = deque(maxlen=window)
        self._peak = 0.0
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, block: np.ndarray) -> None:
        if self._closed or block.size == 0:
            return
        samples = block.astype(np.float32, copy=False)
        rms = float(np.sqrt(np.mean(np.square(samples))))
        peak = float(np.max(np.abs(samples)))
        with self._lock:
            self._levels.append(rms)
            self._peak = max(self._peak, peak)

    def levels(self) -> np.ndarray:
        """Return the most recent RMS levels, oldest first."""
        with self._lock:
            return np.array(self._levels, dtype=np.float32)

    @property
    def peak(self) -> float:
        with self._lock:
            return self._peak

    def reset(self) -> None:
        with self._lock:
            self._levels.clear()
            self._peak = 0.0

    def close(self) -> None:
        """Stop accepting input and drop the collected levels."""
        self._closed = True
        self.reset()
