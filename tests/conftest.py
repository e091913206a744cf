"""Shared fixtures: WAV payloads, a scripted recorder and a scripted API client."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

import numpy as np
import pytest

from lingovox.audio.blob import AudioBlob
from lingovox.audio.buffer import frames_to_blob
from lingovox.exceptions import RecordingError


def make_wav(seconds: float = 0.1, value: float = 0.1, sample_rate: int = 16000) -> AudioBlob:
    samples = np.full((int(seconds * sample_rate), 1), value, dtype=np.float32)
    blob = frames_to_blob([samples], sample_rate, 1)
    assert blob is not None
    return blob


class FakeRecorder:
    """Stands in for AudioRecorder; each stop() emits the next scripted chunk."""

    def __init__(self, chunks: Optional[list[AudioBlob]] = None, fail: bool = False) -> None:
        self._chunks = list(chunks or [])
        self._fail = fail
        self._recording = False
        self.starts = 0
        self.stops = 0
        self.on_start: Optional[Callable[[], None]] = None
        self.on_frames: Optional[Callable[[np.ndarray], None]] = None
        self.on_data_available: Optional[Callable[[AudioBlob], None]] = None
        self.on_stop: Optional[Callable[[AudioBlob], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None

    def is_recording(self) -> bool:
        return self._recording

    def start(self) -> None:
        if self._recording:
            return
        if self._fail:
            if self.on_error is not None:
                self.on_error(RecordingError("microphone unavailable"))
            return
        self.starts += 1
        self._recording = True

    def stop(self) -> Optional[AudioBlob]:
        if not self._recording:
            return None
        self._recording = False
        self.stops += 1
        if not self._chunks:
            return None
        chunk = self._chunks.pop(0)
        if self.on_frames is not None:
            self.on_frames(np.full((160, 1), 0.25, dtype=np.float32))
        if self.on_data_available is not None:
            self.on_data_available(chunk)
        return chunk


class ScriptedClient:
    """Answers transcribe_chunk from a table keyed by chunk bytes.

    Values are text, an exception instance to raise, or a
    ``(text, delay_seconds)`` tuple.
    """

    def __init__(self, script: dict[bytes, object]) -> None:
        self._script = script
        self.calls: list[bytes] = []
        self.reset_calls = 0
        self.gates: dict[bytes, threading.Event] = {}
        self._lock = threading.Lock()
        self._active = 0
        self.max_active = 0

    def transcribe_chunk(self, audio: AudioBlob, language: str = "auto") -> str:
        with self._lock:
            self._active += 1
            self.max_active = max(self.max_active, self._active)
            self.calls.append(audio.data)
        try:
            gate = self.gates.get(audio.data)
            if gate is not None:
                gate.wait(5)
            answer = self._script[audio.data]
            if isinstance(answer, tuple):
                answer, delay = answer
                time.sleep(delay)
            if isinstance(answer, Exception):
                raise answer
            return answer
        finally:
            with self._lock:
                self._active -= 1

    def reset_context(self) -> dict:
        self.reset_calls += 1
        return {"status": "ok"}


@pytest.fixture
def wav_blob() -> AudioBlob:
    return make_wav()


@pytest.fixture
def chunk_blobs() -> list[AudioBlob]:
    """Three distinguishable non-WAV chunks."""
    return [AudioBlob(f"chunk-{i}".encode()) for i in range(1, 4)]
