"""Tests for the single-worker chunk queue."""

from __future__ import annotations

import threading
import time

import pytest

from lingovox.audio.blob import AudioBlob
from lingovox.streaming import ChunkQueue, ChunkQueueEntry


def _blob(n: int) -> AudioBlob:
    return AudioBlob(f"chunk-{n}".encode())


def test_entries_handled_in_order_one_at_a_time():
    delays = {b"chunk-1": 0.15, b"chunk-2": 0.0, b"chunk-3": 0.05}
    handled: list[bytes] = []
    active = 0
    max_active = 0
    lock = threading.Lock()

    def handler(entry: ChunkQueueEntry) -> None:
        nonlocal active, max_active
        with lock:
            active += 1
            max_active = max(max_active, active)
        time.sleep(delays[entry.audio_blob.data])
        with lock:
            handled.append(entry.audio_blob.data)
            active -= 1

    queue = ChunkQueue(handler)
    for n in (1, 2, 3):
        queue.put(_blob(n))

    assert queue.wait_idle(timeout=5)
    assert handled == [b"chunk-1", b"chunk-2", b"chunk-3"]
    assert max_active == 1
    queue.close(timeout=1)


def test_handler_exception_does_not_stop_worker():
    handled: list[bytes] = []

    def handler(entry: ChunkQueueEntry) -> None:
        if entry.audio_blob.data == b"chunk-1":
            raise RuntimeError("upload exploded")
        handled.append(entry.audio_blob.data)

    queue = ChunkQueue(handler)
    queue.put(_blob(1))
    queue.put(_blob(2))

    assert queue.wait_idle(timeout=5)
    assert handled == [b"chunk-2"]
    queue.close(timeout=1)


def test_clear_drops_pending_entries():
    gate = threading.Event()
    handled: list[bytes] = []

    def handler(entry: ChunkQueueEntry) -> None:
        gate.wait(5)
        handled.append(entry.audio_blob.data)

    queue = ChunkQueue(handler)
    queue.put(_blob(1))
    deadline = time.monotonic() + 5
    while not queue.is_processing and time.monotonic() < deadline:
        time.sleep(0.01)
    queue.put(_blob(2))
    queue.put(_blob(3))

    assert queue.pending == 2
    assert queue.clear() == 2
    gate.set()

    assert queue.wait_idle(timeout=5)
    assert handled == [b"chunk-1"]
    queue.close(timeout=1)


def test_entries_carry_generation():
    seen: list[int] = []
    queue = ChunkQueue(lambda entry: seen.append(entry.generation))

    entry = queue.put(_blob(1), generation=7)

    assert entry.generation == 7
    assert entry.enqueued_at > 0
    assert queue.wait_idle(timeout=5)
    assert seen == [7]
    queue.close(timeout=1)


def test_wait_idle_on_empty_queue_returns_immediately():
    queue = ChunkQueue(lambda entry: None)
    assert queue.wait_idle(timeout=0.01)


def test_put_after_close_raises():
    queue = ChunkQueue(lambda entry: None)
    queue.close()

    assert queue.closed
    with pytest.raises(RuntimeError):
        queue.put(_blob(1))
