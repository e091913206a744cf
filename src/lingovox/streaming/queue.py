"""FIFO of captured chunks drained by a single background worker."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..audio.blob import AudioBlob

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChunkQueueEntry:
    audio_blob: AudioBlob
    enqueued_at: float = field(default_factory=time.time)
    generation: int = 0


class ChunkQueue:
    """Hands entries to ``handler`` one at a time, in the order they were put.

    Only one worker thread exists, so at most one entry is being handled at
    any moment. Handler exceptions are logged and the worker moves on.
    """

    def __init__(
        self,
        handler: Callable[[ChunkQueueEntry], None],
        name: str = "chunk-queue",
    ) -> None:
        self._handler = handler
        self._name = name
        self._entries: deque[ChunkQueueEntry] = deque()
        self._cond = threading.Condition()
        self._processing = False
        self._closed = False
        self._thread: Optional[threading.Thread] = None

    @property
    def pending(self) -> int:
        with self._cond:
            return len(self._entries)

    @property
    def is_processing(self) -> bool:
        with self._cond:
            return self._processing

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, audio_blob: AudioBlob, generation: int = 0) -> ChunkQueueEntry:
        """Queue a chunk for handling.

        Raises:
            RuntimeError: If the queue has been closed
        """
        entry = ChunkQueueEntry(audio_blob=audio_blob, generation=generation)
        with self._cond:
            if self._closed:
                raise RuntimeError("Chunk queue is closed")
            self._entries.append(entry)
            self._ensure_worker()
            self._cond.notify_all()
        LOGGER.debug(
            "Queued chunk (%d bytes, generation %d, %d pending)",
            audio_blob.size,
            generation,
            len(self._entries),
        )
        return entry

    def clear(self) -> int:
        """Drop every entry that has not started; returns how many were dropped."""
        with self._cond:
            dropped = len(self._entries)
            self._entries.clear()
            self._cond.notify_all()
        if dropped:
            LOGGER.debug("Dropped %d queued chunk(s)", dropped)
        return dropped

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is queued or in flight. False on timeout."""
        with self._cond:
            return self._cond.wait_for(
                lambda: not self._entries and not self._processing, timeout
            )

    def close(self, timeout: Optional[float] = None) -> None:
        """Drop pending entries and stop the worker after the current one."""
        with self._cond:
            self._closed = True
            self._entries.clear()
            self._cond.notify_all()
            thread = self._thread
        if (
            thread is not None
            and timeout is not None
            and thread is not threading.current_thread()
        ):
            thread.join(timeout)

    def _ensure_worker(self) -> None:
        if self._thread is None or not self._thread.is_alive():
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    def _run(self) -> None:
        while True:
            with self._cond:
                while not self._entries and not self._closed:
                    self._cond.wait()
                if not self._entries:
                    return
                entry = self._entries.popleft()
                self._processing = True
            try:
                self._handler(entry)
            except Exception:
                LOGGER.exception("Chunk handler failed; continuing with next chunk")
            finally:
                with self._cond:
                    self._processing = False
                    self._cond.notify_all()
