"""Live transcription: chunked recording, sequential upload, running transcript."""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Optional, Protocol

import numpy as np

from ..audio.blob import AudioBlob
from ..audio.buffer import concat_wav
from ..audio.meter import LevelMeter
from ..audio.recorder import AudioRecorder
from ..exceptions import ApiError, ApiErrorType, UploadError
from ..languages import get_language_code
from ..settings import DEFAULT_CHUNK_INTERVAL_SECONDS
from .assembler import TranscriptAccumulator
from .queue import ChunkQueue, ChunkQueueEntry

LOGGER = logging.getLogger(__name__)


class ChunkTranscriber(Protocol):
    def transcribe_chunk(self, audio: AudioBlob, language: str = "auto") -> str: ...

    def reset_context(self) -> Any: ...


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPING = "stopping"


class StreamingSession:
    """Records in fixed-length chunks and transcribes them as they arrive.

    Every ``chunk_interval`` seconds the recorder is stopped and restarted so
    the audio captured so far is flushed as one chunk. Chunks are uploaded one
    at a time in capture order and their text is appended to the transcript.
    A failed chunk is reported through ``on_error`` and the session goes on.

    Each ``start`` or ``reset`` begins a new generation; results belonging to
    an older generation are discarded instead of touching the transcript.
    """

    def __init__(
        self,
        client: ChunkTranscriber,
        recorder: Optional[AudioRecorder] = None,
        *,
        language: str = "auto",
        chunk_interval: float = DEFAULT_CHUNK_INTERVAL_SECONDS,
        meter: Optional[LevelMeter] = None,
        on_transcript_update: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_complete: Optional[Callable[[str, Optional[AudioBlob]], None]] = None,
    ) -> None:
        if chunk_interval <= 0:
            raise ValueError("chunk_interval must be positive")
        self._client = client
        self._recorder = recorder if recorder is not None else AudioRecorder()
        self._recorder.on_data_available = self._on_chunk
        self._recorder.on_frames = self._on_frames
        self._recorder.on_error = self._on_recorder_error
        self._language = get_language_code(language)
        self._chunk_interval = chunk_interval
        self._meter = meter if meter is not None else LevelMeter()

        self.on_transcript_update = on_transcript_update
        self.on_error = on_error
        self.on_complete = on_complete

        self._accumulator = TranscriptAccumulator()
        self._queue = ChunkQueue(self._process_entry, name="stream-uploads")
        self._chunks: list[AudioBlob] = []
        self._generation = 0
        self._state = SessionState.IDLE
        self._lock = threading.RLock()
        self._idle = threading.Event()
        self._idle.set()

        self._timer_stop: Optional[threading.Event] = None
        self._timer_thread: Optional[threading.Thread] = None

        self._elapsed_before = 0.0
        self._resumed_at: Optional[float] = None

    # --- properties ------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def transcript(self) -> str:
        with self._lock:
            return self._accumulator.text

    @property
    def language(self) -> str:
        return self._language

    @language.setter
    def language(self, value: str) -> None:
        self._language = get_language_code(value)

    @property
    def chunk_interval(self) -> float:
        return self._chunk_interval

    @property
    def elapsed_seconds(self) -> float:
        """Recording time of this session, pauses excluded."""
        with self._lock:
            running = (
                time.monotonic() - self._resumed_at if self._resumed_at is not None else 0.0
            )
            return self._elapsed_before + running

    @property
    def levels(self) -> np.ndarray:
        return self._meter.levels()

    @property
    def pending_chunks(self) -> int:
        return self._queue.pending

    # --- controls --------------------------------------------------------

    def start(self) -> bool:
        """Begin a new session. Returns False when recording could not start."""
        with self._lock:
            if self._state is not SessionState.IDLE:
                LOGGER.debug("Session already active (%s), ignoring start", self._state.value)
                return False
            self._generation += 1
            self._queue.clear()
            self._accumulator.reset()
            self._chunks = []
            self._elapsed_before = 0.0
            self._resumed_at = None
            if self._meter.closed:
                self._meter = LevelMeter()
            self._meter.reset()
            self._idle.clear()
            self._state = SessionState.RECORDING

            self._recorder.start()
            if not self._recorder.is_recording():
                LOGGER.warning("Streaming session could not start recording")
                self._state = SessionState.IDLE
                self._idle.set()
                return False

            self._resumed_at = time.monotonic()
            self._start_timer()
        LOGGER.info(
            "Streaming session started (language=%s, chunk interval %.1fs)",
            self._language,
            self._chunk_interval,
        )
        return True

    def pause(self) -> None:
        """Stop recording without ending the session. The current chunk is flushed."""
        with self._lock:
            if self._state is not SessionState.RECORDING:
                return
            self._stop_timer()
            self._recorder.stop()
            self._freeze_elapsed()
            self._state = SessionState.PAUSED
        LOGGER.info("Streaming session paused")

    def resume(self) -> None:
        with self._lock:
            if self._state is not SessionState.PAUSED:
                return
            self._state = SessionState.RECORDING
            self._recorder.start()
            if not self._recorder.is_recording():
                LOGGER.warning("Could not resume recording; session stays paused")
                self._state = SessionState.PAUSED
                return
            self._resumed_at = time.monotonic()
            self._start_timer()
        LOGGER.info("Streaming session resumed")

    def toggle_pause(self) -> None:
        if self._state is SessionState.PAUSED:
            self.resume()
        else:
            self.pause()

    def stop(self, drain: bool = True) -> None:
        """End the session. Safe to call in any state.

        With ``drain`` the chunks already captured are still transcribed and
        ``on_complete`` fires once they are done. Without it, queued chunks are
        dropped and results still in flight are discarded. Called without
        ``drain`` while an earlier stop is still draining, it cancels that drain
        and ``on_complete`` does not fire.
        """
        with self._lock:
            if self._state is SessionState.IDLE:
                LOGGER.debug("Session not active, nothing to stop")
                return
            if self._state is SessionState.STOPPING:
                if not drain:
                    self._abandon_drain()
                return
            self._state = SessionState.STOPPING
            self._stop_timer()
            self._recorder.stop()
            self._meter.close()
            self._freeze_elapsed()
            if not drain:
                self._generation += 1
                self._queue.clear()
            generation = self._generation

        if drain and self._queue.pending + int(self._queue.is_processing) > 0:
            threading.Thread(
                target=self._finish_after_drain,
                args=(generation,),
                name="stream-finish",
                daemon=True,
            ).start()
        else:
            self._finish(generation)
        LOGGER.info("Streaming session stopping (drain=%s)", drain)

    def reset(self) -> None:
        """Clear the transcript and forget every chunk captured so far.

        A running session keeps recording from this point on.
        """
        with self._lock:
            recording = self._state is SessionState.RECORDING
            if recording:
                self._recorder.stop()
            self._generation += 1
            self._queue.clear()
            self._accumulator.reset()
            self._chunks = []
            self._elapsed_before = 0.0
            self._resumed_at = None
            self._meter.reset()
            if recording:
                self._recorder.start()
                if self._recorder.is_recording():
                    self._resumed_at = time.monotonic()

        self._notify(self.on_transcript_update, "")
        try:
            self._client.reset_context()
        except ApiError as exc:
            LOGGER.warning("Could not reset server transcription context: %s", exc)

    def rotate_chunk(self) -> None:
        """Flush the audio captured so far as one chunk and keep recording."""
        with self._lock:
            if self._state is not SessionState.RECORDING:
                return
            self._recorder.stop()
            self._recorder.start()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until the session is stopped and its final callback has run."""
        return self._idle.wait(timeout)

    def wait_for_uploads(self, timeout: Optional[float] = None) -> bool:
        """Block until every chunk captured so far has been handled."""
        return self._queue.wait_idle(timeout)

    def close(self) -> None:
        self.stop(drain=False)
        self._queue.close()

    # --- recorder callbacks ----------------------------------------------

    def _on_chunk(self, blob: AudioBlob) -> None:
        with self._lock:
            if self._state is SessionState.IDLE:
                LOGGER.debug("Ignoring chunk captured outside a session")
                return
            self._chunks.append(blob)
            self._queue.put(blob, self._generation)

    def _on_frames(self, block: np.ndarray) -> None:
        self._meter.feed(block)

    def _on_recorder_error(self, error: Exception) -> None:
        LOGGER.error("Recorder error during streaming session: %s", error)
        self._notify(self.on_error, error)

    # --- worker ----------------------------------------------------------

    def _process_entry(self, entry: ChunkQueueEntry) -> None:
        if entry.generation != self._generation:
            LOGGER.debug("Skipping chunk from generation %d", entry.generation)
            return

        try:
            text = self._client.transcribe_chunk(entry.audio_blob, self._language)
        except ApiError as exc:
            self._report_upload_error(entry, exc)
            return
        except Exception as exc:
            self._report_upload_error(
                entry,
                UploadError(
                    error_type=ApiErrorType.UNKNOWN,
                    context="Chunk transcription failed",
                    original_exception=exc,
                ),
            )
            return

        with self._lock:
            if entry.generation != self._generation:
                LOGGER.debug("Discarding stale transcription result")
                return
            changed = self._accumulator.append(text)
            transcript = self._accumulator.text
        if changed:
            self._notify(self.on_transcript_update, transcript)

    def _report_upload_error(self, entry: ChunkQueueEntry, error: ApiError) -> None:
        LOGGER.warning("Chunk upload failed: %s", error)
        if entry.generation == self._generation:
            self._notify(self.on_error, error)

    # --- internals -------------------------------------------------------

    def _start_timer(self) -> None:
        stop_event = threading.Event()
        self._timer_stop = stop_event
        self._timer_thread = threading.Thread(
            target=self._run_timer,
            args=(stop_event,),
            name="stream-chunk-timer",
            daemon=True,
        )
        self._timer_thread.start()

    def _stop_timer(self) -> None:
        if self._timer_stop is not None:
            self._timer_stop.set()
        self._timer_stop = None
        self._timer_thread = None

    def _run_timer(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self._chunk_interval):
            try:
                self.rotate_chunk()
            except Exception:
                LOGGER.exception("Chunk rotation failed")

    def _freeze_elapsed(self) -> None:
        if self._resumed_at is not None:
            self._elapsed_before += time.monotonic() - self._resumed_at
            self._resumed_at = None

    def _abandon_drain(self) -> None:
        """Cancel a draining stop: pending and in-flight results are discarded."""
        self._generation += 1
        dropped = self._queue.clear()
        self._state = SessionState.IDLE
        self._idle.set()
        LOGGER.info("Abandoned draining session (%d chunks dropped)", dropped)

    def _finish_after_drain(self, generation: int) -> None:
        while not self._queue.wait_idle(timeout=1.0):
            if generation != self._generation:
                break
        self._finish(generation)

    def _finish(self, generation: int) -> None:
        with self._lock:
            if self._state is not SessionState.STOPPING or generation != self._generation:
                LOGGER.debug("Skipping completion of generation %d", generation)
                return
            transcript = self._accumulator.text
            chunks = list(self._chunks)
            self._state = SessionState.IDLE

        audio: Optional[AudioBlob] = None
        if transcript.strip():
            try:
                audio = concat_wav(chunks)
            except ValueError as exc:
                LOGGER.warning("Could not assemble session audio: %s", exc)
            LOGGER.info("Streaming session complete (%d chars)", len(transcript))
            self._notify(self.on_complete, transcript, audio)
        else:
            LOGGER.info("Streaming session ended without transcript")
        self._idle.set()

    def _notify(self, callback: Optional[Callable[..., None]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            LOGGER.exception("Streaming session callback failed")
