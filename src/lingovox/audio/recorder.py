"""Microphone recorder producing WAV blobs at 16 kHz mono."""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Optional

import numpy as np
import sounddevice as sd

from ..exceptions import AudioDeviceError, RecordingError
from .blob import AudioBlob
from .buffer import frames_to_blob

LOGGER = logging.getLogger(__name__)

SAMPLE_RATE = 16000
CHANNELS = 1
DTYPE = np.float32
BLOCKSIZE = 512  # ~32 ms per callback at 16 kHz


class RecorderState(str, Enum):
    """Lifecycle of a single recorder instance."""

    IDLE = "idle"
    RECORDING = "recording"
    ERROR = "error"


class AudioRecorder:
    """Records audio from the default input device.

    Observers are notified through callbacks rather than exceptions:

    * ``on_frames`` receives every raw block (float32, shape (frames, channels))
      on the PortAudio thread; keep it cheap.
    * ``on_data_available`` receives one WAV segment whenever a segment is
      flushed: at ``stop()``, and every ``timeslice`` seconds when set.
    * ``on_stop`` receives the whole recording as a single WAV blob.
    * ``on_error`` receives a ``RecordingError``; the recorder is left idle.
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        channels: int = CHANNELS,
        blocksize: int = BLOCKSIZE,
        timeslice: Optional[float] = None,
        on_start: Optional[Callable[[], None]] = None,
        on_frames: Optional[Callable[[np.ndarray], None]] = None,
        on_data_available: Optional[Callable[[AudioBlob], None]] = None,
        on_stop: Optional[Callable[[AudioBlob], None]] = None,
        on_error: Optional[Callable[[RecordingError], None]] = None,
    ) -> None:
        self._sample_rate = sample_rate
        self._channels = channels
        self._blocksize = blocksize
        self._timeslice = timeslice
        self._stream: Any = None
        self._frames: list[np.ndarray] = []
        self._segment: list[np.ndarray] = []
        self._segment_samples = 0
        self._lock = threading.Lock()
        self._state = RecorderState.IDLE
        self._start_time: Optional[float] = None

        self.on_start = on_start
        self.on_frames = on_frames
        self.on_data_available = on_data_available
        self.on_stop = on_stop
        self.on_error = on_error

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._channels

    @property
    def state(self) -> RecorderState:
        return self._state

    def is_recording(self) -> bool:
        """Check if recording is currently active."""
        return self._state is RecorderState.RECORDING

    def start(self) -> None:
        """Open the microphone and begin capturing.

        Calling this while already recording does nothing. Failures are
        reported through ``on_error``.
        """
        if self.is_recording():
            LOGGER.debug("Recorder already started, ignoring start request")
            return

        with self._lock:
            self._frames = []
            self._segment = []
            self._segment_samples = 0

        try:
            self._verify_device_available()
            stream = sd.InputStream(
                samplerate=self._sample_rate,
                channels=self._channels,
                dtype=DTYPE,
                blocksize=self._blocksize,
                callback=self._audio_callback,
                latency="low",
            )
            self._stream = stream
            self._state = RecorderState.RECORDING
            self._start_time = time.monotonic()
            stream.start()
        except RecordingError as exc:
            self._fail(exc)
            return
        except Exception as exc:
            self._fail(RecordingError(f"Failed to start audio stream: {exc}"), cause=exc)
            return

        LOGGER.debug(
            "Started audio capture: %d Hz, %d channel(s)",
            self._sample_rate,
            self._channels,
        )
        self._notify(self.on_start)

    def stop(self) -> Optional[AudioBlob]:
        """
        Stop capturing and release the microphone.

        Returns:
            The complete recording as a WAV blob, or None when nothing was captured.
        """
        if not self.is_recording():
            LOGGER.debug("Recorder not started, nothing to stop")
            return None

        self._state = RecorderState.IDLE
        close_error = self._release_stream()

        with self._lock:
            segment = self._segment
            frames = self._frames
            self._segment = []
            self._segment_samples = 0
            self._frames = []

        if self._start_time is not None:
            LOGGER.debug(
                "Stopped audio capture: %.2f s recorded",
                time.monotonic() - self._start_time,
            )
            self._start_time = None

        segment_blob = frames_to_blob(segment, self._sample_rate, self._channels)
        if segment_blob is not None:
            self._notify(self.on_data_available, segment_blob)

        recording = frames_to_blob(frames, self._sample_rate, self._channels)
        if recording is not None:
            self._notify(self.on_stop, recording)

        if close_error is not None:
            self._report(RecordingError(f"Audio stream did not close cleanly: {close_error}"))
        return recording

    def get_buffer_duration(self) -> float:
        """Return the duration in seconds of audio captured so far."""
        with self._lock:
            total_samples = sum(chunk.shape[0] for chunk in self._frames)
        return total_samples / self._sample_rate

    def _audio_callback(
        self,
        indata: np.ndarray,
        frames: int,
        time_info: object,
        status: object,
    ) -> None:
        """Invoked by sounddevice for each block on the PortAudio thread."""
        if status:
            LOGGER.warning("Audio callback status: %s", status)

        if not self.is_recording():
            return

        flushed: Optional[list[np.ndarray]] = None
        chunk = indata.copy()
        with self._lock:
            self._frames.append(chunk)
            self._segment.append(chunk)
            self._segment_samples += chunk.shape[0]
            if (
                self._timeslice
                and self._segment_samples >= self._timeslice * self._sample_rate
            ):
                flushed = self._segment
                self._segment = []
                self._segment_samples = 0

        if self.on_frames is not None:
            try:
                self.on_frames(chunk)
            except Exception as exc:  # pragma: no cover - listener bug
                LOGGER.debug("on_frames callback error: %s", exc, exc_info=True)

        if flushed:
            segment_blob = frames_to_blob(flushed, self._sample_rate, self._channels)
            if segment_blob is not None:
                self._notify(self.on_data_available, segment_blob)

    def _verify_device_available(self) -> None:
        """
        Check that an input device with enough channels exists.

        Raises:
            AudioDeviceError: If no input device is found or default is invalid.
        """
        try:
            default_input = sd.default.device[0]
        except (TypeError, IndexError, KeyError):
            default_input = getattr(sd.default.device, "input", None)

        if default_input is None or (isinstance(default_input, int) and default_input < 0):
            raise AudioDeviceError(
                "No default input device configured. Please connect a microphone."
            )

        try:
            device_info = sd.query_devices(default_input, kind="input")
        except Exception as exc:
            raise AudioDeviceError(f"Audio device check failed: {exc}") from exc

        if device_info["max_input_channels"] < self._channels:
            raise AudioDeviceError(
                f"Input device has {device_info['max_input_channels']} channels, "
                f"but {self._channels} required."
            )
        LOGGER.debug(
            "Using input device: %s (%d channels max)",
            device_info["name"],
            device_info["max_input_channels"],
        )

    def _release_stream(self) -> Optional[Exception]:
        stream, self._stream = self._stream, None
        if stream is None:
            return None
        try:
            stream.stop()
        except Exception as exc:
            LOGGER.debug("Error stopping stream: %s", exc)
            return exc
        finally:
            try:
                stream.close()
            except Exception as exc:  # pragma: no cover
                LOGGER.debug("Error closing stream: %s", exc)
        return None

    def _fail(self, error: RecordingError, cause: Optional[Exception] = None) -> None:
        if cause is not None:
            error.__cause__ = cause
        self._release_stream()
        self._state = RecorderState.ERROR
        self._start_time = None
        self._report(error)

    def _report(self, error: RecordingError) -> None:
        LOGGER.error("Recording error: %s", error)
        self._notify(self.on_error, error)

    def _notify(self, callback: Optional[Callable[..., None]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            LOGGER.exception("Recorder callback %r failed", callback)


def list_audio_devices() -> list[dict]:
    """
    Return a list of available audio input devices.

    Returns:
        List of device info dictionaries with keys: name, index, channels.
    """
    try:
        devices = sd.query_devices()
        return [
            {
                "name": dev["name"],
                "index": idx,
                "channels": dev["max_input_channels"],
            }
            for idx, dev in enumerate(devices)
            if dev["max_input_channels"] > 0
        ]
    except Exception as exc:  # pragma: no cover
        LOGGER.debug("Failed to enumerate devices: %s", exc)
        return []
