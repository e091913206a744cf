"""Audio capture, encoding and analysis."""

from __future__ import annotations

import logging

from ..exceptions import AudioDeviceError, RecordingError
from .blob import MP3_MIME_TYPE, WAV_MIME_TYPE, AudioBlob
from .buffer import (
    concat_wav,
    decode_wav,
    encode_wav,
    float32_to_pcm16,
    frames_to_blob,
    wav_duration_ms,
    write_wav,
)
from .meter import LevelMeter
from .recorder import AudioRecorder, RecorderState, list_audio_devices

__all__ = [
    "AudioBlob",
    "AudioDeviceError",
    "AudioRecorder",
    "LevelMeter",
    "MP3_MIME_TYPE",
    "RecorderState",
    "RecordingError",
    "WAV_MIME_TYPE",
    "concat_wav",
    "decode_wav",
    "encode_wav",
    "float32_to_pcm16",
    "frames_to_blob",
    "initialize_audio_pipeline",
    "list_audio_devices",
    "wav_duration_ms",
    "write_wav",
]

LOGGER = logging.getLogger(__name__)


def initialize_audio_pipeline() -> None:
    """
    Verify audio subsystem is available and log device information.

    Raises:
        AudioDeviceError: If no input devices are available.
    """
    devices = list_audio_devices()
    if not devices:
        raise AudioDeviceError("No audio input devices detected")

    LOGGER.info("Found %d audio input device(s)", len(devices))
    for device in devices:
        LOGGER.debug(
            "  [%d] %s (%d channels)",
            device["index"],
            device["name"],
            device["channels"],
        )
