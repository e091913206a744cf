"""WAV encoding helpers for captured float32 audio."""

from __future__ import annotations

import io
import logging
import wave
from pathlib import Path
from typing import Iterable, Optional

import numpy as np

from .blob import WAV_MIME_TYPE, AudioBlob

LOGGER = logging.getLogger(__name__)


def float32_to_pcm16(audio: np.ndarray) -> np.ndarray:
    """
    Convert float32 audio [-1.0, 1.0] to int16 PCM [-32767, 32767].

    Args:
        audio: Float32 audio array

    Returns:
        Int16 PCM array
    """
    clipped = np.clip(audio, -1.0, 1.0)
    return (clipped * 32767.0).astype(np.int16)


def pcm16_to_float32(pcm16: np.ndarray) -> np.ndarray:
    return (pcm16.astype(np.float32) / 32767.0).astype(np.float32)


def _as_pcm16(audio: np.ndarray, channels: int) -> np.ndarray:
    if audio.dtype == np.float32 or audio.dtype == np.float64:
        audio_int16 = float32_to_pcm16(audio)
    elif audio.dtype == np.int16:
        audio_int16 = audio
    else:
        raise ValueError(f"Unsupported audio dtype: {audio.dtype}")

    if audio_int16.ndim == 1:
        audio_int16 = audio_int16.reshape(-1, 1)
    elif audio_int16.ndim == 2 and audio_int16.shape[1] != channels:
        raise ValueError(
            f"Audio has {audio_int16.shape[1]} channels, expected {channels}"
        )
    return audio_int16


def encode_wav(audio: np.ndarray, sample_rate: int, channels: int = 1) -> bytes:
    """
    Encode float32 or int16 audio as an in-memory 16-bit WAV file.

    Args:
        audio: Audio data as numpy array (float32 or int16)
        sample_rate: Audio sample rate in Hz
        channels: Number of audio channels (default: 1 for mono)

    Returns:
        Complete WAV file bytes (RIFF header included)
    """
    audio_int16 = _as_pcm16(audio, channels)
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(channels)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(audio_int16.tobytes())
    return buffer.getvalue()


def decode_wav(data: bytes) -> tuple[np.ndarray, int, int]:
    """
    Decode 16-bit WAV bytes.

    Returns:
        Tuple of (float32 samples shaped (frames, channels), sample_rate, channels)

    Raises:
        ValueError: If the bytes are not a 16-bit PCM WAV file
    """
    try:
        with wave.open(io.BytesIO(data), "rb") as wav_file:
            channels = wav_file.getnchannels()
            sample_rate = wav_file.getframerate()
            sample_width = wav_file.getsampwidth()
            frames = wav_file.readframes(wav_file.getnframes())
    except (wave.Error, EOFError) as exc:
        raise ValueError(f"Not a readable WAV payload: {exc}") from exc

    if sample_width != 2:
        raise ValueError(f"Unsupported sample width: {sample_width * 8} bits")

    pcm16 = np.frombuffer(frames, dtype=np.int16).reshape(-1, channels)
    return pcm16_to_float32(pcm16), sample_rate, channels


def wav_duration_ms(data: bytes) -> float:
    """Return the duration of WAV bytes in milliseconds (0.0 if unreadable)."""
    try:
        with wave.open(io.BytesIO(data), "rb") as wav_file:
            return wav_file.getnframes() / float(wav_file.getframerate()) * 1000
    except (wave.Error, EOFError, ZeroDivisionError) as exc:
        LOGGER.debug("Could not determine audio duration: %s", exc)
        return 0.0


def frames_to_blob(
    frames: Iterable[np.ndarray], sample_rate: int, channels: int = 1
) -> Optional[AudioBlob]:
    """Concatenate captured blocks into one WAV blob; None when nothing was captured."""
    blocks = [block for block in frames if block.size]
    if not blocks:
        return None
    audio = np.concatenate(blocks, axis=0)
    return AudioBlob(encode_wav(audio, sample_rate, channels), WAV_MIME_TYPE)


def concat_wav(blobs: Iterable[AudioBlob]) -> Optional[AudioBlob]:
    """
    Join several WAV blobs into one recording.

    All blobs must share sample rate and channel count.

    Raises:
        ValueError: If a blob is not WAV or the formats differ
    """
    decoded: list[np.ndarray] = []
    fmt: Optional[tuple[int, int]] = None
    for blob in blobs:
        if not blob:
            continue
        audio, sample_rate, channels = decode_wav(blob.data)
        if fmt is None:
            fmt = (sample_rate, channels)
        elif fmt != (sample_rate, channels):
            raise ValueError(
                f"Cannot join WAV chunks with different formats: {fmt} vs "
                f"{(sample_rate, channels)}"
            )
        decoded.append(audio)

    if fmt is None:
        return None
    return frames_to_blob(decoded, sample_rate=fmt[0], channels=fmt[1])


def write_wav(
    file_path: Path | str,
    audio: np.ndarray,
    sample_rate: int,
    channels: int = 1,
) -> Path:
    """Write float32 or int16 audio to a WAV file."""
    file_path = Path(file_path)
    try:
        file_path.write_bytes(encode_wav(audio, sample_rate, channels))
        LOGGER.debug(
            "Wrote WAV file: %s (%d samples, %d Hz)", file_path, len(audio), sample_rate
        )
    except Exception as exc:
        LOGGER.error("Failed to write WAV file %s: %s", file_path, exc)
        raise
    return file_path
