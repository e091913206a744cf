"""In-memory audio payloads exchanged between recorder, API client and history."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from pathlib import Path

WAV_MIME_TYPE = "audio/wav"
MP3_MIME_TYPE = "audio/mp3"

_SUFFIX_MIME_TYPES = {
    ".wav": WAV_MIME_TYPE,
    ".mp3": "audio/mpeg",
    ".ogg": "audio/ogg",
    ".webm": "audio/webm",
    ".m4a": "audio/mp4",
    ".flac": "audio/flac",
}


@dataclass(frozen=True)
class AudioBlob:
    """Encoded audio bytes tagged with their MIME type."""

    data: bytes
    mime_type: str = WAV_MIME_TYPE

    @property
    def size(self) -> int:
        """Return the payload size in bytes."""
        return len(self.data)

    def __bool__(self) -> bool:
        return bool(self.data)

    def __repr__(self) -> str:
        return f"AudioBlob(mime_type={self.mime_type!r}, size={self.size})"

    @property
    def suffix(self) -> str:
        """File suffix matching the MIME type (``.wav`` when unknown)."""
        for suffix, mime in _SUFFIX_MIME_TYPES.items():
            if mime == self.mime_type:
                return suffix
        if self.mime_type == MP3_MIME_TYPE:
            return ".mp3"
        return ".wav"

    @classmethod
    def from_file(cls, path: Path | str) -> "AudioBlob":
        """Read an audio file, guessing the MIME type from its suffix."""
        path = Path(path)
        mime_type = _SUFFIX_MIME_TYPES.get(path.suffix.lower(), "application/octet-stream")
        return cls(data=path.read_bytes(), mime_type=mime_type)

    @classmethod
    def from_base64(cls, encoded: str, mime_type: str = MP3_MIME_TYPE) -> "AudioBlob":
        """Decode base64 audio as returned by the translation endpoints.

        Raises:
            ValueError: If the payload is not valid base64
        """
        try:
            data = base64.b64decode(encoded, validate=False)
        except (binascii.Error, TypeError) as exc:
            raise ValueError(f"Invalid base64 audio payload: {exc}") from exc
        return cls(data=data, mime_type=mime_type)

    def save(self, path: Path | str) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.data)
        return path
