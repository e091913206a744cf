"""Typed results returned by the speech API client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ..audio.blob import AudioBlob


@dataclass(frozen=True)
class TranscriptionWord:
    word: str
    start: float
    end: float


@dataclass(frozen=True)
class TranscriptionResult:
    """Result of a full-file transcription."""

    transcription: str
    language: str = "auto"
    confidence: Optional[float] = None
    words: list[list[TranscriptionWord]] = field(default_factory=list)


@dataclass(frozen=True)
class TranslationResult:
    original_text: str
    source_language: str
    target_language: str
    translated_text: str
    audio: Optional[AudioBlob] = None


@dataclass(frozen=True)
class SpeechToSpeechResult:
    original_text: str
    original_language: str
    translated_text: str
    translated_language: str
    translated_audio: AudioBlob
    original_audio: Optional[AudioBlob] = None
