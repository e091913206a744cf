"""Client for the speech API proxy."""

from .client import SpeechApiClient
from .models import (
    SpeechToSpeechResult,
    TranscriptionResult,
    TranscriptionWord,
    TranslationResult,
)

__all__ = [
    "SpeechApiClient",
    "SpeechToSpeechResult",
    "TranscriptionResult",
    "TranscriptionWord",
    "TranslationResult",
]
