"""Feature services: call the speech API, notify on failure, record history."""

from .base import FeatureService
from .speech import SpeechToSpeechFeature, TextToSpeechFeature, TextToSpeechResult
from .transcribe import StreamTranscribeFeature, TranscribeFeature
from .translate import TranslateFeature

__all__ = [
    "FeatureService",
    "SpeechToSpeechFeature",
    "StreamTranscribeFeature",
    "TextToSpeechFeature",
    "TextToSpeechResult",
    "TranscribeFeature",
    "TranslateFeature",
]
