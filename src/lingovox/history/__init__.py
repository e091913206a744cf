"""Local history of feature results."""

from .access import HistoryService
from .models import (
    ANONYMOUS_USER_ID,
    HistoryItem,
    HistoryItemType,
    SpeechToSpeechItem,
    TextToSpeechItem,
    TranscriptionItem,
    TranscriptionStreamItem,
    TranslationItem,
    new_item_id,
    now_ms,
)
from .schema import INDEX_NAMES, SCHEMA_VERSION, apply_migrations
from .store import DEFAULT_MAX_AUDIO_BYTES, HistoryStore

__all__ = [
    "ANONYMOUS_USER_ID",
    "DEFAULT_MAX_AUDIO_BYTES",
    "HistoryItem",
    "HistoryItemType",
    "HistoryService",
    "HistoryStore",
    "INDEX_NAMES",
    "SCHEMA_VERSION",
    "SpeechToSpeechItem",
    "TextToSpeechItem",
    "TranscriptionItem",
    "TranscriptionStreamItem",
    "TranslationItem",
    "apply_migrations",
    "new_item_id",
    "now_ms",
]
