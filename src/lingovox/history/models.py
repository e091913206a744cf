"""History record variants.

Each feature result is stored as one of five frozen dataclasses sharing
``id``, ``timestamp`` (ms since epoch) and ``user_id``. Text fields travel
in a JSON payload; audio fields are stored separately and may be dropped by
admission control, which is why even the "required" audio of text-to-speech
and the translated side of speech-to-speech is typed ``Optional``.
"""

from __future__ import annotations

import dataclasses
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Mapping, Optional, Union

from ..audio.blob import AudioBlob

ANONYMOUS_USER_ID = "anonymous"


class HistoryItemType(str, Enum):
    """Discriminator stored in the ``type`` column."""

    TRANSCRIPTION = "transcription"
    TRANSCRIPTION_STREAM = "transcription_stream"
    TRANSLATION = "translation"
    TEXT_TO_SPEECH = "textToSpeech"
    SPEECH_TO_SPEECH = "speechToSpeech"


def new_item_id() -> str:
    return uuid.uuid4().hex


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, kw_only=True)
class _BaseItem:
    ITEM_TYPE: ClassVar[HistoryItemType]
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = ()
    AUDIO_FIELDS: ClassVar[tuple[str, ...]] = ()

    id: str = dataclasses.field(default_factory=new_item_id)
    timestamp: int = dataclasses.field(default_factory=now_ms)
    user_id: str = ANONYMOUS_USER_ID

    @property
    def type(self) -> HistoryItemType:
        return self.ITEM_TYPE

    def audio_payloads(self) -> dict[str, AudioBlob]:
        """Return the audio fields that currently hold a blob."""
        payloads = {}
        for name in self.AUDIO_FIELDS:
            blob = getattr(self, name)
            if blob is not None:
                payloads[name] = blob
        return payloads

    def without_audio(self, *fields: str) -> "_BaseItem":
        """Copy of the item with the given audio fields (all when omitted) cleared."""
        names = fields or self.AUDIO_FIELDS
        return dataclasses.replace(self, **{name: None for name in names})

    def to_payload(self) -> dict[str, Any]:
        """Text and metadata fields serialised into the JSON payload column."""
        return {name: getattr(self, name) for name in self.TEXT_FIELDS}


@dataclass(frozen=True, kw_only=True)
class TranscriptionItem(_BaseItem):
    ITEM_TYPE: ClassVar[HistoryItemType] = HistoryItemType.TRANSCRIPTION
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = ("language", "transcription")
    AUDIO_FIELDS: ClassVar[tuple[str, ...]] = ("audio_blob",)

    language: str
    transcription: str
    audio_blob: Optional[AudioBlob] = None


@dataclass(frozen=True, kw_only=True)
class TranscriptionStreamItem(_BaseItem):
    ITEM_TYPE: ClassVar[HistoryItemType] = HistoryItemType.TRANSCRIPTION_STREAM
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = ("language", "transcription")
    AUDIO_FIELDS: ClassVar[tuple[str, ...]] = ("audio_blob",)

    language: str
    transcription: str
    audio_blob: Optional[AudioBlob] = None


@dataclass(frozen=True, kw_only=True)
class TranslationItem(_BaseItem):
    ITEM_TYPE: ClassVar[HistoryItemType] = HistoryItemType.TRANSLATION
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = (
        "source_language",
        "target_language",
        "original_text",
        "translated_text",
    )
    AUDIO_FIELDS: ClassVar[tuple[str, ...]] = ("audio_blob",)

    source_language: str
    target_language: str
    original_text: str
    translated_text: str
    audio_blob: Optional[AudioBlob] = None


@dataclass(frozen=True, kw_only=True)
class TextToSpeechItem(_BaseItem):
    ITEM_TYPE: ClassVar[HistoryItemType] = HistoryItemType.TEXT_TO_SPEECH
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = ("language", "text")
    AUDIO_FIELDS: ClassVar[tuple[str, ...]] = ("audio_blob",)

    language: str
    text: str
    audio_blob: Optional[AudioBlob]


@dataclass(frozen=True, kw_only=True)
class SpeechToSpeechItem(_BaseItem):
    ITEM_TYPE: ClassVar[HistoryItemType] = HistoryItemType.SPEECH_TO_SPEECH
    TEXT_FIELDS: ClassVar[tuple[str, ...]] = (
        "original_language",
        "translated_language",
        "original_text",
        "translated_text",
    )
    AUDIO_FIELDS: ClassVar[tuple[str, ...]] = (
        "original_audio_blob",
        "translated_audio_blob",
    )

    original_language: str
    translated_language: str
    original_text: str
    translated_text: str
    translated_audio_blob: Optional[AudioBlob]
    original_audio_blob: Optional[AudioBlob] = None


HistoryItem = Union[
    TranscriptionItem,
    TranscriptionStreamItem,
    TranslationItem,
    TextToSpeechItem,
    SpeechToSpeechItem,
]

ITEM_CLASSES: dict[HistoryItemType, type] = {
    cls.ITEM_TYPE: cls
    for cls in (
        TranscriptionItem,
        TranscriptionStreamItem,
        TranslationItem,
        TextToSpeechItem,
        SpeechToSpeechItem,
    )
}


def item_from_row(
    *,
    item_id: str,
    item_type: str,
    timestamp: int,
    user_id: str,
    payload: Mapping[str, Any],
    audio: Mapping[str, AudioBlob],
) -> HistoryItem:
    """Rebuild a history item from its stored columns.

    Raises:
        ValueError: If the type is unknown or a text field is missing
    """
    cls = ITEM_CLASSES[HistoryItemType(item_type)]
    missing = [name for name in cls.TEXT_FIELDS if name not in payload]
    if missing:
        raise ValueError(f"Stored {item_type} item {item_id} lacks fields: {missing}")

    fields: dict[str, Any] = {name: payload[name] for name in cls.TEXT_FIELDS}
    fields.update({name: audio.get(name) for name in cls.AUDIO_FIELDS})
    return cls(id=item_id, timestamp=timestamp, user_id=user_id, **fields)
