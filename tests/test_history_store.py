"""Tests for the SQLite history store."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from unittest.mock import patch

import pytest

from lingovox.audio.blob import AudioBlob
from lingovox.exceptions import StorageError
from lingovox.history import (
    INDEX_NAMES,
    SCHEMA_VERSION,
    HistoryItemType,
    HistoryStore,
    SpeechToSpeechItem,
    TextToSpeechItem,
    TranscriptionItem,
    TranslationItem,
)
from lingovox.history.schema import current_schema_version

MIB = 1024 * 1024


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    return tmp_path / "history.db"


@pytest.fixture
def store(temp_db: Path) -> HistoryStore:
    store = HistoryStore(temp_db)
    store.open()
    yield store
    store.close()


def _transcription(user_id: str = "alice", timestamp: int = 1_000, **kwargs) -> TranscriptionItem:
    return TranscriptionItem(
        user_id=user_id,
        timestamp=timestamp,
        language=kwargs.pop("language", "en"),
        transcription=kwargs.pop("transcription", "hello world"),
        **kwargs,
    )


def _index_names(db_path: Path) -> list[str]:
    with sqlite3.connect(db_path) as conn:
        rows = conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = 'history_items' "
            "AND name NOT LIKE 'sqlite_%'"
        ).fetchall()
    return sorted(row[0] for row in rows)


def test_open_creates_database_and_indexes(temp_db: Path):
    assert not temp_db.exists()
    store = HistoryStore(temp_db)
    store.open()
    store.close()

    assert temp_db.exists()
    assert _index_names(temp_db) == sorted(INDEX_NAMES)


def test_open_is_idempotent(temp_db: Path, store: HistoryStore):
    store.add_history_item(_transcription())
    for _ in range(3):
        store.open()

    reopened = HistoryStore(temp_db)
    reopened.open()
    reopened.open()
    try:
        assert reopened.count() == 1
        assert _index_names(temp_db) == sorted(INDEX_NAMES)
    finally:
        reopened.close()


def test_schema_version_recorded(temp_db: Path, store: HistoryStore):
    with sqlite3.connect(temp_db) as conn:
        assert current_schema_version(conn) == SCHEMA_VERSION


def test_open_failure_raises_storage_error(tmp_path: Path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file")
    store = HistoryStore(blocker / "history.db")

    with pytest.raises(StorageError):
        store.open()
    assert not store.is_open


def test_add_and_get_round_trip(store: HistoryStore, wav_blob: AudioBlob):
    item = _transcription(audio_blob=wav_blob)
    assert store.add_history_item(item) == item.id

    loaded = store.get_history_item(item.id)
    assert loaded == item
    assert loaded.type is HistoryItemType.TRANSCRIPTION


def test_get_missing_item_returns_none(store: HistoryStore):
    assert store.get_history_item("does-not-exist") is None


def test_items_returned_newest_first(store: HistoryStore):
    for ts in (3_000, 1_000, 5_000, 2_000, 4_000):
        store.add_history_item(_transcription(timestamp=ts, transcription=f"t{ts}"))

    timestamps = [item.timestamp for item in store.get_history_items("alice")]
    assert timestamps == [5_000, 4_000, 3_000, 2_000, 1_000]

    oldest_first = store.get_history_items("alice", newest_first=False)
    assert [item.timestamp for item in oldest_first] == [1_000, 2_000, 3_000, 4_000, 5_000]


def test_items_isolated_per_owner(store: HistoryStore, wav_blob: AudioBlob):
    store.add_history_item(_transcription(user_id="alice", audio_blob=wav_blob))
    store.add_history_item(_transcription(user_id="bob", audio_blob=wav_blob))
    store.add_history_item(_transcription(user_id="bob", timestamp=2_000))

    alice_items = store.get_history_items("alice")
    bob_items = store.get_history_items("bob")
    assert {item.user_id for item in alice_items} == {"alice"}
    assert {item.user_id for item in bob_items} == {"bob"}
    assert len(alice_items) == 1
    assert len(bob_items) == 2


def test_filter_by_type(store: HistoryStore):
    store.add_history_item(_transcription())
    store.add_history_item(
        TranslationItem(
            user_id="alice",
            source_language="english",
            target_language="shona",
            original_text="hello",
            translated_text="mhoro",
        )
    )

    translations = store.get_history_items("alice", HistoryItemType.TRANSLATION)
    assert [item.type for item in translations] == [HistoryItemType.TRANSLATION]
    assert translations[0].translated_text == "mhoro"
    assert len(store.get_history_items("alice", "transcription")) == 1


def test_oversized_audio_is_dropped_but_text_kept(store: HistoryStore):
    big = AudioBlob(b"\0" * (5 * MIB))
    item = TextToSpeechItem(user_id="alice", language="english", text="hello", audio_blob=big)

    store.add_history_item(item)

    loaded = store.get_history_item(item.id)
    assert loaded.audio_blob is None
    assert loaded.text == "hello"
    assert loaded.language == "english"


def test_audio_just_below_limit_is_kept(store: HistoryStore):
    blob = AudioBlob(b"\1" * (5 * MIB - 1))
    item = _transcription(audio_blob=blob)

    store.add_history_item(item)

    assert store.get_history_item(item.id).audio_blob == blob


def test_speech_to_speech_drops_only_oversized_field(store: HistoryStore):
    original = AudioBlob(b"\0" * (6 * MIB), "audio/wav")
    translated = AudioBlob(b"\1" * (1 * MIB), "audio/mp3")
    item = SpeechToSpeechItem(
        user_id="alice",
        original_language="english",
        translated_language="shona",
        original_text="good morning",
        translated_text="mangwanani",
        original_audio_blob=original,
        translated_audio_blob=translated,
    )

    store.add_history_item(item)

    loaded = store.get_history_item(item.id)
    assert loaded.original_audio_blob is None
    assert loaded.translated_audio_blob == translated
    assert loaded.original_text == "good morning"
    assert loaded.translated_text == "mangwanani"


def test_admission_limit_is_configurable(temp_db: Path):
    with HistoryStore(temp_db, max_audio_bytes=10) as store:
        item = _transcription(audio_blob=AudioBlob(b"x" * 10))
        store.add_history_item(item)
        assert store.get_history_item(item.id).audio_blob is None


def test_write_failure_retries_without_audio(store: HistoryStore, wav_blob: AudioBlob):
    item = _transcription(audio_blob=wav_blob)

    with patch.object(
        HistoryStore, "_insert_audio", side_effect=sqlite3.OperationalError("disk full")
    ) as insert_audio:
        store.add_history_item(item)

    insert_audio.assert_called_once()
    loaded = store.get_history_item(item.id)
    assert loaded is not None
    assert loaded.audio_blob is None
    assert loaded.transcription == "hello world"
    assert store.count() == 1


def test_write_failure_after_retry_raises(store: HistoryStore, wav_blob: AudioBlob):
    item = _transcription(audio_blob=wav_blob)
    store.add_history_item(item)

    # Same id again: both attempts hit the primary key constraint
    with pytest.raises(StorageError):
        store.add_history_item(item)
    assert store.count() == 1


def test_delete_missing_item_is_noop(store: HistoryStore):
    store.delete_history_item("missing")


def test_delete_removes_item_and_audio(store: HistoryStore, temp_db: Path, wav_blob: AudioBlob):
    item = _transcription(audio_blob=wav_blob)
    store.add_history_item(item)

    store.delete_history_item(item.id)

    assert store.get_history_item(item.id) is None
    with sqlite3.connect(temp_db) as conn:
        assert conn.execute("SELECT COUNT(*) FROM history_audio").fetchone()[0] == 0


def test_clear_history_for_user_without_items(store: HistoryStore):
    assert store.clear_history("nobody") == 0


def test_clear_history_only_touches_owner(store: HistoryStore):
    for ts in range(3):
        store.add_history_item(_transcription(user_id="alice", timestamp=ts))
    store.add_history_item(_transcription(user_id="bob"))

    assert store.clear_history("alice") == 3
    assert store.get_history_items("alice") == []
    assert len(store.get_history_items("bob")) == 1


def test_clear_history_reports_partial_failure(store: HistoryStore):
    items = [_transcription(timestamp=ts) for ts in range(3)]
    for item in items:
        store.add_history_item(item)

    real_delete = HistoryStore._delete_one
    failing_id = items[1].id

    def flaky_delete(self, conn, item_id):
        if item_id == failing_id:
            raise sqlite3.OperationalError("locked")
        real_delete(self, conn, item_id)

    with patch.object(HistoryStore, "_delete_one", flaky_delete):
        with pytest.raises(StorageError, match="Failed to delete 1 items"):
            store.clear_history("alice")

    remaining = store.get_history_items("alice")
    assert [item.id for item in remaining] == [failing_id]


def test_unreadable_rows_are_skipped(store: HistoryStore, temp_db: Path):
    store.add_history_item(_transcription(transcription="ok"))
    with sqlite3.connect(temp_db) as conn:
        conn.execute(
            "INSERT INTO history_items (id, type, timestamp, user_id, payload) "
            "VALUES ('broken', 'transcription', 5, 'alice', '{}')"
        )

    items = store.get_history_items("alice")
    assert [item.transcription for item in items] == ["ok"]
