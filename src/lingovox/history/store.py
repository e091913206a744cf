"""SQLite-backed store for feature results (transcriptions, translations, audio)."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Optional

from ..audio.blob import AudioBlob
from ..exceptions import StorageError
from ..metrics import get_metrics
from ..settings import DEFAULT_MAX_AUDIO_BYTES
from .models import HistoryItem, HistoryItemType, item_from_row
from .schema import apply_migrations

LOGGER = logging.getLogger(__name__)

_ITEM_COLUMNS = "i.id, i.type, i.timestamp, i.user_id, i.payload"


class HistoryStore:
    """Per-profile history database.

    Records are partitioned by owner and type. Audio payloads at or above
    ``max_audio_bytes`` are dropped before writing so that large recordings
    never prevent the text result from being saved.
    """

    def __init__(
        self, db_path: Path, max_audio_bytes: int = DEFAULT_MAX_AUDIO_BYTES
    ) -> None:
        self._db_path = Path(db_path)
        self._max_audio_bytes = max_audio_bytes
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def max_audio_bytes(self) -> int:
        return self._max_audio_bytes

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> None:
        """Open the database and apply migrations; no-op when already open."""
        with self._lock:
            if self._conn is not None:
                return
            conn: Optional[sqlite3.Connection] = None
            try:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA foreign_keys = ON")
                apply_migrations(conn)
            except (sqlite3.Error, OSError) as exc:
                if conn is not None:
                    conn.close()
                LOGGER.error("Failed to open history store at %s: %s", self._db_path, exc)
                raise StorageError(
                    f"Could not open history store at {self._db_path}: {exc}"
                ) from exc
            self._conn = conn
            LOGGER.debug("History store opened at %s", self._db_path)

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "HistoryStore":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # --- writes ----------------------------------------------------------

    def add_history_item(self, item: HistoryItem) -> str:
        """Store one record and return its id.

        The first attempt keeps every audio payload that passed admission; if
        it fails for any reason the record is written once more without audio.

        Raises:
            StorageError: If the audio-less retry fails too
        """
        admitted = self._admit(item)
        with get_metrics().timed("history.write", type=item.type.value) as timing, self._lock:
            conn = self._connection()
            try:
                self._write(conn, admitted)
            except Exception as exc:
                LOGGER.warning(
                    "Storing history item %s failed (%s); retrying without audio",
                    item.id,
                    exc,
                )
                try:
                    self._write(conn, admitted.without_audio())
                except Exception as retry_exc:
                    LOGGER.error(
                        "Still failed to store history item %s: %s", item.id, retry_exc
                    )
                    raise StorageError(
                        f"Failed to store history item {item.id}: {retry_exc}"
                    ) from retry_exc
                timing["audio"] = "dropped"
                LOGGER.info("Stored history item %s without audio", item.id)
        return item.id

    def delete_history_item(self, item_id: str) -> None:
        """Delete one record. Unknown ids are ignored."""
        with self._lock:
            conn = self._connection()
            try:
                self._delete_one(conn, item_id)
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to delete history item {item_id}: {exc}") from exc

    def clear_history(self, user_id: str) -> int:
        """Delete every record owned by ``user_id``.

        Records are deleted one at a time; those already deleted stay deleted
        when others fail.

        Returns:
            Number of records deleted

        Raises:
            StorageError: If any delete failed, with the failure count
        """
        with self._lock:
            conn = self._connection()
            try:
                ids = [
                    row["id"]
                    for row in conn.execute(
                        "SELECT id FROM history_items WHERE user_id = ?", (user_id,)
                    )
                ]
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to list history for clearing: {exc}") from exc

            deleted = 0
            failures = 0
            for item_id in ids:
                try:
                    self._delete_one(conn, item_id)
                    deleted += 1
                except sqlite3.Error as exc:
                    failures += 1
                    LOGGER.error("Failed to delete history item %s: %s", item_id, exc)

        if failures:
            raise StorageError(f"Failed to delete {failures} items")
        LOGGER.debug("Cleared %d history items", deleted)
        return deleted

    # --- reads -----------------------------------------------------------

    def get_history_items(
        self,
        user_id: str,
        item_type: Optional[HistoryItemType | str] = None,
        *,
        newest_first: bool = True,
    ) -> list[HistoryItem]:
        """Return the records of one owner, optionally of one type."""
        order = "DESC" if newest_first else "ASC"
        if item_type is not None:
            type_value = HistoryItemType(item_type).value
            where = "i.user_id = ? AND i.type = ?"
            index = "by_user_and_type"
            params: tuple = (user_id, type_value)
        else:
            where = "i.user_id = ?"
            index = "by_user_id"
            params = (user_id,)

        with self._lock:
            conn = self._connection()
            try:
                rows = conn.execute(
                    f"SELECT {_ITEM_COLUMNS} FROM history_items AS i INDEXED BY {index} "
                    f"WHERE {where} ORDER BY i.timestamp {order}",
                    params,
                ).fetchall()
                audio_rows = conn.execute(
                    "SELECT a.item_id, a.field, a.mime_type, a.data "
                    "FROM history_audio AS a JOIN history_items AS i ON i.id = a.item_id "
                    f"WHERE {where}",
                    params,
                ).fetchall()
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to read history: {exc}") from exc

        audio: dict[str, dict[str, AudioBlob]] = {}
        for row in audio_rows:
            audio.setdefault(row["item_id"], {})[row["field"]] = AudioBlob(
                bytes(row["data"]), row["mime_type"]
            )

        items = []
        for row in rows:
            item = self._row_to_item(row, audio.get(row["id"], {}))
            if item is not None:
                items.append(item)
        return items

    def get_history_item(self, item_id: str) -> Optional[HistoryItem]:
        """Return one record by id, or None when it does not exist."""
        with self._lock:
            conn = self._connection()
            try:
                row = conn.execute(
                    f"SELECT {_ITEM_COLUMNS} FROM history_items AS i WHERE i.id = ?",
                    (item_id,),
                ).fetchone()
                if row is None:
                    return None
                audio_rows = conn.execute(
                    "SELECT field, mime_type, data FROM history_audio WHERE item_id = ?",
                    (item_id,),
                ).fetchall()
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to read history item {item_id}: {exc}") from exc

        audio = {
            audio_row["field"]: AudioBlob(bytes(audio_row["data"]), audio_row["mime_type"])
            for audio_row in audio_rows
        }
        return self._row_to_item(row, audio)

    def count(self, user_id: Optional[str] = None) -> int:
        """Return the number of stored records, optionally for one owner."""
        with self._lock:
            conn = self._connection()
            if user_id is None:
                row = conn.execute("SELECT COUNT(*) FROM history_items").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM history_items WHERE user_id = ?", (user_id,)
                ).fetchone()
            return row[0] if row else 0

    # --- internals -------------------------------------------------------

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self.open()
        if self._conn is None:
            raise StorageError("History store is not open")
        return self._conn

    def _admit(self, item: HistoryItem) -> HistoryItem:
        """Drop audio payloads that are too large to store."""
        oversized = []
        try:
            for name, blob in item.audio_payloads().items():
                size = blob.size
                LOGGER.debug("History item %s: %s is %d bytes", item.id, name, size)
                if size >= self._max_audio_bytes:
                    oversized.append(name)
        except Exception as exc:
            LOGGER.error(
                "Could not measure audio of history item %s (%s); dropping all audio",
                item.id,
                exc,
            )
            return item.without_audio()

        if not oversized:
            return item
        for name in oversized:
            LOGGER.warning(
                "Audio field %s of history item %s exceeds %d bytes; not storing it",
                name,
                item.id,
                self._max_audio_bytes,
            )
        return item.without_audio(*oversized)

    def _write(self, conn: sqlite3.Connection, item: HistoryItem) -> None:
        payload = json.dumps(item.to_payload(), ensure_ascii=False)
        with conn:
            conn.execute(
                "INSERT INTO history_items (id, type, timestamp, user_id, payload) "
                "VALUES (?, ?, ?, ?, ?)",
                (item.id, item.type.value, int(item.timestamp), item.user_id, payload),
            )
            for field, blob in item.audio_payloads().items():
                self._insert_audio(conn, item.id, field, blob)

    def _insert_audio(
        self, conn: sqlite3.Connection, item_id: str, field: str, blob: AudioBlob
    ) -> None:
        conn.execute(
            "INSERT INTO history_audio (item_id, field, mime_type, data) "
            "VALUES (?, ?, ?, ?)",
            (item_id, field, blob.mime_type, sqlite3.Binary(blob.data)),
        )

    def _delete_one(self, conn: sqlite3.Connection, item_id: str) -> None:
        with conn:
            conn.execute("DELETE FROM history_audio WHERE item_id = ?", (item_id,))
            conn.execute("DELETE FROM history_items WHERE id = ?", (item_id,))

    def _row_to_item(
        self, row: sqlite3.Row, audio: dict[str, AudioBlob]
    ) -> Optional[HistoryItem]:
        try:
            return item_from_row(
                item_id=row["id"],
                item_type=row["type"],
                timestamp=row["timestamp"],
                user_id=row["user_id"],
                payload=json.loads(row["payload"]),
                audio=audio,
            )
        except (ValueError, KeyError, TypeError) as exc:
            LOGGER.warning("Skipping unreadable history item %s: %s", row["id"], exc)
            return None
