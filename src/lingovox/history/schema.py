"""Database schema and migrations for the local history store."""

from __future__ import annotations

import sqlite3
from typing import Final

SCHEMA_VERSION: Final[int] = 1

CREATE_METADATA_TABLE: Final[str] = """
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

CREATE_ITEMS_TABLE: Final[str] = """
CREATE TABLE IF NOT EXISTS history_items (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    user_id TEXT NOT NULL,
    payload TEXT NOT NULL
);
"""

CREATE_AUDIO_TABLE: Final[str] = """
CREATE TABLE IF NOT EXISTS history_audio (
    item_id TEXT NOT NULL REFERENCES history_items(id) ON DELETE CASCADE,
    field TEXT NOT NULL,
    mime_type TEXT NOT NULL,
    data BLOB NOT NULL,
    PRIMARY KEY (item_id, field)
);
"""

INDEX_NAMES: Final[tuple[str, ...]] = (
    "by_type",
    "by_timestamp",
    "by_user_id",
    "by_user_and_type",
)

CREATE_INDICES: Final[str] = """
CREATE INDEX IF NOT EXISTS by_type ON history_items(type);
CREATE INDEX IF NOT EXISTS by_timestamp ON history_items(timestamp);
CREATE INDEX IF NOT EXISTS by_user_id ON history_items(user_id);
CREATE INDEX IF NOT EXISTS by_user_and_type ON history_items(user_id, type);
"""


def current_schema_version(conn: sqlite3.Connection) -> int:
    cursor = conn.execute("SELECT value FROM metadata WHERE key = 'schema_version'")
    row = cursor.fetchone()
    return int(row[0]) if row else 0


def apply_migrations(conn: sqlite3.Connection) -> None:
    """Create or upgrade the schema. Safe to run against an up-to-date database."""
    cursor = conn.cursor()
    cursor.execute(CREATE_METADATA_TABLE)

    if current_schema_version(conn) < 1:
        cursor.execute(CREATE_ITEMS_TABLE)
        cursor.execute(CREATE_AUDIO_TABLE)
        cursor.executescript(CREATE_INDICES)
        cursor.execute(
            "INSERT OR REPLACE INTO metadata (key, value) VALUES ('schema_version', ?)",
            (str(SCHEMA_VERSION),),
        )
        conn.commit()
