from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

KV_TABLE = "kv_entries"
KV_TABLE_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {KV_TABLE} (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""
BUSY_TIMEOUT_SECONDS = 5.0


def connect(db_path: Path) -> sqlite3.Connection:
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(path, timeout=BUSY_TIMEOUT_SECONDS)
    connection.execute("PRAGMA journal_mode = WAL;")
    return connection


@contextmanager
def kv_session(db_path: Path) -> Iterator[sqlite3.Connection]:
    """Open a connection with the key/value table in place; commit on success."""
    connection = connect(db_path)
    try:
        connection.executescript(KV_TABLE_SCHEMA)
        yield connection
        connection.commit()
    except sqlite3.Error:
        connection.rollback()
        raise
    finally:
        connection.close()


def read_value(connection: sqlite3.Connection, key: str) -> str | None:
    row = connection.execute(f"SELECT value FROM {KV_TABLE} WHERE key = ?", (key,)).fetchone()
    return None if row is None else str(row[0])


def write_value(connection: sqlite3.Connection, key: str, value: str) -> None:
    connection.execute(
        f"INSERT INTO {KV_TABLE} (key, value) VALUES (?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
        (key, value),
    )


def delete_value(connection: sqlite3.Connection, key: str) -> None:
    connection.execute(f"DELETE FROM {KV_TABLE} WHERE key = ?", (key,))


def list_keys(connection: sqlite3.Connection) -> list[str]:
    return [str(row[0]) for row in connection.execute(f"SELECT key FROM {KV_TABLE} ORDER BY key")]


def initialize_database(db_path: Path) -> None:
    with kv_session(db_path):
        pass
