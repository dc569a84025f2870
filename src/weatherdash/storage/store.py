from __future__ import annotations

import threading
from pathlib import Path
from typing import Protocol

from .db import delete_value, kv_session, list_keys, read_value, write_value


class KeyValueStore(Protocol):
    """String key/value capability the TTL cache persists into."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class InMemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._items)


class SqliteKeyValueStore:
    """Persists entries in the ``kv_entries`` table of a local SQLite file."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def get(self, key: str) -> str | None:
        with kv_session(self._db_path) as connection:
            return read_value(connection, key)

    def set(self, key: str, value: str) -> None:
        with kv_session(self._db_path) as connection:
            write_value(connection, key, value)

    def delete(self, key: str) -> None:
        with kv_session(self._db_path) as connection:
            delete_value(connection, key)

    def keys(self) -> list[str]:
        with kv_session(self._db_path) as connection:
            return list_keys(connection)
