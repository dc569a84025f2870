from .cache import DEFAULT_NAMESPACE, CacheEntry, TtlCache, cache_key
from .db import initialize_database
from .store import InMemoryKeyValueStore, KeyValueStore, SqliteKeyValueStore

__all__ = [
    "CacheEntry",
    "DEFAULT_NAMESPACE",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SqliteKeyValueStore",
    "TtlCache",
    "cache_key",
    "initialize_database",
]
