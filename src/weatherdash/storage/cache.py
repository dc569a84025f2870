from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable

from ..domain.models import CacheInfo
from .store import KeyValueStore

LOGGER = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "weather-app-cache"

STORE_ERRORS = (sqlite3.Error, OSError, MemoryError)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    data: Any
    written_at: int
    ttl_ms: int

    def is_expired(self, now_ms: int) -> bool:
        return now_ms - self.written_at >= self.ttl_ms

    def to_json(self) -> str:
        return json.dumps(
            {"data": self.data, "writtenAt": self.written_at, "ttlMs": self.ttl_ms},
            ensure_ascii=True,
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, raw: str) -> CacheEntry:
        payload = json.loads(raw)
        if not isinstance(payload, dict) or "data" not in payload:
            raise ValueError("cache entry is not an object with a data field")
        written_at = payload.get("writtenAt")
        ttl_ms = payload.get("ttlMs")
        if isinstance(written_at, bool) or not isinstance(written_at, (int, float)):
            raise ValueError("cache entry writtenAt must be numeric")
        if isinstance(ttl_ms, bool) or not isinstance(ttl_ms, (int, float)):
            raise ValueError("cache entry ttlMs must be numeric")
        return cls(data=payload["data"], written_at=int(written_at), ttl_ms=int(ttl_ms))


@dataclass(slots=True)
class _KeyLock:
    lock: asyncio.Lock
    users: int = 0


def _epoch_ms() -> int:
    return time.time_ns() // 1_000_000


def cache_key(data_class: str, lat: float, lon: float) -> str:
    return f"{data_class}-{lat:.2f}-{lon:.2f}"


class TtlCache:
    """Namespaced key/value cache whose entries expire after a per-entry TTL.

    Storage failures never reach the caller: writes degrade to a logged no-op
    and reads degrade to a miss. Expired and unparsable entries are evicted
    when they are read.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        namespace: str = DEFAULT_NAMESPACE,
        clock: Callable[[], int] = _epoch_ms,
    ) -> None:
        namespace = namespace.strip()
        if not namespace:
            raise ValueError("cache namespace must not be empty")
        self._store = store
        self._namespace = namespace
        self._clock = clock
        self._locks: dict[str, _KeyLock] = {}

    @property
    def namespace(self) -> str:
        return self._namespace

    def _storage_key(self, key: str) -> str:
        return f"{self._namespace}-{key}"

    def _is_namespaced(self, storage_key: str) -> bool:
        return storage_key.startswith(f"{self._namespace}-")

    def _strip_namespace(self, storage_key: str) -> str:
        return storage_key[len(self._namespace) + 1 :]

    @property
    def active_lock_count(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def key_lock(self, key: str) -> AsyncIterator[None]:
        """Serialise read-decide-write sequences for ``key``.

        The lock is dropped once its last holder or waiter leaves.
        """
        storage_key = self._storage_key(key)
        slot = self._locks.get(storage_key)
        if slot is None:
            slot = self._locks[storage_key] = _KeyLock(asyncio.Lock())
        slot.users += 1
        try:
            async with slot.lock:
                yield
        finally:
            slot.users -= 1
            if slot.users == 0:
                del self._locks[storage_key]

    def set(self, key: str, data: Any, ttl_ms: int) -> bool:
        if ttl_ms < 0:
            LOGGER.warning("Cache write for '%s' skipped, negative ttl %s", key, ttl_ms)
            return False

        entry = CacheEntry(data=data, written_at=self._clock(), ttl_ms=ttl_ms)
        try:
            raw = entry.to_json()
        except (TypeError, ValueError) as exc:
            LOGGER.warning("Cache write for '%s' skipped, payload not serializable: %s", key, exc)
            return False

        try:
            self._store.set(self._storage_key(key), raw)
        except STORE_ERRORS as exc:
            LOGGER.warning("Cache write for '%s' failed: %s", key, exc)
            return False
        return True

    def get(self, key: str) -> Any | None:
        storage_key = self._storage_key(key)
        try:
            raw = self._store.get(storage_key)
        except STORE_ERRORS as exc:
            LOGGER.warning("Cache read for '%s' failed: %s", key, exc)
            return None
        if raw is None:
            return None

        try:
            entry = CacheEntry.from_json(raw)
        except (TypeError, ValueError) as exc:
            LOGGER.warning("Evicting corrupt cache entry '%s': %s", key, exc)
            self._evict(storage_key)
            return None

        if entry.is_expired(self._clock()):
            LOGGER.debug("Evicting expired cache entry '%s'", key)
            self._evict(storage_key)
            return None
        return entry.data

    def remove(self, key: str) -> None:
        self._evict(self._storage_key(key))

    def _evict(self, storage_key: str) -> bool:
        try:
            self._store.delete(storage_key)
        except STORE_ERRORS as exc:
            LOGGER.warning("Cache delete for '%s' failed: %s", storage_key, exc)
            return False
        return True

    def _namespaced_keys(self) -> list[str]:
        try:
            return [key for key in self._store.keys() if self._is_namespaced(key)]
        except STORE_ERRORS as exc:
            LOGGER.warning("Cache key listing failed: %s", exc)
            return []

    def clear_all(self) -> int:
        removed = 0
        for storage_key in self._namespaced_keys():
            if self._evict(storage_key):
                removed += 1
        LOGGER.info("Cleared %s cache entries under '%s'", removed, self._namespace)
        return removed

    def prune_expired(self) -> int:
        now_ms = self._clock()
        removed = 0
        for storage_key in self._namespaced_keys():
            try:
                raw = self._store.get(storage_key)
            except STORE_ERRORS as exc:
                LOGGER.warning("Cache read for '%s' failed: %s", storage_key, exc)
                continue
            if raw is None:
                continue
            try:
                expired = CacheEntry.from_json(raw).is_expired(now_ms)
            except (TypeError, ValueError):
                expired = True
            if expired and self._evict(storage_key):
                removed += 1
        return removed

    def info(self) -> CacheInfo:
        count = 0
        total_size = 0
        oldest: tuple[int, str] | None = None
        newest: tuple[int, str] | None = None

        for storage_key in self._namespaced_keys():
            try:
                raw = self._store.get(storage_key)
            except STORE_ERRORS as exc:
                LOGGER.warning("Cache read for '%s' failed: %s", storage_key, exc)
                continue
            if raw is None:
                continue
            count += 1
            total_size += len(raw.encode("utf-8"))
            try:
                written_at = CacheEntry.from_json(raw).written_at
            except (TypeError, ValueError):
                continue
            if oldest is None or written_at < oldest[0]:
                oldest = (written_at, storage_key)
            if newest is None or written_at > newest[0]:
                newest = (written_at, storage_key)

        return CacheInfo(
            count=count,
            total_size_bytes=total_size,
            oldest_key=self._strip_namespace(oldest[1]) if oldest else None,
            newest_key=self._strip_namespace(newest[1]) if newest else None,
        )
