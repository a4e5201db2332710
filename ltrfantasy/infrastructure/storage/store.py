"""Concrete implementation of the persistent key-value store.

Entries live in the primary (disk) backend while it works. If the primary
cannot be opened the store switches to the fallback backend for the rest of
the process; if a single write is rejected, only that write degrades. Reads
consult every usable backend so degraded writes stay visible. No storage
failure is ever raised to the caller.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Callable, List, Optional

from ltrfantasy.domain.interfaces.store import KeyValueStore
from ltrfantasy.domain.models.cache import ALL_PARTITIONS, CACHE_PARTITION, CacheEntry
from ltrfantasy.domain.models.common import CacheKey, Partition
from ltrfantasy.infrastructure.storage.backends import (
    DiskBackend,
    MemoryBackend,
    StorageBackend,
    encode_entry,
)

logger = logging.getLogger(__name__)


def _is_expired(raw: Any, now: float) -> bool:
    """Undecodable or timestamp-less entries count as expired."""
    expires_at = raw.get("expires_at") if isinstance(raw, dict) else None
    if expires_at is None:
        return True
    try:
        return now >= float(expires_at)
    except (TypeError, ValueError):
        return True


class PersistentStore(KeyValueStore):
    """TTL store with a durable primary backend and an in-memory fallback."""

    def __init__(
        self,
        directory: Optional[Path] = None,
        primary: Optional[StorageBackend] = None,
        fallback: Optional[StorageBackend] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initializes the store without touching the disk.

        Args:
            directory: Root directory for the default DiskBackend.
            primary: Primary backend (overrides ``directory``).
            fallback: Fallback backend, a MemoryBackend by default.
            clock: Wall-clock source in epoch seconds.
        """
        if primary is None:
            if directory is None:
                raise ValueError("Either a directory or a primary backend is required.")
            primary = DiskBackend(directory)
        self.primary = primary
        self.fallback = fallback if fallback is not None else MemoryBackend()
        self.fallback_active = False
        self._clock = clock
        self._initialized = False
        self._init_lock: Optional[asyncio.Lock] = None

    # --- Initialization ---

    async def init(self) -> None:
        """Opens the primary backend once; concurrent callers wait for the same attempt."""
        if self._initialized:
            return
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        async with self._init_lock:
            if self._initialized:
                return
            try:
                await asyncio.to_thread(self.primary.open)
                logger.info(f"Persistent store ready (primary={self.primary.name}).")
            except Exception as e:
                logger.error(
                    f"Primary store initialization failed: {e}. "
                    f"Falling back to {self.fallback.name} store."
                )
                self.fallback_active = True
            self._initialized = True

    @property
    def ready(self) -> bool:
        return self._initialized

    def _backends(self) -> List[StorageBackend]:
        if self.fallback_active:
            return [self.fallback]
        return [self.primary, self.fallback]

    def _discard(self, backend: StorageBackend, partition: str, key: str) -> None:
        try:
            backend.delete(partition, key)
        except Exception as e:
            logger.warning(f"Failed to delete key {key} from {backend.name} store: {e}")

    # --- KeyValueStore Interface Implementation ---

    async def get(self, key: CacheKey, partition: Partition = CACHE_PARTITION) -> Optional[Any]:
        await self.init()
        now = self._clock()

        for backend in self._backends():
            try:
                raw = backend.read(partition, key)
            except ValueError as e:
                logger.warning(f"Undecodable cache entry for key {key} in {backend.name} store: {e}. Removing.")
                self._discard(backend, partition, key)
                continue
            except Exception as e:
                logger.error(f"Cache get error on {backend.name} store for key {key}: {e}")
                continue
            if raw is None:
                continue

            try:
                entry = CacheEntry.from_dict(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Corrupted cache entry for key {key} in {backend.name} store: {e}. Removing.")
                self._discard(backend, partition, key)
                continue

            if entry.is_expired(now):
                logger.debug(f"Data expired in {backend.name} store for key: {key}")
                self._discard(backend, partition, key)
                continue

            logger.debug(f"Cache HIT ({backend.name}) for key: {key}")
            return entry.value

        logger.debug(f"Cache MISS for key: {key}")
        return None

    async def set(
        self,
        key: CacheKey,
        value: Any,
        ttl_seconds: int,
        partition: Partition = CACHE_PARTITION,
    ) -> bool:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        await self.init()

        now = self._clock()
        entry = CacheEntry(key=key, value=value, stored_at=now, expires_at=now + ttl_seconds).to_dict()
        try:
            encode_entry(entry)
        except (TypeError, ValueError) as e:
            logger.error(f"Refusing to cache non-JSON value for key {key}: {e}")
            return False

        if not self.fallback_active:
            try:
                self.primary.write(partition, key, entry)
                # A previously degraded write must not shadow the fresh one
                self._discard(self.fallback, partition, key)
                logger.debug(f"Stored in {self.primary.name} store: key={key}, ttl={ttl_seconds}s")
                return True
            except Exception as e:
                logger.warning(
                    f"Cache set error on {self.primary.name} store for key {key}: {e}. "
                    f"Falling back to {self.fallback.name} store."
                )
                self._discard(self.primary, partition, key)

        try:
            self.fallback.write(partition, key, entry)
            logger.debug(f"Stored in {self.fallback.name} store: key={key}, ttl={ttl_seconds}s")
            return True
        except Exception as e:
            logger.error(f"Cache set failed on every backend for key {key}: {e}")
            return False

    async def delete(self, key: CacheKey, partition: Partition = CACHE_PARTITION) -> None:
        await self.init()
        for backend in self._backends():
            self._discard(backend, partition, key)

    async def clear_expired(self) -> int:
        """Removes every expired entry from every usable backend and partition."""
        await self.init()
        now = self._clock()
        removed = 0
        for backend in self._backends():
            for partition in ALL_PARTITIONS:
                try:
                    for key, raw in backend.entries(partition):
                        try:
                            if _is_expired(raw, now):
                                backend.delete(partition, key)
                                removed += 1
                        except Exception as e:
                            logger.warning(f"Failed to remove expired key {key} from {backend.name} store: {e}")
                except Exception as e:
                    logger.error(f"Cache cleanup error on {backend.name} store ({partition}): {e}")
        if removed:
            logger.info(f"Removed {removed} expired cache entries.")
        return removed

    async def clear_all(self) -> bool:
        """Wipes every partition of every backend."""
        await self.init()
        ok = True
        for backend in self._backends():
            for partition in ALL_PARTITIONS:
                try:
                    count = backend.clear(partition)
                    logger.debug(f"Cleared {count} entries from {backend.name}/{partition}")
                except Exception as e:
                    logger.error(f"Error clearing {backend.name}/{partition}: {e}")
                    ok = False
        logger.info("Cleared all stored data." if ok else "Cleared stored data with errors.")
        return ok

    def close(self) -> None:
        for backend in (self.primary, self.fallback):
            try:
                backend.close()
            except Exception as e:
                logger.warning(f"Error closing {backend.name} store: {e}")
