"""Interface for the persistent key-value store.

Defines the contract the fetch layer consumes: JSON values under string
keys, a per-entry TTL, and logical partitions. Implementations must never
raise storage failures to the caller.
"""

import abc
from typing import Any, Optional

from ..models.cache import CACHE_PARTITION
from ..models.common import CacheKey, Partition


class KeyValueStore(abc.ABC):
    """Abstract Base Class for TTL-aware key-value storage."""

    @abc.abstractmethod
    async def init(self) -> None:
        """Opens the backing storage. Safe to call any number of times.

        Must complete even when the primary backend cannot be opened.
        """
        pass

    @abc.abstractmethod
    async def get(self, key: CacheKey, partition: Partition = CACHE_PARTITION) -> Optional[Any]:
        """Retrieves a value.

        Args:
            key: The key to look up.
            partition: Logical partition holding the key.

        Returns:
            The stored value, or None if absent or expired. Expired entries
            are deleted as a side effect.
        """
        pass

    @abc.abstractmethod
    async def set(
        self,
        key: CacheKey,
        value: Any,
        ttl_seconds: int,
        partition: Partition = CACHE_PARTITION,
    ) -> bool:
        """Stores a value for ``ttl_seconds``.

        Args:
            key: The key to store under.
            value: A JSON-serializable value.
            ttl_seconds: Time-to-live, must be positive.
            partition: Logical partition to write to.

        Returns:
            True if the value was stored, False if no backend accepted it.
        """
        pass

    @abc.abstractmethod
    async def delete(self, key: CacheKey, partition: Partition = CACHE_PARTITION) -> None:
        """Removes a key from every backend."""
        pass

    @abc.abstractmethod
    async def clear_expired(self) -> int:
        """Sweeps expired entries. Returns how many were removed."""
        pass

    @abc.abstractmethod
    async def clear_all(self) -> bool:
        """Wipes every partition. Returns False if any backend failed."""
        pass
