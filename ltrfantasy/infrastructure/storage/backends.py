"""Storage backends used by the persistent store.

``DiskBackend`` keeps one diskcache ``Cache`` per logical partition under a
root directory and is the primary backend. ``MemoryBackend`` is the fallback:
a process-local dictionary with the same interface. Both hold entries as
JSON text so only JSON-serializable values ever get stored.
"""

import abc
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple

import diskcache as dc

from ltrfantasy.domain.models.cache import ALL_PARTITIONS

logger = logging.getLogger(__name__)


def encode_entry(entry: Dict[str, Any]) -> str:
    return json.dumps(entry, separators=(",", ":"))


def decode_entry(raw: Any) -> Optional[Dict[str, Any]]:
    """Parses stored JSON text. Raises ValueError on malformed text."""
    if raw is None:
        return None
    return json.loads(raw)


def _decode_or_none(backend: str, partition: str, key: str, raw: Any) -> Optional[Dict[str, Any]]:
    try:
        return decode_entry(raw)
    except ValueError as e:
        logger.warning(f"Undecodable entry {key} in {backend}/{partition}: {e}")
        return None


class StorageBackend(abc.ABC):
    """Synchronous partitioned storage of serialized cache entries."""

    name: str = "backend"

    @abc.abstractmethod
    def open(self) -> None:
        """Prepares the backend. Raises if it cannot be used."""

    @abc.abstractmethod
    def read(self, partition: str, key: str) -> Optional[Dict[str, Any]]:
        """Returns the decoded entry dict or None."""

    @abc.abstractmethod
    def write(self, partition: str, key: str, entry: Dict[str, Any]) -> None:
        """Stores an entry dict, replacing any existing one."""

    @abc.abstractmethod
    def delete(self, partition: str, key: str) -> None:
        """Removes a key; missing keys are ignored."""

    @abc.abstractmethod
    def entries(self, partition: str) -> Iterator[Tuple[str, Optional[Dict[str, Any]]]]:
        """Yields ``(key, entry)`` pairs of a partition.

        ``entry`` is None when the stored text cannot be decoded.
        """

    @abc.abstractmethod
    def clear(self, partition: str) -> int:
        """Removes every key of a partition and returns the count removed."""

    def close(self) -> None:
        pass


class DiskBackend(StorageBackend):
    """diskcache-backed durable storage, one Cache directory per partition."""

    name = "disk"

    def __init__(self, directory: Path, partitions: Iterable[str] = ALL_PARTITIONS, timeout: float = 1.0):
        self.directory = Path(directory)
        self.partitions = tuple(partitions)
        self.timeout = timeout
        self._caches: Dict[str, dc.Cache] = {}

    def open(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        for partition in self.partitions:
            if partition not in self._caches:
                self._caches[partition] = dc.Cache(str(self.directory / partition), timeout=self.timeout)
        logger.info(f"Disk store opened at {self.directory} with partitions: {', '.join(self.partitions)}")

    def _cache(self, partition: str) -> dc.Cache:
        try:
            return self._caches[partition]
        except KeyError:
            raise KeyError(f"Unknown or unopened partition: {partition}") from None

    def read(self, partition: str, key: str) -> Optional[Dict[str, Any]]:
        return decode_entry(self._cache(partition).get(key, default=None))

    def write(self, partition: str, key: str, entry: Dict[str, Any]) -> None:
        if not self._cache(partition).set(key, encode_entry(entry)):
            raise OSError(f"diskcache rejected write for key '{key}' in '{partition}'")

    def delete(self, partition: str, key: str) -> None:
        self._cache(partition).delete(key)

    def entries(self, partition: str) -> Iterator[Tuple[str, Optional[Dict[str, Any]]]]:
        cache = self._cache(partition)
        # Snapshot the keys first so callers may delete while iterating
        for key in list(cache.iterkeys()):
            raw = cache.get(key, default=None)
            if raw is not None:
                yield key, _decode_or_none(self.name, partition, key, raw)

    def clear(self, partition: str) -> int:
        return self._cache(partition).clear()

    def close(self) -> None:
        for cache in self._caches.values():
            cache.close()
        self._caches.clear()


class MemoryBackend(StorageBackend):
    """In-process fallback storage. Lost on exit, never fails to open."""

    name = "memory"

    def __init__(self, partitions: Iterable[str] = ALL_PARTITIONS):
        self.partitions = tuple(partitions)
        self._data: Dict[str, Dict[str, str]] = {p: {} for p in self.partitions}

    def open(self) -> None:
        pass

    def _bucket(self, partition: str) -> Dict[str, str]:
        return self._data.setdefault(partition, {})

    def read(self, partition: str, key: str) -> Optional[Dict[str, Any]]:
        return decode_entry(self._bucket(partition).get(key))

    def write(self, partition: str, key: str, entry: Dict[str, Any]) -> None:
        self._bucket(partition)[key] = encode_entry(entry)

    def delete(self, partition: str, key: str) -> None:
        self._bucket(partition).pop(key, None)

    def entries(self, partition: str) -> Iterator[Tuple[str, Optional[Dict[str, Any]]]]:
        for key, raw in list(self._bucket(partition).items()):
            yield key, _decode_or_none(self.name, partition, key, raw)

    def clear(self, partition: str) -> int:
        bucket = self._bucket(partition)
        count = len(bucket)
        bucket.clear()
        return count

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._data.values())
