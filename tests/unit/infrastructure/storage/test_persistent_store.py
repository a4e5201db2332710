import asyncio
from pathlib import Path

import pytest

from ltrfantasy.domain.models.cache import CACHE_PARTITION, LINEUPS_PARTITION, CacheEntry
from ltrfantasy.infrastructure.storage.backends import MemoryBackend
from ltrfantasy.infrastructure.storage.store import PersistentStore


class BrokenBackend(MemoryBackend):
    """A primary backend that cannot be opened."""

    name = "broken"

    def open(self) -> None:
        raise OSError("disk unavailable")


class ReadOnlyBackend(MemoryBackend):
    """Opens fine, rejects every write."""

    name = "readonly"

    def write(self, partition, key, entry):
        raise OSError("quota exceeded")


@pytest.mark.asyncio
async def test_round_trip_returns_written_value(memory_store: PersistentStore):
    value = {"teams": [{"id": "1", "name": "Bills"}], "count": 1, "ok": True}
    assert await memory_store.set("k", value, 60) is True
    assert await memory_store.get("k") == value


@pytest.mark.asyncio
async def test_round_trip_on_disk(disk_store: PersistentStore):
    await disk_store.set("https://example.test/teams", [1, 2, 3], 60)
    assert await disk_store.get("https://example.test/teams") == [1, 2, 3]
    assert disk_store.fallback_active is False


@pytest.mark.asyncio
async def test_get_missing_key_returns_none(memory_store: PersistentStore):
    assert await memory_store.get("missing") is None


@pytest.mark.asyncio
async def test_expired_entry_is_a_miss_and_is_evicted(memory_store: PersistentStore, clock):
    await memory_store.set("k", "v", 10)
    clock.advance(9.999)
    assert await memory_store.get("k") == "v"

    clock.advance(0.001)  # now == expires_at
    assert await memory_store.get("k") is None
    assert memory_store.primary.read(CACHE_PARTITION, "k") is None
    # Second read is also a clean miss
    assert await memory_store.get("k") is None


@pytest.mark.asyncio
async def test_overwrite_replaces_value_and_expiry(memory_store: PersistentStore, clock):
    await memory_store.set("k", "old", 5)
    await memory_store.set("k", "new", 100)
    clock.advance(50)
    assert await memory_store.get("k") == "new"


@pytest.mark.asyncio
async def test_partitions_are_independent(memory_store: PersistentStore):
    await memory_store.set("current_lineup", ["a"], 60, partition=LINEUPS_PARTITION)
    assert await memory_store.get("current_lineup") is None
    assert await memory_store.get("current_lineup", partition=LINEUPS_PARTITION) == ["a"]


@pytest.mark.asyncio
async def test_set_rejects_non_positive_ttl(memory_store: PersistentStore):
    with pytest.raises(ValueError):
        await memory_store.set("k", "v", 0)


@pytest.mark.asyncio
async def test_set_refuses_non_json_values(memory_store: PersistentStore):
    assert await memory_store.set("k", {1, 2}, 60) is False
    assert await memory_store.get("k") is None


@pytest.mark.asyncio
async def test_init_failure_switches_to_fallback(clock):
    store = PersistentStore(primary=BrokenBackend(), fallback=MemoryBackend(), clock=clock)
    await store.init()

    assert store.ready is True
    assert store.fallback_active is True
    assert await store.set("k", {"x": 1}, 60) is True
    assert await store.get("k") == {"x": 1}
    assert len(store.fallback) == 1


@pytest.mark.asyncio
async def test_unopenable_disk_directory_falls_back(tmp_path: Path, clock):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file in the way")
    store = PersistentStore(directory=blocker / "store", clock=clock)

    assert await store.set("k", "v", 60) is True
    assert store.fallback_active is True
    assert await store.get("k") == "v"
    store.close()


@pytest.mark.asyncio
async def test_concurrent_first_calls_initialize_once(clock):
    primary = MemoryBackend()
    opened = []
    original_open = primary.open

    def counting_open():
        opened.append(1)
        original_open()

    primary.open = counting_open
    store = PersistentStore(primary=primary, clock=clock)

    await asyncio.gather(*(store.set(f"k{i}", i, 60) for i in range(10)))

    assert opened == [1]
    values = await asyncio.gather(*(store.get(f"k{i}") for i in range(10)))
    assert values == list(range(10))


@pytest.mark.asyncio
async def test_write_failure_degrades_to_fallback(clock):
    store = PersistentStore(primary=ReadOnlyBackend(), fallback=MemoryBackend(), clock=clock)

    assert await store.set("k", "v", 60) is True
    assert store.fallback_active is False
    assert await store.get("k") == "v"


@pytest.mark.asyncio
async def test_successful_primary_write_discards_stale_fallback_copy(memory_store: PersistentStore):
    memory_store.fallback.write(CACHE_PARTITION, "k", CacheEntry("k", "stale", 0, 10 ** 9).to_dict())
    await memory_store.set("k", "fresh", 60)
    assert memory_store.fallback.read(CACHE_PARTITION, "k") is None
    assert await memory_store.get("k") == "fresh"


@pytest.mark.asyncio
async def test_set_returns_false_when_every_backend_fails(clock):
    store = PersistentStore(primary=ReadOnlyBackend(), fallback=ReadOnlyBackend(), clock=clock)
    assert await store.set("k", "v", 60) is False
    assert await store.get("k") is None


@pytest.mark.asyncio
async def test_corrupted_entry_is_removed(memory_store: PersistentStore):
    await memory_store.init()
    memory_store.primary.write(CACHE_PARTITION, "k", {"value": "no timestamps"})
    assert await memory_store.get("k") is None
    assert memory_store.primary.read(CACHE_PARTITION, "k") is None


@pytest.mark.asyncio
async def test_undecodable_entry_is_a_miss_and_is_removed(memory_store: PersistentStore):
    await memory_store.init()
    memory_store.primary._bucket(CACHE_PARTITION)["bad"] = "{truncated"

    assert await memory_store.get("bad") is None
    assert "bad" not in memory_store.primary._bucket(CACHE_PARTITION)


@pytest.mark.asyncio
async def test_clear_expired_sweeps_past_undecodable_entry(memory_store: PersistentStore, clock):
    await memory_store.init()
    memory_store.primary._bucket(CACHE_PARTITION)["bad"] = "{truncated"
    await memory_store.set("stale", 1, 10)
    await memory_store.set("fresh", 2, 1000)
    clock.advance(11)

    assert await memory_store.clear_expired() == 2
    assert list(memory_store.primary._bucket(CACHE_PARTITION)) == ["fresh"]


@pytest.mark.asyncio
async def test_clear_expired_on_disk_skips_past_undecodable_entry(disk_store: PersistentStore, clock):
    await disk_store.init()
    disk_store.primary._cache(CACHE_PARTITION).set("bad", "{truncated")
    await disk_store.set("stale", 1, 10)
    clock.advance(11)

    assert await disk_store.clear_expired() == 2
    assert list(disk_store.primary.entries(CACHE_PARTITION)) == []


@pytest.mark.asyncio
async def test_delete_removes_key(memory_store: PersistentStore):
    await memory_store.set("k", "v", 60)
    await memory_store.delete("k")
    assert await memory_store.get("k") is None


@pytest.mark.asyncio
async def test_clear_expired_removes_only_expired(memory_store: PersistentStore, clock):
    await memory_store.set("short", 1, 10)
    await memory_store.set("long", 2, 1000)
    await memory_store.set("lineup", [3], 10, partition=LINEUPS_PARTITION)
    clock.advance(11)

    removed = await memory_store.clear_expired()

    assert removed == 2
    assert await memory_store.get("long") == 2
    assert memory_store.primary.read(CACHE_PARTITION, "short") is None


@pytest.mark.asyncio
async def test_clear_expired_on_disk(disk_store: PersistentStore, clock):
    await disk_store.set("a", 1, 5)
    await disk_store.set("b", 2, 500)
    clock.advance(6)
    assert await disk_store.clear_expired() == 1
    assert await disk_store.get("b") == 2


@pytest.mark.asyncio
async def test_clear_all_wipes_every_partition(memory_store: PersistentStore):
    await memory_store.set("a", 1, 60)
    await memory_store.set("b", 2, 60, partition=LINEUPS_PARTITION)

    assert await memory_store.clear_all() is True
    assert await memory_store.get("a") is None
    assert await memory_store.get("b", partition=LINEUPS_PARTITION) is None


def test_store_requires_directory_or_primary():
    with pytest.raises(ValueError):
        PersistentStore()


def test_cache_entry_must_expire_after_it_is_stored():
    with pytest.raises(ValueError):
        CacheEntry(key="k", value=1, stored_at=10.0, expires_at=10.0)
