import json

from fraudit.lib.seen_set_store import SEEN_SET_KEY, SeenSetStore


async def test_load_missing_value_starts_empty(seen_set):
    await seen_set.load()
    assert len(seen_set) == 0
    assert seen_set.snapshot() == []


async def test_mark_seen_and_persist(seen_set, storage):
    await seen_set.load()
    seen_set.mark_seen([1, 2])
    await seen_set.persist()

    assert seen_set.has(1)
    assert not seen_set.has(3)
    assert json.loads(storage.data[SEEN_SET_KEY]) == [1, 2]


async def test_persisted_ids_survive_reload(storage):
    first = SeenSetStore(storage)
    first.mark_seen([7, 8])
    await first.persist()

    second = SeenSetStore(storage)
    await second.load()
    assert second.snapshot() == [7, 8]


async def test_capacity_evicts_oldest_first(storage):
    store = SeenSetStore(storage, capacity=3)
    store.mark_seen([1, 2, 3])
    store.mark_seen([4, 5])

    assert store.snapshot() == [3, 4, 5]
    assert not store.has(1)


async def test_default_capacity_keeps_last_hundred(seen_set):
    seen_set.mark_seen(range(150))
    assert len(seen_set) == 100
    assert seen_set.snapshot()[0] == 50
    assert seen_set.snapshot()[-1] == 149


async def test_marking_again_does_not_refresh_position(storage):
    store = SeenSetStore(storage, capacity=2)
    store.mark_seen([1, 2])
    store.mark_seen([1])
    store.mark_seen([3])

    assert store.snapshot() == [2, 3]


async def test_filter_unseen(seen_set):
    seen_set.mark_seen([1, 3])
    assert seen_set.filter_unseen([1, 2, 3, 4]) == [2, 4]


async def test_corrupt_value_loads_empty(storage):
    storage.data[SEEN_SET_KEY] = "{not json"
    store = SeenSetStore(storage)
    await store.load()
    assert len(store) == 0


async def test_non_list_value_loads_empty(storage):
    storage.data[SEEN_SET_KEY] = json.dumps({"ids": [1]})
    store = SeenSetStore(storage)
    await store.load()
    assert len(store) == 0


async def test_oversized_stored_value_is_truncated(storage):
    storage.data[SEEN_SET_KEY] = json.dumps(list(range(10)))
    store = SeenSetStore(storage, capacity=4)
    await store.load()
    assert store.snapshot() == [6, 7, 8, 9]


async def test_storage_errors_are_not_raised(storage):
    store = SeenSetStore(storage)
    storage.fail_reads = True
    await store.load()
    assert len(store) == 0

    storage.fail_writes = True
    store.mark_seen([1])
    await store.persist()
    assert store.has(1)


async def test_clear_removes_persisted_value(seen_set, storage):
    seen_set.mark_seen([1])
    await seen_set.persist()
    await seen_set.clear()

    assert len(seen_set) == 0
    assert SEEN_SET_KEY not in storage.data
