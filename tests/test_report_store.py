"""Unit tests for the report store over both key-value backends."""

from datetime import datetime, timezone

import pytest

from app.errors import NotFound, StorageFailure
from app.services.kv_store import MemoryKeyValueStore
from app.services.report_store import ReportStore, make_report_id, report_key
from conftest import make_report


@pytest.fixture(params=["memory", "sqlite"])
def store(request, memory_store, sqlite_store):
    return memory_store if request.param == "memory" else sqlite_store


class _Clock:
    def __init__(self, start: int = 1_760_000_000_000):
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


async def test_put_then_get_round_trips(store, sample_report):
    report_id = await store.put(sample_report)
    fetched = await store.get(report_id)
    assert fetched == sample_report


async def test_get_unknown_id_is_not_found(store):
    result = await store.get("1234567890123")
    assert isinstance(result, NotFound)
    assert result.redirect_to == "/reports"


async def test_values_stored_under_prefixed_key(sample_report):
    backend = MemoryKeyValueStore()
    store = ReportStore(backend)
    report_id = await store.put(sample_report)
    raw = await backend.get(f"report-{report_id}")
    assert raw is not None and '"bodyLanguage"' in raw


async def test_id_is_creation_instant_in_millis(memory_store, sample_report):
    created = datetime(2026, 3, 1, 12, 0, 0, 250000, tzinfo=timezone.utc)
    report_id = await memory_store.put(sample_report, created_at=created)
    assert report_id == str(int(created.timestamp() * 1000))
    [entry] = await memory_store.list()
    assert entry.created_at == created


async def test_list_newest_first(store):
    store._clock = _Clock()
    ids = [await store.put(make_report(confidence=i)) for i in range(5)]
    entries = await store.list()
    assert len(entries) == 5
    assert [e.id for e in entries] == list(reversed(ids))
    assert [e.report.confidence for e in entries] == [4, 3, 2, 1, 0]


async def test_list_empty(store):
    assert await store.list() == []


async def test_list_filter_and_limit(store):
    store._clock = _Clock()
    await store.put(make_report(emotion="happy"))
    await store.put(make_report(emotion="anxious"))
    await store.put(make_report(emotion="happy"))

    happy = await store.list(emotion="happy")
    assert len(happy) == 2
    assert all(e.report.emotion == "happy" for e in happy)
    assert len(await store.list(limit=1)) == 1


async def test_same_instant_last_write_wins(store):
    store._clock = lambda: 1_760_000_000_000
    first = await store.put(make_report(emotion="happy"))
    second = await store.put(make_report(emotion="pain"))
    assert first == second
    entries = await store.list()
    assert len(entries) == 1
    assert entries[0].report.emotion == "pain"


async def test_unreadable_entry_skipped_and_not_found(sample_report):
    backend = MemoryKeyValueStore()
    store = ReportStore(backend)
    good_id = await store.put(sample_report)
    await backend.set(report_key("1700000000000"), '{"emotion": "excited"}')
    await backend.set("report-not-a-number", "{}")
    await backend.set("profile-dog", "{}")

    assert [e.id for e in await store.list()] == [good_id]
    assert isinstance(await store.get("1700000000000"), NotFound)


async def test_delete(store, sample_report):
    report_id = await store.put(sample_report)
    assert await store.delete(report_id) is True
    assert isinstance(await store.get(report_id), NotFound)
    assert await store.delete(report_id) is False


async def test_write_failure_is_storage_failure(sample_report):
    class BrokenBackend(MemoryKeyValueStore):
        async def set(self, key, value):
            raise OSError("disk full")

    with pytest.raises(StorageFailure):
        await ReportStore(BrokenBackend()).put(sample_report)


def test_ids_sort_lexically_in_time_order():
    earlier = make_report_id(datetime(2001, 9, 9, 1, 46, 40, tzinfo=timezone.utc))
    later = make_report_id(datetime(2030, 1, 1, tzinfo=timezone.utc))
    assert len(earlier) == len(later) == 13
    assert earlier < later


async def test_list_read_failure_is_storage_failure():
    class BrokenBackend(MemoryKeyValueStore):
        async def items(self, prefix=""):
            raise OSError("database disk image is malformed")

    with pytest.raises(StorageFailure):
        await ReportStore(BrokenBackend()).list()
