"""
Unit tests for the in-memory record store.
"""

from __future__ import annotations

import pytest

from src.enrichment.exceptions import StorageWriteError
from src.enrichment.models import EntityKind, LocalRecord
from src.enrichment.storage import InMemoryRecordStore, RecordStore


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore(
        [
            LocalRecord.health_system("hs-1", "Mercy Health"),
            LocalRecord.attendee("a-1", "John", "Smith"),
            LocalRecord.conference("c-1", "HLTH 2026", start_date="2026-10-18"),
        ]
    )


# =============================================================================
# RecordStore Tests
# =============================================================================


def test_satisfies_protocol(store: InMemoryRecordStore) -> None:
    assert isinstance(store, RecordStore)


@pytest.mark.asyncio
async def test_get_by_kind_and_id(store: InMemoryRecordStore) -> None:
    record = await store.get(EntityKind.ATTENDEE, "a-1")

    assert record.name == "John Smith"
    assert await store.get(EntityKind.HEALTH_SYSTEM, "a-1") is None


@pytest.mark.asyncio
async def test_list_filters_by_kind(store: InMemoryRecordStore) -> None:
    records = await store.list(EntityKind.CONFERENCE)

    assert [r.id for r in records] == ["c-1"]
    assert records[0].get("start_date") == "2026-10-18"


@pytest.mark.asyncio
async def test_update_merges_patch(store: InMemoryRecordStore) -> None:
    updated = await store.update(EntityKind.HEALTH_SYSTEM, "hs-1", {"city": "Cincinnati"})

    assert updated.name == "Mercy Health"
    assert updated.get("city") == "Cincinnati"
    assert (await store.get(EntityKind.HEALTH_SYSTEM, "hs-1")) == updated
    assert store.applied_patches == [(EntityKind.HEALTH_SYSTEM, "hs-1", {"city": "Cincinnati"})]


@pytest.mark.asyncio
async def test_update_missing_record_raises(store: InMemoryRecordStore) -> None:
    with pytest.raises(StorageWriteError) as exc_info:
        await store.update(EntityKind.ATTENDEE, "a-404", {"email": "x@y.org"})

    assert exc_info.value.code == "STORAGE_WRITE"
    assert store.applied_patches == []


@pytest.mark.asyncio
async def test_clear(store: InMemoryRecordStore) -> None:
    store.clear()

    assert await store.list(EntityKind.HEALTH_SYSTEM) == []


class TestLocalRecord:
    def test_kind_is_set_at_construction(self) -> None:
        assert LocalRecord.health_system("1", "Mercy").kind == EntityKind.HEALTH_SYSTEM
        assert LocalRecord.attendee("1", "Jon", "Smith").kind == EntityKind.ATTENDEE
        assert LocalRecord.conference("1", "HLTH").kind == EntityKind.CONFERENCE

    def test_id_is_stringified(self) -> None:
        assert LocalRecord.health_system(42, "Mercy").id == "42"

    def test_with_fields_returns_copy(self) -> None:
        record = LocalRecord.health_system("1", "Mercy", state="OH")

        updated = record.with_fields({"state": "KY"})

        assert record.get("state") == "OH"
        assert updated.get("state") == "KY"

    def test_get_default(self) -> None:
        assert LocalRecord.health_system("1", "Mercy").get("zip", "n/a") == "n/a"
