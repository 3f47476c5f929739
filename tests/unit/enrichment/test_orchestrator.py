"""Tests for EnrichmentOrchestrator."""

import pytest

from src.enrichment.directory import DirectoryCache
from src.enrichment.exceptions import StorageWriteError, TransientFetchError
from src.enrichment.models import (
    AlternativeMatch,
    EntityKind,
    FailureReason,
    LocalRecord,
)
from src.enrichment.resolution import (
    NO_MATCH_MESSAGE,
    EnrichmentOrchestrator,
    HealthSystemResolver,
)
from src.enrichment.storage import InMemoryRecordStore
from tests.unit.enrichment.fakes import FakeDirectoryService, make_directory_record

MERCY = make_directory_record(
    101,
    "Mercy Health",
    website="https://mercy.com",
    address="1701 Mercy Health Pl",
    city="Cincinnati",
    state="OH",
    zip="45237",
    emr_vendor_ambulatory="Epic",
    net_patient_revenue=5_200_000_000.0,
    num_beds=4500,
)


class FailingResolver(HealthSystemResolver):
    """Raises for configured record names."""

    def __init__(self, *args, failures=None, **kwargs):
        super().__init__(*args, **kwargs)
        self._failures = failures or {}

    async def find_best_match(self, query):
        if query in self._failures:
            raise self._failures[query]
        return await super().find_best_match(query)


def make_orchestrator(service, concurrency=1, failures=None):
    resolver = FailingResolver(DirectoryCache(service), service, failures=failures)
    return EnrichmentOrchestrator(resolver, concurrency=concurrency)


class TestEnrichAll:
    @pytest.mark.asyncio
    async def test_empty_input_makes_no_external_calls(self):
        service = FakeDirectoryService([MERCY])

        results = await make_orchestrator(service).enrich_all([])

        assert results == []
        assert service.fetch_calls == 0
        assert service.search_calls == []

    @pytest.mark.asyncio
    async def test_successful_match_maps_directory_attributes(self):
        service = FakeDirectoryService([MERCY])
        record = LocalRecord.health_system("hs-1", "mercy health")

        [result] = await make_orchestrator(service).enrich_all([record])

        assert result.success is True
        assert result.record_id == "hs-1"
        assert result.confidence == 1.0
        assert result.patch.to_dict() == {
            "definitive_id": "101",
            "website": "https://mercy.com",
            "address": "1701 Mercy Health Pl",
            "city": "Cincinnati",
            "state": "OH",
            "zip": "45237",
            "ambulatory_ehr": "Epic",
            "net_patient_revenue": 5_200_000_000.0,
            "number_of_beds": 4500,
            "number_of_hospitals_in_network": 1,
        }

    @pytest.mark.asyncio
    async def test_hospital_count_from_directory(self):
        record = make_directory_record(5, "Mercy Network", num_hospitals=12)
        service = FakeDirectoryService([record])

        [result] = await make_orchestrator(service).enrich_all(
            [LocalRecord.health_system("hs-1", "Mercy Network")]
        )

        assert result.patch.number_of_hospitals_in_network == 12

    @pytest.mark.asyncio
    async def test_low_confidence_falls_back_to_live_search(self):
        unrelated = make_directory_record(1, "Qqqqqqqqqqqqqqqq")
        hits = [
            make_directory_record(2, "Mercy Health Partners"),
            make_directory_record(3, "Mercy Health West"),
        ]
        service = FakeDirectoryService([unrelated], search_results={"Mercy Health": hits})

        [result] = await make_orchestrator(service).enrich_all(
            [LocalRecord.health_system("hs-1", "Mercy Health")]
        )

        assert result.success is True
        assert result.patch.definitive_id == "2"
        assert result.confidence == 0.6
        assert result.alternatives == (AlternativeMatch(3, "Mercy Health West", 0.5),)

    @pytest.mark.asyncio
    async def test_threshold_is_exclusive(self):
        # similarity("abcde", "abxyz") == 0.4 exactly
        service = FakeDirectoryService([make_directory_record(1, "abxyz")])

        [result] = await make_orchestrator(service).enrich_all(
            [LocalRecord.health_system("hs-1", "abcde")]
        )

        assert result.success is False
        assert result.failure_reason == FailureReason.NO_MATCH
        assert service.search_calls == [("abcde", 20, "Name asc")]

    @pytest.mark.asyncio
    async def test_no_match_carries_resolver_alternatives(self):
        service = FakeDirectoryService(
            [
                make_directory_record(1, "Qqqqqqqqqqqqqqqq"),
                make_directory_record(2, "Wwwwwwwwwwwwwwww"),
            ],
            search_results={},
        )

        [result] = await make_orchestrator(service).enrich_all(
            [LocalRecord.health_system("hs-1", "Mercy Health")]
        )

        assert result.success is False
        assert result.error == NO_MATCH_MESSAGE
        assert result.confidence == 0.0
        assert result.patch is None
        assert result.alternatives == (AlternativeMatch(2, "Wwwwwwwwwwwwwwww", 0.0),)

    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort_batch(self):
        service = FakeDirectoryService([MERCY])
        records = [
            LocalRecord.health_system("hs-1", "Mercy Health"),
            LocalRecord.health_system("hs-2", "Broken"),
            LocalRecord.health_system("hs-3", "Mercy Health"),
        ]
        orchestrator = make_orchestrator(service, failures={"Broken": RuntimeError("boom")})

        results = await orchestrator.enrich_all(records)

        assert [r.record_id for r in results] == ["hs-1", "hs-2", "hs-3"]
        assert [r.success for r in results] == [True, False, True]
        assert results[1].error == "boom"
        assert results[1].failure_reason == FailureReason.ERROR

    @pytest.mark.asyncio
    async def test_fetch_failure_reason(self):
        service = FakeDirectoryService([MERCY])
        error = TransientFetchError("directory", "HTTP 503")
        orchestrator = make_orchestrator(service, failures={"Mercy Health": error})

        [result] = await orchestrator.enrich_all([LocalRecord.health_system("hs-1", "Mercy Health")])

        assert result.success is False
        assert result.failure_reason == FailureReason.FETCH_FAILED
        assert result.error == "directory request failed: HTTP 503"

    @pytest.mark.asyncio
    async def test_non_health_system_records_are_rejected(self):
        service = FakeDirectoryService([MERCY])

        [result] = await make_orchestrator(service).enrich_all(
            [LocalRecord.attendee("a-1", "Jon", "Smith")]
        )

        assert result.success is False
        assert result.failure_reason == FailureReason.UNSUPPORTED_KIND
        assert service.fetch_calls == 0

    @pytest.mark.asyncio
    async def test_concurrent_enrichment_preserves_order(self):
        records = [make_directory_record(i, f"Hospital {name}") for i, name in enumerate("ABCDEF")]
        service = FakeDirectoryService(records)
        local = [LocalRecord.health_system(f"hs-{n}", f"Hospital {n}") for n in "FEDCBA"]

        results = await make_orchestrator(service, concurrency=3).enrich_all(local)

        assert [r.record_id for r in results] == [f"hs-{n}" for n in "FEDCBA"]
        assert [r.patch.definitive_id for r in results] == ["5", "4", "3", "2", "1", "0"]
        assert service.fetch_calls == 1

    def test_concurrency_must_be_positive(self):
        service = FakeDirectoryService()
        resolver = HealthSystemResolver(DirectoryCache(service), service)

        with pytest.raises(ValueError):
            EnrichmentOrchestrator(resolver, concurrency=0)


class TestApplyResults:
    @pytest.mark.asyncio
    async def test_persists_only_successful_patches(self):
        service = FakeDirectoryService([MERCY], search_results={})
        mercy = LocalRecord.health_system("hs-1", "Mercy Health")
        unknown = LocalRecord.health_system("hs-2", "Qqqqqqqqqqqqqqqqqqqq")
        store = InMemoryRecordStore([mercy, unknown])
        orchestrator = make_orchestrator(service)

        results = await orchestrator.enrich_all([mercy, unknown])
        persisted = await orchestrator.apply_results(results, store)

        assert persisted == ["hs-1"]
        updated = await store.get(EntityKind.HEALTH_SYSTEM, "hs-1")
        assert updated.get("definitive_id") == "101"
        assert updated.get("city") == "Cincinnati"
        assert updated.name == "Mercy Health"
        assert (await store.get(EntityKind.HEALTH_SYSTEM, "hs-2")).get("definitive_id") is None

    @pytest.mark.asyncio
    async def test_write_failure_propagates_after_earlier_writes(self):
        service = FakeDirectoryService([MERCY])
        first = LocalRecord.health_system("hs-1", "Mercy Health")
        missing = LocalRecord.health_system("hs-404", "Mercy Health")
        store = InMemoryRecordStore([first])
        orchestrator = make_orchestrator(service)

        results = await orchestrator.enrich_all([first, missing])

        with pytest.raises(StorageWriteError):
            await orchestrator.apply_results(results, store)
        assert [record_id for _, record_id, _ in store.applied_patches] == ["hs-1"]
