"""Unit tests for VersionOrchestrator.

Covers version allocation, promotion, derived latest flags, conflict
retries and the store-first write order.
"""

import asyncio
from typing import Any

import pytest
from prometheus_client import REGISTRY

from orderledger.config.models.versioning import VersioningConfig
from orderledger.db.errors import ConflictError, ConnectionError
from orderledger.versioning.enums import VersionStatus
from orderledger.versioning.errors import (
    FieldViolation,
    RecordNotFoundError,
    SchemaNotFoundError,
    ValidationFailureError,
    VersionConflictError,
)
from orderledger.versioning.models import IndexEntry, VersionedRecord
from orderledger.versioning.orchestrator import VersionOrchestrator
from orderledger.versioning.schema import FieldValidator, StaticSchemaResolver
from orderledger.versioning.stores.inmemory import InMemoryVersionIndex, InMemoryVersionStore

D = VersionStatus.DRAFT
F = VersionStatus.FINAL

FAST_RETRIES = VersioningConfig(
    max_conflict_retries=20,
    conflict_backoff_base_seconds=0.0,
    conflict_backoff_max_seconds=0.0,
)


class InterleavingVersionStore(InMemoryVersionStore):
    """Yields to the event loop between reading the highest version and returning it."""

    async def get_highest_version(self, record_id: str) -> VersionedRecord | None:
        highest = await super().get_highest_version(record_id)
        await asyncio.sleep(0)
        return highest


class AlwaysConflictingStore(InMemoryVersionStore):
    """Every append loses the race."""

    def __init__(self) -> None:
        super().__init__()
        self.append_calls = 0

    async def append(self, record: VersionedRecord) -> VersionedRecord:
        self.append_calls += 1
        raise ConflictError(f"Duplicate version {record.version_number}")


class FlakyVersionIndex(InMemoryVersionIndex):
    """Index whose writes fail while `failing` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.failing = False

    async def add(self, entry: IndexEntry) -> IndexEntry:
        if self.failing:
            raise ConnectionError("index unavailable")
        return await super().add(entry)


class RejectingValidator(FieldValidator):
    """Rejects payloads without a delivery location."""

    def __init__(self) -> None:
        self.calls: list[tuple[dict[str, Any], str]] = []

    async def validate(self, payload: dict[str, Any], schema_id: str) -> list[FieldViolation]:
        self.calls.append((payload, schema_id))
        if not payload.get("delivery_locations"):
            return [FieldViolation(field="delivery_locations", message="required")]
        return []


@pytest.fixture
def store() -> InMemoryVersionStore:
    """Create a fresh in-memory version store."""
    return InMemoryVersionStore()


@pytest.fixture
def index() -> InMemoryVersionIndex:
    """Create a fresh in-memory version index."""
    return InMemoryVersionIndex()


@pytest.fixture
def orchestrator(store, index) -> VersionOrchestrator:
    """Create an orchestrator over in-memory stores."""
    return VersionOrchestrator(
        store, index, StaticSchemaResolver("v1.0.0"), config=FAST_RETRIES
    )


async def assert_store_and_index_match(store, index, record_id: str) -> None:
    store_keys = {r.key for r in await store.list_all(record_id)}
    index_keys = {e.key for e in await index.list_all(record_id)}
    assert store_keys == index_keys


class TestCreate:
    """Tests for VersionOrchestrator.create."""

    @pytest.mark.asyncio
    async def test_first_version_is_one(self, orchestrator) -> None:
        """A new record starts at version 1 with no previous link."""
        response = await orchestrator.create("ORD-00001", {"qty": 1}, "alice")

        assert response.version_number == 1
        assert response.previous_version_number is None
        assert response.status == D
        assert response.schema_version_id == "v1.0.0"
        assert response.is_latest is True

    @pytest.mark.asyncio
    async def test_sequential_versions_link_to_previous(self, orchestrator) -> None:
        """Each create is highest + 1 and links to the prior highest."""
        for _ in range(3):
            response = await orchestrator.create("ORD-00001", {"qty": 1}, "alice")

        assert response.version_number == 3
        assert response.previous_version_number == 2

    @pytest.mark.asyncio
    async def test_final_flag_sets_status(self, orchestrator) -> None:
        """is_final writes a FINAL version."""
        response = await orchestrator.create("ORD-00001", {}, "alice", is_final=True)
        assert response.status == F

    @pytest.mark.asyncio
    async def test_record_id_normalized(self, orchestrator) -> None:
        """Record ids are stripped and upper-cased."""
        response = await orchestrator.create("  ord-00007 ", {}, "alice")
        assert response.record_id == "ORD-00007"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"tags": {"fragile", "urgent"}},
            {"shipped_at": object()},
            {"weight_kg": float("nan")},
        ],
        ids=["set", "object", "nan"],
    )
    async def test_non_json_payload_rejected(self, orchestrator, store, index, payload) -> None:
        """Payloads that cannot be stored as JSON fail before any write."""
        with pytest.raises(ValidationFailureError) as exc_info:
            await orchestrator.create("ORD-00001", payload, "alice")

        assert exc_info.value.violations[0].field == "payload"
        assert await store.list_record_ids() == []
        assert await index.list_record_ids() == []

    @pytest.mark.asyncio
    async def test_draft_without_record_id_gets_generated_id(self, orchestrator) -> None:
        """Drafts with no usable id get a fresh ORD-NNNNN id."""
        response = await orchestrator.create(None, {}, "alice")

        assert response.record_id.startswith("ORD-")
        assert len(response.record_id) == len("ORD-00000")
        assert response.version_number == 1

    @pytest.mark.asyncio
    async def test_final_with_invalid_record_id_rejected(self, orchestrator, store) -> None:
        """FINAL saves need a well-formed record id."""
        with pytest.raises(ValidationFailureError) as exc_info:
            await orchestrator.create("bogus", {}, "alice", is_final=True)

        assert exc_info.value.violations[0].field == "record_id"
        assert await store.list_record_ids() == []

    @pytest.mark.asyncio
    async def test_no_active_schema(self, store, index) -> None:
        """Creation fails before writing when no schema is active."""
        orchestrator = VersionOrchestrator(store, index, StaticSchemaResolver(None))

        with pytest.raises(SchemaNotFoundError):
            await orchestrator.create("ORD-00001", {}, "alice")

        assert await store.list_record_ids() == []

    @pytest.mark.asyncio
    async def test_validator_runs_for_final_only(self, store, index) -> None:
        """Field validation is a pre-commit hook for FINAL creates."""
        validator = RejectingValidator()
        orchestrator = VersionOrchestrator(
            store, index, StaticSchemaResolver("v2"), validator=validator
        )

        await orchestrator.create("ORD-00001", {}, "alice")
        assert validator.calls == []

        with pytest.raises(ValidationFailureError) as exc_info:
            await orchestrator.create("ORD-00001", {}, "alice", is_final=True)
        assert exc_info.value.violations == [
            FieldViolation(field="delivery_locations", message="required")
        ]
        assert validator.calls == [({}, "v2")]
        assert len(await store.list_all("ORD-00001")) == 1

        accepted = await orchestrator.create(
            "ORD-00001", {"delivery_locations": ["NYC"]}, "alice", is_final=True
        )
        assert accepted.version_number == 2

    @pytest.mark.asyncio
    async def test_caller_payload_not_shared(self, orchestrator) -> None:
        """Mutating the caller's dict after create does not alter the version."""
        payload = {"lines": [{"sku": "A"}]}
        await orchestrator.create("ORD-00001", payload, "alice")
        payload["lines"].append({"sku": "B"})

        latest = await orchestrator.get_latest("ORD-00001")
        assert latest.payload == {"lines": [{"sku": "A"}]}

    @pytest.mark.asyncio
    async def test_store_and_index_match(self, orchestrator, store, index) -> None:
        """Every create writes the same key to store and index."""
        for _ in range(3):
            await orchestrator.create("ORD-00001", {}, "alice")
        await orchestrator.create("ORD-00001", {}, "alice", is_final=True)

        await assert_store_and_index_match(store, index, "ORD-00001")

    @pytest.mark.asyncio
    async def test_counts_created_versions(self, orchestrator) -> None:
        """Successful creates are counted by status and operation."""
        labels = {"status": "FINAL", "operation": "create"}
        before = REGISTRY.get_sample_value("orderledger_versions_created_total", labels) or 0.0

        await orchestrator.create("ORD-00001", {}, "alice", is_final=True)

        after = REGISTRY.get_sample_value("orderledger_versions_created_total", labels)
        assert after == before + 1


class TestConcurrentCreate:
    """Version numbers stay gapless under concurrent writers."""

    @pytest.mark.asyncio
    async def test_concurrent_creates_are_gapless(self, index) -> None:
        """N interleaved creates yield exactly versions 1..N."""
        store = InterleavingVersionStore()
        orchestrator = VersionOrchestrator(
            store, index, StaticSchemaResolver("v1.0.0"), config=FAST_RETRIES
        )
        n = 10

        responses = await asyncio.gather(
            *(orchestrator.create("ORD-00001", {"writer": i}, f"user-{i}") for i in range(n))
        )

        assert sorted(r.version_number for r in responses) == list(range(1, n + 1))
        stored = await store.list_all("ORD-00001")
        assert [r.version_number for r in stored] == list(range(1, n + 1))
        for record in stored[1:]:
            assert record.previous_version_number == record.version_number - 1
        await assert_store_and_index_match(store, index, "ORD-00001")

    @pytest.mark.asyncio
    async def test_retries_exhausted_raises_version_conflict(self, index) -> None:
        """Giving up after the configured retries raises a retryable conflict."""
        store = AlwaysConflictingStore()
        config = VersioningConfig(
            max_conflict_retries=2,
            conflict_backoff_base_seconds=0.0,
            conflict_backoff_max_seconds=0.0,
        )
        orchestrator = VersionOrchestrator(
            store, index, StaticSchemaResolver("v1.0.0"), config=config
        )

        with pytest.raises(VersionConflictError) as exc_info:
            await orchestrator.create("ORD-00001", {}, "alice")

        assert exc_info.value.attempts == 3
        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value, ConflictError)
        assert store.append_calls == 3
        assert await index.list_all("ORD-00001") == []


class TestIndexFailure:
    """The store is authoritative when the index write fails."""

    @pytest.mark.asyncio
    async def test_index_failure_does_not_fail_create(self, store) -> None:
        """A failed index write after a successful append is not raised."""
        index = FlakyVersionIndex()
        orchestrator = VersionOrchestrator(store, index, StaticSchemaResolver("v1.0.0"))
        index.failing = True

        response = await orchestrator.create("ORD-00001", {}, "alice")

        assert response.version_number == 1
        assert await store.get_by_key("ORD-00001", 1) is not None
        assert await index.list_all("ORD-00001") == []

    @pytest.mark.asyncio
    async def test_history_repairs_missing_index(self, store) -> None:
        """get_history rebuilds index entries from the store when missing."""
        index = FlakyVersionIndex()
        orchestrator = VersionOrchestrator(store, index, StaticSchemaResolver("v1.0.0"))
        index.failing = True
        await orchestrator.create("ORD-00001", {}, "alice")
        await orchestrator.create("ORD-00001", {}, "alice", is_final=True)
        index.failing = False

        history = await orchestrator.get_history("ORD-00001")

        assert history.total == 2
        assert [v.version_number for v in history.versions] == [1, 2]
        await assert_store_and_index_match(store, index, "ORD-00001")

    @pytest.mark.asyncio
    async def test_unindexed_top_version_not_hidden(self, store) -> None:
        """A version missing from the index still counts for latest and history."""
        index = FlakyVersionIndex()
        orchestrator = VersionOrchestrator(store, index, StaticSchemaResolver("v1.0.0"))
        for _ in range(3):
            await orchestrator.create("ORD-00001", {}, "alice")
        index.failing = True
        await orchestrator.create("ORD-00001", {}, "alice")

        assert (await orchestrator.get_specific("ORD-00001", 3)).is_latest is False
        assert (await orchestrator.get_specific("ORD-00001", 4)).is_latest is True

        # Index writes still failing: history is answered from the store
        history = await orchestrator.get_history("ORD-00001")
        assert history.total == 4
        assert [v.version_number for v in history.versions if v.is_latest] == [4]
        assert [e.version_number for e in await index.list_all("ORD-00001")] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_history_repairs_gap_in_middle(self, store) -> None:
        """A missing entry below the highest one is repaired on read."""
        index = FlakyVersionIndex()
        orchestrator = VersionOrchestrator(store, index, StaticSchemaResolver("v1.0.0"))
        await orchestrator.create("ORD-00001", {}, "alice")
        index.failing = True
        await orchestrator.create("ORD-00001", {}, "alice", is_final=True)
        index.failing = False
        await orchestrator.create("ORD-00001", {}, "alice")

        history = await orchestrator.get_history("ORD-00001")

        assert [v.version_number for v in history.versions] == [1, 2, 3]
        assert history.final_count == 1
        await assert_store_and_index_match(store, index, "ORD-00001")

    @pytest.mark.asyncio
    async def test_orphan_final_entry_left_out_of_history(self, orchestrator, store, index) -> None:
        """History lists store versions only; an orphan FINAL entry stays indexed."""
        await orchestrator.create("ORD-00001", {}, "alice")
        orphan = VersionedRecord(
            record_id="ORD-00001",
            version_number=2,
            previous_version_number=1,
            schema_version_id="v1.0.0",
            status=F,
            author="alice",
        )
        await index.add(IndexEntry.from_record(orphan))

        history = await orchestrator.get_history("ORD-00001")

        assert [v.version_number for v in history.versions] == [1]
        assert history.versions[0].is_latest is True
        assert await index.get_by_key("ORD-00001", 2) is not None


class TestReads:
    """Tests for get_latest, get_specific and get_history."""

    @pytest.mark.asyncio
    async def test_get_latest_returns_max(self, orchestrator) -> None:
        """Latest is the highest version number, whatever its status."""
        await orchestrator.create("ORD-00001", {"v": 1}, "alice", is_final=True)
        await orchestrator.create("ORD-00001", {"v": 2}, "alice")

        latest = await orchestrator.get_latest("ORD-00001")
        assert latest.version_number == 2
        assert latest.payload == {"v": 2}
        assert latest.is_latest is True

    @pytest.mark.asyncio
    async def test_get_latest_missing_record(self, orchestrator) -> None:
        """Unknown records raise RecordNotFoundError."""
        with pytest.raises(RecordNotFoundError):
            await orchestrator.get_latest("ORD-99999")

    @pytest.mark.asyncio
    async def test_get_specific_derives_latest_flag(self, orchestrator) -> None:
        """is_latest is recomputed against the current highest version."""
        for _ in range(3):
            await orchestrator.create("ORD-00001", {}, "alice")

        assert (await orchestrator.get_specific("ORD-00001", 2)).is_latest is False
        assert (await orchestrator.get_specific("ORD-00001", 3)).is_latest is True

        await orchestrator.create("ORD-00001", {}, "alice")
        assert (await orchestrator.get_specific("ORD-00001", 3)).is_latest is False

    @pytest.mark.asyncio
    async def test_get_specific_missing_version(self, orchestrator) -> None:
        """A missing version raises RecordNotFoundError naming the version."""
        await orchestrator.create("ORD-00001", {}, "alice")

        with pytest.raises(RecordNotFoundError) as exc_info:
            await orchestrator.get_specific("ORD-00001", 5)
        assert exc_info.value.version_number == 5

    @pytest.mark.asyncio
    async def test_get_history_missing_record(self, orchestrator) -> None:
        """History of an unknown record raises RecordNotFoundError."""
        with pytest.raises(RecordNotFoundError):
            await orchestrator.get_history("ORD-99999")

    @pytest.mark.asyncio
    async def test_reads_normalize_record_id(self, orchestrator) -> None:
        """Lookups accept the same spellings create does."""
        await orchestrator.create(" ord-00001 ", {}, "alice")
        await orchestrator.create("ORD-00001", {}, "alice", is_final=True)

        assert (await orchestrator.get_latest("ord-00001")).version_number == 2
        assert (await orchestrator.get_specific(" Ord-00001", 1)).record_id == "ORD-00001"
        assert (await orchestrator.get_history("ord-00001 ")).total == 2
        assert len(await orchestrator.get_final_versions("ord-00001")) == 1

        promoted = await orchestrator.promote("  ord-00001", 1, "bob")
        assert promoted.record_id == "ORD-00001"
        assert promoted.version_number == 3

    @pytest.mark.asyncio
    async def test_get_final_versions(self, orchestrator) -> None:
        """Only FINAL versions are returned, ascending."""
        await orchestrator.create("ORD-00001", {}, "alice")
        await orchestrator.create("ORD-00001", {}, "alice", is_final=True)
        await orchestrator.create("ORD-00001", {}, "alice")
        await orchestrator.create("ORD-00001", {}, "alice", is_final=True)

        finals = await orchestrator.get_final_versions("ORD-00001")

        assert [(f.version_number, f.is_latest) for f in finals] == [(2, False), (4, True)]

    @pytest.mark.asyncio
    async def test_list_latest_records(self, orchestrator) -> None:
        """One summary per record with its latest version."""
        await orchestrator.create("ORD-00001", {}, "alice")
        await orchestrator.create("ORD-00001", {}, "alice", is_final=True)
        await orchestrator.create("ORD-00002", {}, "bob")

        summaries = {s.record_id: s for s in await orchestrator.list_latest_records()}

        assert set(summaries) == {"ORD-00001", "ORD-00002"}
        assert summaries["ORD-00001"].latest_version_number == 2
        assert summaries["ORD-00001"].status == F
        assert summaries["ORD-00002"].draft_versions == 1


class TestPromote:
    """Tests for VersionOrchestrator.promote."""

    @pytest.mark.asyncio
    async def test_promote_scenario(self, orchestrator, store, index) -> None:
        """Promoting draft 2 of three creates FINAL version 4 with its payload."""
        for i in range(1, 4):
            await orchestrator.create("ORD-00002", {"rev": i, "nested": {"k": [i]}}, "bob")
        source_before = await store.get_by_key("ORD-00002", 2)

        promoted = await orchestrator.promote("ORD-00002", 2, "alice", None)

        assert promoted.version_number == 4
        assert promoted.status == F
        assert promoted.previous_version_number == 3
        assert promoted.payload == source_before.payload
        assert promoted.schema_version_id == source_before.schema_version_id
        assert promoted.change_note == "Promoted from draft version 2"
        assert promoted.author == "alice"

        source_after = await store.get_by_key("ORD-00002", 2)
        assert source_after == source_before
        assert source_after.status == D

        history = await orchestrator.get_history("ORD-00002")
        assert history.total == 4
        assert history.draft_count == 3
        assert history.final_count == 1
        assert [v.is_latest for v in history.versions] == [False, False, False, True]
        await assert_store_and_index_match(store, index, "ORD-00002")

    @pytest.mark.asyncio
    async def test_promote_keeps_custom_change_note(self, orchestrator) -> None:
        """A supplied change note replaces the default."""
        await orchestrator.create("ORD-00001", {}, "alice")
        promoted = await orchestrator.promote("ORD-00001", 1, "alice", "approved")
        assert promoted.change_note == "approved"

    @pytest.mark.asyncio
    async def test_promote_final_rejected(self, orchestrator, store) -> None:
        """Promoting a FINAL version fails and creates nothing."""
        await orchestrator.create("ORD-00001", {}, "alice", is_final=True)

        with pytest.raises(ValidationFailureError):
            await orchestrator.promote("ORD-00001", 1, "alice")

        assert len(await store.list_all("ORD-00001")) == 1

    @pytest.mark.asyncio
    async def test_promote_missing_version(self, orchestrator) -> None:
        """Promoting an absent version raises RecordNotFoundError."""
        await orchestrator.create("ORD-00001", {}, "alice")

        with pytest.raises(RecordNotFoundError):
            await orchestrator.promote("ORD-00001", 7, "alice")
