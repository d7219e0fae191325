"""
Unit tests for record reconciliation against the local store
"""

import pytest

from core.exceptions import DatabaseError, MappingError, ReconciliationError
from models import Contact, Element, InventoryModel
from replication.mappings import CONTACTS, ELEMENTS, INVENTORY_MODELS, FieldMapping
from replication.reconciler import FAILED, INSERTED, UPDATED, Reconciler
from replication.report import collect_entity_counts
from tests.support import fetch_all, fetch_row


class TestReconcile:

    @pytest.mark.asyncio
    async def test_insert_then_update(self, store):
        reconciler = Reconciler(store)

        first = await reconciler.reconcile(ELEMENTS, {"id": "e1", "name": "Speaker"})
        second = await reconciler.reconcile(ELEMENTS, {"id": "e1", "name": "Speaker v2"})

        assert (first.outcome, second.outcome) == (INSERTED, UPDATED)
        row = await fetch_row(store, Element, "e1")
        assert row.name == "Speaker v2"
        assert row.raw_payload == {"id": "e1", "name": "Speaker v2"}

    @pytest.mark.asyncio
    async def test_reconciling_same_record_is_idempotent(self, store):
        reconciler = Reconciler(store)
        record = {
            "id": "e7",
            "name": "Truss",
            "documentNumber": "DOC-7",
            "definitionName": "Quote",
            "deleted": 0,
            "extra": {"nested": [1, 2]},
        }

        await reconciler.reconcile(ELEMENTS, record)
        once = await fetch_row(store, Element, "e7")

        for _ in range(3):
            await reconciler.reconcile(ELEMENTS, record)
        again = await fetch_row(store, Element, "e7")

        rows = await fetch_all(store, Element)
        assert len(rows) == 1
        for column in ("name", "document_number", "definition_name", "parent_name", "deleted", "raw_payload"):
            assert getattr(again, column) == getattr(once, column)
        assert again.created_at == once.created_at
        assert again.updated_at >= once.updated_at

    @pytest.mark.asyncio
    async def test_one_bad_record_does_not_affect_the_batch(self, store):
        reconciler = Reconciler(store)
        batch = [{"id": f"e{i}", "name": f"Element {i}"} for i in range(1, 11)]
        batch[4]["name"] = {"not": "a string"}

        results = [await reconciler.reconcile(ELEMENTS, record) for record in batch]

        assert sum(1 for r in results if r.ok) == 9
        failed = [r for r in results if not r.ok]
        assert len(failed) == 1
        assert failed[0].outcome == FAILED
        assert failed[0].remote_id == "e5"
        assert isinstance(failed[0].error, MappingError)
        assert await reconciler.count(ELEMENTS) == 9

    @pytest.mark.asyncio
    async def test_integer_too_wide_for_the_store_fails_the_record(self, store):
        unchecked = INVENTORY_MODELS._replace(
            detail_path=None,
            list_columns=None,
            fields=[FieldMapping("depreciationPeriod", "depreciation_period", lambda v: v)],
        )
        reconciler = Reconciler(store)

        result = await reconciler.reconcile(unchecked, {"id": "m1", "depreciationPeriod": 10 ** 20})
        after = await reconciler.reconcile(unchecked, {"id": "m2", "depreciationPeriod": 36})

        assert result.outcome == FAILED
        assert result.remote_id == "m1"
        assert isinstance(result.error, ReconciliationError)
        assert after.outcome == INSERTED
        assert (await fetch_row(store, InventoryModel, "m2")).depreciation_period == 36

    @pytest.mark.asyncio
    async def test_record_without_id_fails_without_raising(self, store):
        result = await Reconciler(store).reconcile(ELEMENTS, {"name": "orphan"})
        assert result.outcome == FAILED
        assert result.remote_id is None

    @pytest.mark.asyncio
    async def test_closed_store_raises_database_error(self, store):
        await store.close()
        with pytest.raises(DatabaseError):
            await Reconciler(store).reconcile(ELEMENTS, {"id": "e1", "name": "x"})


class TestTwoPhaseReconcile:

    @pytest.mark.asyncio
    async def test_list_phase_leaves_detail_pending(self, store):
        reconciler = Reconciler(store)

        await reconciler.reconcile(CONTACTS, {"id": "c1", "name": "Acme", "email": "ignored@list"})

        row = await fetch_row(store, Contact, "c1")
        assert row.detail_fetched is False
        assert row.detail_fetched_at is None
        # Only list columns are written in phase 1
        assert row.email is None

    @pytest.mark.asyncio
    async def test_detail_merge_keeps_existing_values_over_nulls(self, store):
        reconciler = Reconciler(store)
        await reconciler.reconcile(CONTACTS, {"id": "c1", "name": "Acme", "status": "active"})

        detail = {"id": "c1", "name": None, "status": None, "email": "ops@acme.test", "phone": "555"}
        result = await reconciler.reconcile(CONTACTS, detail, phase="detail")

        assert result.outcome == UPDATED
        row = await fetch_row(store, Contact, "c1")
        assert row.name == "Acme"
        assert row.status == "active"
        assert row.email == "ops@acme.test"
        assert row.detail_fetched is True
        assert row.detail_fetched_at is not None
        assert row.detail_payload == detail

    @pytest.mark.asyncio
    async def test_relisting_does_not_clobber_detail_columns(self, store):
        reconciler = Reconciler(store)
        await reconciler.reconcile(CONTACTS, {"id": "c1", "name": "Acme"})
        await reconciler.reconcile(CONTACTS, {"id": "c1", "email": "ops@acme.test"}, phase="detail")

        await reconciler.reconcile(CONTACTS, {"id": "c1", "name": "Acme Ltd"})

        row = await fetch_row(store, Contact, "c1")
        assert row.name == "Acme Ltd"
        assert row.email == "ops@acme.test"
        assert row.detail_fetched is True
        assert row.detail_payload["email"] == "ops@acme.test"
        assert row.raw_payload == {"id": "c1", "name": "Acme Ltd"}

    @pytest.mark.asyncio
    async def test_pending_ids_follow_creation_order(self, store):
        reconciler = Reconciler(store)
        for remote_id in ("c3", "c1", "c2"):
            await reconciler.reconcile(CONTACTS, {"id": remote_id, "name": remote_id})
        await reconciler.reconcile(CONTACTS, {"id": "c1"}, phase="detail")

        assert await reconciler.pending_detail_ids(CONTACTS) == ["c3", "c2"]
        assert await reconciler.pending_detail_ids(CONTACTS, limit=1) == ["c3"]
        assert await reconciler.detail_done_ids(CONTACTS, ["c1", "c2", "c9"]) == {"c1"}
        assert await reconciler.count(CONTACTS, detail_fetched=True) == 1
        assert await reconciler.count(CONTACTS) == 3

    @pytest.mark.asyncio
    async def test_missing_rows_leave_backlog_until_listed_again(self, store):
        reconciler = Reconciler(store)
        await reconciler.reconcile(CONTACTS, {"id": "c1", "name": "Gone"})
        await reconciler.reconcile(CONTACTS, {"id": "c2", "name": "Here"})

        await reconciler.mark_missing(CONTACTS, "c1")
        assert await reconciler.pending_detail_ids(CONTACTS) == ["c2"]

        await reconciler.reconcile(CONTACTS, {"id": "c1", "name": "Back"})
        assert await reconciler.pending_detail_ids(CONTACTS) == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_detail_done_ids_is_empty_for_flat_collections(self, store):
        reconciler = Reconciler(store)
        await reconciler.reconcile(ELEMENTS, {"id": "e1", "name": "x"})
        assert await reconciler.detail_done_ids(ELEMENTS, ["e1"]) == set()

    @pytest.mark.asyncio
    async def test_missing_rows_are_not_reported_as_pending(self, store):
        reconciler = Reconciler(store)
        for remote_id in ("c1", "c2", "c3"):
            await reconciler.reconcile(CONTACTS, {"id": remote_id, "name": remote_id})
        await reconciler.reconcile(CONTACTS, {"id": "c1"}, phase="detail")
        await reconciler.mark_missing(CONTACTS, "c2")

        assert await reconciler.count_pending_details(CONTACTS) == 1

        counts = {c.entity_type: c for c in await collect_entity_counts(reconciler)}
        assert counts["contacts"].rows == 3
        assert counts["contacts"].detail_fetched == 1
        assert counts["contacts"].detail_pending == 1
        assert counts["elements"].detail_pending is None
