"""Tests for the record store backends and the entity repositories."""

import datetime as dt
import json
from decimal import Decimal

import pytest

from budgetflow.models.audit import AuditEventBuilder
from budgetflow.models.finance import (
    AllocationItem,
    Category,
    Investment,
    MonthlyAllocation,
    TransactionType,
    User,
)
from budgetflow.services.storage import (
    Collection,
    InMemoryAuditStorage,
    InMemoryRecordStore,
    JsonFileRecordStore,
    JsonLinesAuditStorage,
    LedgerRepositories,
    StorageError,
)


pytestmark = pytest.mark.asyncio


class TestRecordStores:
    """Tests shared by the in-memory and JSON file backends."""

    @pytest.fixture(params=["memory", "json"])
    def backend(self, request, tmp_path):
        if request.param == "memory":
            return InMemoryRecordStore()
        return JsonFileRecordStore(tmp_path / "data")

    async def test_missing_collections_are_empty(self, backend):
        """Test the empty payload of list and map collections."""
        assert await backend.load(Collection.TRANSACTIONS) == []
        assert await backend.load(Collection.CASH_SETTINGS) == {}

    async def test_save_replaces_whole_collection(self, backend):
        """Test that save overwrites instead of merging."""
        await backend.save(Collection.INVESTMENTS, [{"id": "a"}, {"id": "b"}])
        await backend.save(Collection.INVESTMENTS, [{"id": "c"}])
        assert await backend.load(Collection.INVESTMENTS) == [{"id": "c"}]

    async def test_wrong_payload_shape_rejected(self, backend):
        """Test that a list collection cannot be saved as an object."""
        with pytest.raises(StorageError):
            await backend.save(Collection.TRANSACTIONS, {"id": "a"})
        with pytest.raises(StorageError):
            await backend.save(Collection.CASH_SETTINGS, [])

    async def test_loaded_payload_is_a_copy(self, backend):
        """Test that mutating a loaded payload does not change the store."""
        await backend.save(Collection.CASH_SETTINGS, {"u1": "10"})
        loaded = await backend.load(Collection.CASH_SETTINGS)
        loaded["u1"] = "999"
        assert await backend.load(Collection.CASH_SETTINGS) == {"u1": "10"}


class TestJsonFileRecordStore:
    """Tests specific to the file backend."""

    async def test_one_file_per_collection(self, tmp_path):
        """Test the on-disk layout."""
        store = JsonFileRecordStore(tmp_path)
        await store.save(Collection.CASH_SETTINGS, {"u1": "12.50"})
        path = tmp_path / "cash_settings.json"
        assert json.loads(path.read_text(encoding="utf-8")) == {"u1": "12.50"}
        assert not (tmp_path / "cash_settings.json.tmp").exists()

    async def test_corrupt_file_raises(self, tmp_path):
        """Test that unreadable JSON surfaces as StorageError."""
        (tmp_path / "transactions.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            await JsonFileRecordStore(tmp_path).load(Collection.TRANSACTIONS)

    async def test_audit_log_appends(self, tmp_path):
        """Test the JSON Lines audit log."""
        audit = JsonLinesAuditStorage(tmp_path)
        assert await audit.append_event(AuditEventBuilder.transaction_deleted("u1", "t1"))
        assert await audit.append_event(AuditEventBuilder.investment_deleted("u1", "i1"))
        events = await audit.get_recent_events(limit=10)
        assert {e.entity_id for e in events} == {"t1", "i1"}
        assert len((tmp_path / "audit.jsonl").read_text(encoding="utf-8").splitlines()) == 2

    async def test_in_memory_audit_newest_first(self):
        """Test that recent events come newest first."""
        audit = InMemoryAuditStorage()
        await audit.append_event(AuditEventBuilder.transaction_deleted("u1", "first"))
        await audit.append_event(AuditEventBuilder.transaction_deleted("u1", "second"))
        events = await audit.get_recent_events(limit=1)
        assert [e.entity_id for e in events] == ["second"]


class TestUserRepository:
    """Tests for user records and identity sync."""

    async def test_sync_creates_user(self, repositories):
        """Test that an unknown identity gets a record."""
        user = await repositories.users.sync_identity("uid-1", "a@example.com")
        assert user.id == "uid-1"
        assert user.email == "a@example.com"
        assert (await repositories.users.find_by_id("uid-1")) is not None

    async def test_sync_rekeys_user_found_by_email(self, repositories):
        """Test that an old record adopts the provider uid."""
        await repositories.users.save_user(
            User(id="legacy", email="a@example.com", password_hash="x")
        )
        user = await repositories.users.sync_identity("uid-1", "a@example.com")
        assert user.id == "uid-1"
        assert user.password_hash is None
        users = await repositories.users.list_all()
        assert [u.id for u in users] == ["uid-1"]
        # the stored record keeps its secret
        assert users[0].password_hash == "x"

    async def test_sync_is_idempotent(self, repositories):
        """Test that syncing twice does not duplicate the user."""
        await repositories.users.sync_identity("uid-1", "a@example.com")
        await repositories.users.sync_identity("uid-1", "a@example.com")
        assert len(await repositories.users.list_all()) == 1


class TestLedgerRepositories:
    """Tests for the per-entity repositories."""

    async def test_transactions_newest_first_and_scoped(self, repositories, make_transaction):
        """Test listing order and user scoping."""
        await repositories.transactions.add(make_transaction(on="2024-01-01"))
        await repositories.transactions.add(make_transaction(on="2024-03-01"))
        await repositories.transactions.add(make_transaction(on="2024-02-01"))
        await repositories.transactions.add(make_transaction(on="2024-02-02", user_id="u2"))

        listed = await repositories.transactions.list_for_user("u1")
        assert [t.date.isoformat() for t in listed] == ["2024-03-01", "2024-02-01", "2024-01-01"]

        ranged = await repositories.transactions.list_for_user(
            "u1", dt.date(2024, 1, 1), dt.date(2024, 2, 29)
        )
        assert len(ranged) == 2

    async def test_transaction_delete_is_scoped_to_user(self, repositories, make_transaction):
        """Test that a user cannot delete another user's transaction."""
        tx = await repositories.transactions.add(make_transaction(user_id="u2"))
        assert await repositories.transactions.delete("u1", tx.id) is False
        assert await repositories.transactions.delete("u2", tx.id) is True
        assert await repositories.transactions.list_for_user("u2") == []

    async def test_transaction_amount_survives_storage(self, repositories, make_transaction):
        """Test Decimal precision through the store."""
        await repositories.transactions.add(make_transaction("0.10"))
        listed = await repositories.transactions.list_for_user("u1")
        assert listed[0].amount == Decimal("0.10")

    async def test_malformed_record_is_skipped(self, store, repositories, make_transaction):
        """Test that one bad row does not hide the others."""
        good = make_transaction()
        await store.save(
            Collection.TRANSACTIONS,
            [good.model_dump(mode="json"), {"id": "broken", "user_id": "u1"}],
        )
        listed = await repositories.transactions.list_for_user("u1")
        assert [t.id for t in listed] == [good.id]

    async def test_writes_keep_malformed_records(self, store, repositories, make_transaction):
        """Test that a write by one user never drops another user's unreadable row."""
        legacy = {"id": "legacy", "user_id": "u2", "amount": "0", "type": "expense"}
        await store.save(Collection.TRANSACTIONS, [legacy])

        added = await repositories.transactions.add(make_transaction())
        assert legacy in await store.load(Collection.TRANSACTIONS)

        assert await repositories.transactions.delete("u1", added.id) is True
        assert await store.load(Collection.TRANSACTIONS) == [legacy]

    async def test_user_and_allocation_writes_keep_malformed_records(self, store, repositories):
        """Test the same guarantee for the users and allocations collections."""
        broken_user = {"id": "old", "email": None}
        broken_allocation = {"user_id": "u2", "month": "not-a-month"}
        await store.save(Collection.USERS, [broken_user])
        await store.save(Collection.ALLOCATIONS, [broken_allocation])

        await repositories.users.sync_identity("uid-1", "a@example.com")
        await repositories.allocations.save(MonthlyAllocation(user_id="u1", month="2024-01"))

        assert broken_user in await store.load(Collection.USERS)
        assert broken_allocation in await store.load(Collection.ALLOCATIONS)
        assert [u.id for u in await repositories.users.list_all()] == ["uid-1"]

    async def test_categories_include_defaults(self, repositories):
        """Test system defaults plus the user's own categories."""
        await repositories.categories.add(
            Category(user_id="u1", name="Pets", type=TransactionType.EXPENSE)
        )
        await repositories.categories.add(
            Category(user_id="u2", name="Boats", type=TransactionType.EXPENSE)
        )
        names = [c.name for c in await repositories.categories.list_for_user("u1")]
        assert names[:2] == ["Salary", "Freelance"]
        assert "Pets" in names
        assert "Boats" not in names
        assert len(names) == 11

    async def test_cash_baseline(self, store, repositories):
        """Test baseline storage and the zero default."""
        assert await repositories.cash.get_baseline("u1") == Decimal("0")
        await repositories.cash.set_baseline("u1", Decimal("-12.30"))
        assert await repositories.cash.get_baseline("u1") == Decimal("-12.30")
        await store.save(Collection.CASH_SETTINGS, {"u1": "garbage"})
        assert await repositories.cash.get_baseline("u1") == Decimal("0")

    async def test_allocation_upsert(self, repositories):
        """Test that saving the same month replaces the record."""
        first = MonthlyAllocation(
            user_id="u1",
            month="2024-01",
            items=[AllocationItem(label="Gift", amount=Decimal("50"))],
        )
        await repositories.allocations.save(first)
        await repositories.allocations.save(
            MonthlyAllocation(user_id="u1", month="2024-01", items=[])
        )
        await repositories.allocations.save(MonthlyAllocation(user_id="u1", month="2024-02"))

        stored = await repositories.allocations.get("u1", "2024-01")
        assert stored is not None
        assert stored.items == []
        assert len(await repositories.allocations.list_for_user("u1")) == 2
        assert await repositories.allocations.get("u2", "2024-01") is None

    async def test_investments(self, repositories):
        """Test investment add, list and scoped delete."""
        inv = await repositories.investments.add(
            Investment(user_id="u1", name="FD", amount=Decimal("1000"))
        )
        assert [i.id for i in await repositories.investments.list_for_user("u1")] == [inv.id]
        assert await repositories.investments.delete("u2", inv.id) is False
        assert await repositories.investments.delete("u1", inv.id) is True

    async def test_snapshot_on_json_backend(self, tmp_path, make_transaction):
        """Test a full snapshot through the file backend."""
        repos = LedgerRepositories(JsonFileRecordStore(tmp_path))
        await repos.transactions.add(make_transaction("5"))
        await repos.cash.set_baseline("u1", Decimal("100"))

        snapshot = await LedgerRepositories(JsonFileRecordStore(tmp_path)).load_snapshot("u1")
        assert snapshot.cash_baseline == Decimal("100")
        assert len(snapshot.transactions) == 1
        assert len(snapshot.categories) == 10
