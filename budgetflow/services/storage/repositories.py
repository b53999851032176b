"""
Entity Repositories

One small repository per entity type on top of the record store. Every
write is a whole-collection read-modify-write: load the collection, change
it in Python, save it back. Two sessions writing the same collection at the
same time race with last-writer-wins; that is an accepted limitation.

Repositories validate records with the pydantic models on the way in and out,
so the rest of the code never sees raw dicts. Rows that fail validation are
hidden from reads but written back untouched, so no write ever drops them.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Sequence, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from budgetflow.models.finance import (
    DEFAULT_CATEGORIES,
    Category,
    Investment,
    LedgerSnapshot,
    MonthlyAllocation,
    Transaction,
    User,
)
from budgetflow.services.storage.interface import Collection, RecordStoreInterface


logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class _CollectionRepository:
    """Shared load/save helpers for array collections."""

    collection: Collection

    def __init__(self, store: RecordStoreInterface):
        self._store = store

    async def _load(self, model: type[ModelT]) -> tuple[list[ModelT], list[Any]]:
        """Valid records, plus the raw rows that failed validation."""
        records = []
        malformed = []
        for raw in await self._store.load(self.collection):
            try:
                records.append(model.model_validate(raw))
            except ValidationError as e:
                logger.warning(
                    "malformed_record_skipped",
                    collection=self.collection.value,
                    error=str(e),
                )
                malformed.append(raw)
        return records, malformed

    async def _load_records(self, model: type[ModelT]) -> list[ModelT]:
        records, _ = await self._load(model)
        return records

    async def _save_records(
        self,
        records: list[BaseModel],
        malformed: Sequence[Any] = (),
    ) -> None:
        # Malformed rows go back exactly as they were read
        await self._store.save(
            self.collection,
            [record.model_dump(mode="json") for record in records] + list(malformed),
        )


class UserRepository(_CollectionRepository):
    collection = Collection.USERS

    async def list_all(self) -> list[User]:
        return await self._load_records(User)

    async def find_by_email(self, email: str) -> Optional[User]:
        for user in await self.list_all():
            if user.email == email:
                return user
        return None

    async def find_by_id(self, user_id: str) -> Optional[User]:
        for user in await self.list_all():
            if user.id == user_id:
                return user
        return None

    async def save_user(self, user: User) -> User:
        """Insert or replace a user (matched by id)."""
        users, malformed = await self._load(User)
        for idx, existing in enumerate(users):
            if existing.id == user.id:
                users[idx] = user
                break
        else:
            users.append(user)
        await self._save_records(users, malformed)
        return user

    async def sync_identity(self, uid: str, email: Optional[str]) -> User:
        """
        Make sure a user record exists for an identity-provider account.

        A record is matched by provider uid or by email. When an older record
        is found under a different id, it is re-keyed to the provider uid so
        the provider stays the canonical source of ids. Returns the sanitized
        user.
        """
        users, malformed = await self._load(User)
        user = next(
            (u for u in users if u.id == uid or (email and u.email == email)),
            None,
        )
        if user is None:
            user = User(id=uid, email=email or "")
            users.append(user)
            await self._save_records(users, malformed)
        elif user.id != uid:
            user.id = uid
            await self._save_records(users, malformed)
        return user.sanitized()


class CategoryRepository(_CollectionRepository):
    collection = Collection.CATEGORIES

    async def list_for_user(self, user_id: str) -> list[Category]:
        """System defaults first, then the user's own categories."""
        stored = await self._load_records(Category)
        defaults = [c.model_copy() for c in DEFAULT_CATEGORIES]
        return defaults + [c for c in stored if c.user_id == user_id]

    async def add(self, category: Category) -> Category:
        stored, malformed = await self._load(Category)
        stored.append(category)
        await self._save_records(stored, malformed)
        return category


class TransactionRepository(_CollectionRepository):
    collection = Collection.TRANSACTIONS

    async def list_for_user(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        """
        The user's transactions, newest date first.

        The date range is only applied when both ends are given; both ends
        are inclusive.
        """
        transactions = [
            t for t in await self._load_records(Transaction) if t.user_id == user_id
        ]
        transactions.sort(key=lambda t: t.date, reverse=True)

        if date_from and date_to:
            transactions = [t for t in transactions if date_from <= t.date <= date_to]

        return transactions

    async def add(self, transaction: Transaction) -> Transaction:
        stored, malformed = await self._load(Transaction)
        stored.append(transaction)
        await self._save_records(stored, malformed)
        return transaction

    async def delete(self, user_id: str, transaction_id: str) -> bool:
        stored, malformed = await self._load(Transaction)
        remaining = [
            t for t in stored
            if not (t.id == transaction_id and t.user_id == user_id)
        ]
        if len(remaining) == len(stored):
            return False
        await self._save_records(remaining, malformed)
        return True


class CashSettingsRepository:
    """The per-user cash baseline, kept as a map of user_id -> amount."""

    collection = Collection.CASH_SETTINGS

    def __init__(self, store: RecordStoreInterface):
        self._store = store

    async def get_baseline(self, user_id: str) -> Decimal:
        """Missing or unreadable values count as zero."""
        settings = await self._store.load(self.collection)
        raw = settings.get(user_id)
        if raw is None:
            return Decimal("0")
        try:
            value = Decimal(str(raw))
        except InvalidOperation:
            return Decimal("0")
        return value if value.is_finite() else Decimal("0")

    async def set_baseline(self, user_id: str, amount: Decimal) -> None:
        settings = await self._store.load(self.collection)
        settings[user_id] = str(amount)
        await self._store.save(self.collection, settings)


class InvestmentRepository(_CollectionRepository):
    collection = Collection.INVESTMENTS

    async def list_for_user(self, user_id: str) -> list[Investment]:
        return [i for i in await self._load_records(Investment) if i.user_id == user_id]

    async def add(self, investment: Investment) -> Investment:
        stored, malformed = await self._load(Investment)
        stored.append(investment)
        await self._save_records(stored, malformed)
        return investment

    async def delete(self, user_id: str, investment_id: str) -> bool:
        stored, malformed = await self._load(Investment)
        remaining = [
            i for i in stored
            if not (i.id == investment_id and i.user_id == user_id)
        ]
        if len(remaining) == len(stored):
            return False
        await self._save_records(remaining, malformed)
        return True


class AllocationRepository(_CollectionRepository):
    collection = Collection.ALLOCATIONS

    async def get(self, user_id: str, month: str) -> Optional[MonthlyAllocation]:
        for allocation in await self._load_records(MonthlyAllocation):
            if allocation.user_id == user_id and allocation.month == month:
                return allocation
        return None

    async def list_for_user(self, user_id: str) -> list[MonthlyAllocation]:
        return [
            a for a in await self._load_records(MonthlyAllocation)
            if a.user_id == user_id
        ]

    async def save(self, allocation: MonthlyAllocation) -> MonthlyAllocation:
        """Upsert the whole (user, month) record."""
        stored, malformed = await self._load(MonthlyAllocation)
        for idx, existing in enumerate(stored):
            if existing.user_id == allocation.user_id and existing.month == allocation.month:
                stored[idx] = allocation
                break
        else:
            stored.append(allocation)
        await self._save_records(stored, malformed)
        return allocation


class LedgerRepositories:
    """All repositories over one record store."""

    def __init__(self, store: RecordStoreInterface):
        self.store = store
        self.users = UserRepository(store)
        self.categories = CategoryRepository(store)
        self.transactions = TransactionRepository(store)
        self.cash = CashSettingsRepository(store)
        self.investments = InvestmentRepository(store)
        self.allocations = AllocationRepository(store)

    async def load_snapshot(self, user_id: str) -> LedgerSnapshot:
        """Read every raw record of one user, fresh from the store."""
        return LedgerSnapshot(
            user_id=user_id,
            cash_baseline=await self.cash.get_baseline(user_id),
            transactions=await self.transactions.list_for_user(user_id),
            categories=await self.categories.list_for_user(user_id),
            allocations=await self.allocations.list_for_user(user_id),
            investments=await self.investments.list_for_user(user_id),
        )
