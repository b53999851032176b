"""
Shared fixtures for the BudgetFlow test suite.

No real API calls in tests: storage is in-memory (or a tmp_path JSON store),
identity and Gemini are replaced by in-process fakes.
"""

import datetime as dt
from decimal import Decimal

import pytest

from budgetflow.audit import AuditLogger
from budgetflow.models.finance import (
    PaymentMethod,
    Transaction,
    TransactionType,
)
from budgetflow.services.storage import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
    LedgerRepositories,
)


@pytest.fixture
def make_transaction():
    """Factory for transactions with sensible defaults."""

    def _make(
        amount="10",
        transaction_type=TransactionType.EXPENSE,
        payment_method=PaymentMethod.ONLINE,
        on="2024-01-15",
        category_id="c3",
        category_name=None,
        user_id="u1",
        note="",
    ) -> Transaction:
        return Transaction(
            user_id=user_id,
            amount=Decimal(str(amount)),
            type=transaction_type,
            category_id=category_id,
            category_name=category_name,
            date=dt.date.fromisoformat(on) if isinstance(on, str) else on,
            note=note,
            payment_method=payment_method,
        )

    return _make


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def repositories(store):
    return LedgerRepositories(store)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)
