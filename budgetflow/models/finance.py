"""
Core Data Models for BudgetFlow

These models define the schemas for every record kept in the record store
and for the derived views computed from them. They are designed to:
1. Enforce type safety at runtime
2. Be serializable to plain JSON for whole-collection storage
3. Keep amounts as Decimal so recomputation is exact

Amounts are always stored positive; the transaction type decides the sign
during aggregation.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


SYSTEM_USER_ID = "system"

# Fallback label used when a transaction references a category that no longer exists
UNKNOWN_CATEGORY = "Unknown"
# Fallback label used by aggregation when a transaction carries no category name
OTHER_CATEGORY = "Other"


def generate_id() -> str:
    """Process-unique identifier for new records."""
    return uuid4().hex


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction (and of the category it belongs to)."""
    INCOME = "income"
    EXPENSE = "expense"


class PaymentMethod(str, Enum):
    """Payment channel. Only cash transactions move the physical wallet."""
    CASH = "cash"
    ONLINE = "online"


class InvestmentType(str, Enum):
    FD = "FD"
    MUTUAL_FUND = "Mutual Fund"
    STOCK = "Stock"
    GOLD = "Gold"
    REAL_ESTATE = "Real Estate"
    CRYPTO = "Crypto"
    OTHER = "Other"


# =============================================================================
# STORED ENTITIES
# =============================================================================

class User(BaseModel):
    """
    An application user.

    `password_hash` is only used by the legacy local identity path. Use
    `sanitized()` before handing a user to the session or the UI.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=generate_id)
    email: str = Field(default="", max_length=320)
    created_at: dt.datetime = Field(default_factory=_utcnow)
    password_hash: Optional[str] = None

    def sanitized(self) -> "User":
        return self.model_copy(update={"password_hash": None})


class Category(BaseModel):
    """A transaction category owned by a user or by the system."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=generate_id)
    user_id: str = SYSTEM_USER_ID
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType


DEFAULT_CATEGORIES: list[Category] = [
    Category(id="c1", name="Salary", type=TransactionType.INCOME),
    Category(id="c2", name="Freelance", type=TransactionType.INCOME),
    Category(id="c3", name="Food & Dining", type=TransactionType.EXPENSE),
    Category(id="c4", name="Transportation", type=TransactionType.EXPENSE),
    Category(id="c5", name="Utilities", type=TransactionType.EXPENSE),
    Category(id="c6", name="Housing", type=TransactionType.EXPENSE),
    Category(id="c7", name="Entertainment", type=TransactionType.EXPENSE),
    Category(id="c8", name="Healthcare", type=TransactionType.EXPENSE),
    Category(id="c9", name="Shopping", type=TransactionType.EXPENSE),
    Category(id="c10", name="Groceries", type=TransactionType.EXPENSE),
]


class Transaction(BaseModel):
    """
    A single income or expense entry.

    Transactions are immutable once created; they can only be deleted.
    `category_name` is not persisted meaningfully, it is filled in by
    hydration before display and aggregation.
    """

    id: str = Field(default_factory=generate_id)
    user_id: str
    amount: Decimal = Field(..., gt=0, description="Always positive")
    type: TransactionType
    category_id: str
    category_name: Optional[str] = None
    date: dt.date = Field(..., description="Calendar date (YYYY-MM-DD)")
    note: str = ""
    payment_method: PaymentMethod = PaymentMethod.ONLINE
    created_at: dt.datetime = Field(default_factory=_utcnow)

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type == TransactionType.INCOME else -self.amount


class Investment(BaseModel):
    """A holding in the investment portfolio. Never part of liquidity."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=generate_id)
    user_id: str
    name: str = Field(..., min_length=1, max_length=200)
    type: InvestmentType = InvestmentType.MUTUAL_FUND
    amount: Decimal = Field(..., gt=0)
    date: dt.date = Field(default_factory=dt.date.today)


class AllocationItem(BaseModel):
    """A planned special expense inside a monthly allocation."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=generate_id)
    label: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0)


class MonthlyAllocation(BaseModel):
    """
    Special allocations for one user and one calendar month.

    The record is always replaced as a whole; an allocation whose last item
    was deleted keeps existing with an empty item list.
    """

    user_id: str
    month: str = Field(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$")
    items: list[AllocationItem] = Field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((item.amount for item in self.items), Decimal("0"))


# =============================================================================
# DERIVED VIEWS
# =============================================================================

class SummaryStats(BaseModel):
    """Income, expense and balance for one reporting month."""

    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")


class CategorySlice(BaseModel):
    """One bar of the expense-by-category breakdown."""

    name: str
    value: Decimal
    color_index: int = Field(..., ge=0)
    color: str


class DailyFlow(BaseModel):
    """Income and expense totals for one day of the reporting month."""

    day: str = Field(..., description="MM-DD")
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")


class MonthlySummary(BaseModel):
    month: str
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")


class LedgerSnapshot(BaseModel):
    """
    Every raw record of one user, loaded fresh from the record store.

    This is the only input of the derivation engine.
    """

    user_id: str
    cash_baseline: Decimal = Decimal("0")
    transactions: list[Transaction] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    allocations: list[MonthlyAllocation] = Field(default_factory=list)
    investments: list[Investment] = Field(default_factory=list)

    def allocation_for(self, month: str) -> Optional[MonthlyAllocation]:
        for allocation in self.allocations:
            if allocation.month == month:
                return allocation
        return None


class DashboardView(BaseModel):
    """
    Everything the presentation layer shows for one user and one month.

    Produced by a full recomputation after every read and every mutation.
    """

    user_id: str
    month: str
    stats: SummaryStats
    cash_baseline: Decimal
    current_cash: Decimal
    monthly_special_total: Decimal
    all_time_special_total: Decimal
    lifetime_liquidity: Decimal
    portfolio_value: Decimal
    transactions: list[Transaction] = Field(
        default_factory=list,
        description="Hydrated transactions of the month, newest first"
    )
    category_breakdown: list[CategorySlice] = Field(default_factory=list)
    daily_flow: list[DailyFlow] = Field(default_factory=list)
    allocation: Optional[MonthlyAllocation] = None
    investments: list[Investment] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)


class CsvExport(BaseModel):
    """A ready-to-download CSV export."""

    filename: str
    mime_type: str = "text/csv"
    content: str

    @field_validator('filename')
    @classmethod
    def validate_filename(cls, v: str) -> str:
        if not v.endswith(".csv"):
            raise ValueError("Export filename must end with .csv")
        return v
