"""
Derivation Engine

Pure functions that turn the raw records of one user into the figures the
dashboard shows. Nothing here touches storage or keeps state: callers load
a fresh LedgerSnapshot and recompute everything after every mutation.

DESIGN DECISION: derived values are never stored. The only user-settable
number is the cash baseline; current cash is always recomputed as

    current_cash = baseline + sum(cash income) - sum(cash expense)

so it can be reproduced from the records at any time.

All arithmetic is Decimal. Amounts are positive; the transaction type gives
the sign.
"""

import calendar
import re
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from budgetflow.models.finance import (
    OTHER_CATEGORY,
    UNKNOWN_CATEGORY,
    Category,
    CategorySlice,
    DailyFlow,
    DashboardView,
    Investment,
    LedgerSnapshot,
    MonthlyAllocation,
    MonthlySummary,
    PaymentMethod,
    SummaryStats,
    Transaction,
    TransactionType,
)


# Display palette for the category breakdown, assigned by sorted position
CATEGORY_COLORS = [
    "#3b82f6",
    "#ef4444",
    "#10b981",
    "#f59e0b",
    "#8b5cf6",
    "#ec4899",
    "#6366f1",
    "#14b8a6",
    "#f43f5e",
    "#84cc16",
]

MONTH_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")

ZERO = Decimal("0")


# =============================================================================
# MONTHS
# =============================================================================

def month_key(day: date) -> str:
    """The YYYY-MM month a date belongs to."""
    return f"{day.year:04d}-{day.month:02d}"


def month_bounds(month: str) -> tuple[date, date]:
    """
    First and last calendar day of a YYYY-MM month, both inclusive.

    Raises ValueError for anything that is not a valid YYYY-MM string.
    """
    match = MONTH_PATTERN.match(month or "")
    if not match:
        raise ValueError(f"Invalid month {month!r}, expected YYYY-MM")
    year, mon = int(match.group(1)), int(match.group(2))
    last_day = calendar.monthrange(year, mon)[1]
    return date(year, mon, 1), date(year, mon, last_day)


def filter_by_month(transactions: Iterable[Transaction], month: str) -> list[Transaction]:
    start, end = month_bounds(month)
    return [t for t in transactions if start <= t.date <= end]


# =============================================================================
# CASH AND LIQUIDITY
# =============================================================================

def cash_delta(transactions: Iterable[Transaction]) -> Decimal:
    """Net effect of all cash-channel transactions on the wallet."""
    return sum(
        (t.signed_amount for t in transactions if t.payment_method == PaymentMethod.CASH),
        ZERO,
    )


def current_cash(baseline: Decimal, transactions: Iterable[Transaction]) -> Decimal:
    return baseline + cash_delta(transactions)


def baseline_for_cash(new_amount: Decimal, transactions: Iterable[Transaction]) -> Decimal:
    """
    The baseline that makes current cash equal `new_amount`.

    Back-solves current_cash for the baseline over the full history, so
    current_cash(baseline_for_cash(x, txs), txs) == x exactly.
    """
    return new_amount - cash_delta(transactions)


def allocation_total(allocation: Optional[MonthlyAllocation]) -> Decimal:
    return allocation.total if allocation is not None else ZERO


def all_time_allocation_total(allocations: Iterable[MonthlyAllocation]) -> Decimal:
    return sum((a.total for a in allocations), ZERO)


def lifetime_liquidity(
    baseline: Decimal,
    transactions: Iterable[Transaction],
    allocations: Iterable[MonthlyAllocation],
) -> Decimal:
    """
    Money available across every channel and every month.

    baseline + all signed transactions - all special allocations.
    Investments are never part of it.
    """
    net = sum((t.signed_amount for t in transactions), ZERO)
    return baseline + net - all_time_allocation_total(allocations)


def portfolio_value(investments: Iterable[Investment]) -> Decimal:
    return sum((i.amount for i in investments), ZERO)


# =============================================================================
# MONTHLY FIGURES
# =============================================================================

def monthly_stats(
    transactions: Iterable[Transaction],
    monthly_special_total: Decimal = ZERO,
) -> SummaryStats:
    """
    Income, expense and balance of one month's transactions.

    Special allocations of the month are deducted from the balance.
    """
    income = ZERO
    expense = ZERO
    for t in transactions:
        if t.type == TransactionType.INCOME:
            income += t.amount
        else:
            expense += t.amount
    return SummaryStats(
        total_income=income,
        total_expense=expense,
        balance=income - expense - monthly_special_total,
    )


def hydrate_category_names(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
) -> list[Transaction]:
    """Copies of the transactions with `category_name` resolved from their category id."""
    names = {c.id: c.name for c in categories}
    return [
        t.model_copy(update={"category_name": names.get(t.category_id, UNKNOWN_CATEGORY)})
        for t in transactions
    ]


def category_breakdown(transactions: Iterable[Transaction]) -> list[CategorySlice]:
    """
    Expense totals per category name, largest first.

    Ties keep the order in which the categories were first seen. Colours come
    from the sorted position, so the n-th largest category always gets the
    n-th palette colour.
    """
    totals: dict[str, Decimal] = {}
    for t in transactions:
        if t.type != TransactionType.EXPENSE:
            continue
        name = t.category_name or OTHER_CATEGORY
        totals[name] = totals.get(name, ZERO) + t.amount

    # sorted() is stable, so equal totals stay in first-seen order
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)

    slices = []
    for position, (name, value) in enumerate(ranked):
        color_index = position % len(CATEGORY_COLORS)
        slices.append(CategorySlice(
            name=name,
            value=value,
            color_index=color_index,
            color=CATEGORY_COLORS[color_index],
        ))
    return slices


def daily_flow(transactions: Iterable[Transaction], limit: int = 10) -> list[DailyFlow]:
    """Per-day income and expense, in day order, keeping the last `limit` days."""
    days: dict[str, DailyFlow] = {}
    for t in transactions:
        day = t.date.strftime("%m-%d")
        flow = days.setdefault(day, DailyFlow(day=day))
        if t.type == TransactionType.INCOME:
            flow.income += t.amount
        else:
            flow.expense += t.amount

    ordered = [days[day] for day in sorted(days)]
    return ordered[-limit:] if limit > 0 else []


def monthly_history(transactions: Iterable[Transaction]) -> list[MonthlySummary]:
    months: dict[str, MonthlySummary] = {}
    for t in transactions:
        key = month_key(t.date)
        summary = months.setdefault(key, MonthlySummary(month=key))
        if t.type == TransactionType.INCOME:
            summary.income += t.amount
        else:
            summary.expense += t.amount
    return [months[key] for key in sorted(months)]


def insight_sample(transactions: Iterable[Transaction], limit: int = 50) -> list[dict]:
    """
    JSON-ready projection of at most `limit` transactions for the insight
    generator. Only the fields the prompt needs are kept.
    """
    sample = []
    for t in list(transactions)[:limit]:
        sample.append({
            "date": t.date.isoformat(),
            "amount": float(t.amount),
            "type": t.type.value,
            "category": t.category_name,
            "note": t.note,
            "paymentMethod": t.payment_method.value,
        })
    return sample


# =============================================================================
# FULL RECOMPUTATION
# =============================================================================

def build_dashboard(snapshot: LedgerSnapshot, month: str) -> DashboardView:
    """Recompute every figure of the dashboard for one month."""
    hydrated = hydrate_category_names(
        sorted(snapshot.transactions, key=lambda t: t.date, reverse=True),
        snapshot.categories,
    )
    month_transactions = filter_by_month(hydrated, month)

    allocation = snapshot.allocation_for(month)
    special = allocation_total(allocation)

    return DashboardView(
        user_id=snapshot.user_id,
        month=month,
        stats=monthly_stats(month_transactions, special),
        cash_baseline=snapshot.cash_baseline,
        current_cash=current_cash(snapshot.cash_baseline, snapshot.transactions),
        monthly_special_total=special,
        all_time_special_total=all_time_allocation_total(snapshot.allocations),
        lifetime_liquidity=lifetime_liquidity(
            snapshot.cash_baseline, snapshot.transactions, snapshot.allocations
        ),
        portfolio_value=portfolio_value(snapshot.investments),
        transactions=month_transactions,
        category_breakdown=category_breakdown(month_transactions),
        daily_flow=daily_flow(month_transactions),
        allocation=allocation,
        investments=snapshot.investments,
        categories=snapshot.categories,
    )
