"""
Derivation Engine Package

Pure recomputation of every dashboard figure from a LedgerSnapshot, plus the
CSV projection of transactions.
"""

from budgetflow.engine.derivation import (
    CATEGORY_COLORS,
    all_time_allocation_total,
    allocation_total,
    baseline_for_cash,
    build_dashboard,
    cash_delta,
    category_breakdown,
    current_cash,
    daily_flow,
    filter_by_month,
    hydrate_category_names,
    insight_sample,
    lifetime_liquidity,
    month_bounds,
    month_key,
    monthly_history,
    monthly_stats,
    portfolio_value,
)
from budgetflow.engine.report import (
    CSV_HEADER,
    CSV_MIME_TYPE,
    build_export,
    export_filename,
    to_csv,
)

__all__ = [
    "CATEGORY_COLORS",
    "CSV_HEADER",
    "CSV_MIME_TYPE",
    "all_time_allocation_total",
    "allocation_total",
    "baseline_for_cash",
    "build_dashboard",
    "build_export",
    "cash_delta",
    "category_breakdown",
    "current_cash",
    "daily_flow",
    "export_filename",
    "filter_by_month",
    "hydrate_category_names",
    "insight_sample",
    "lifetime_liquidity",
    "month_bounds",
    "month_key",
    "monthly_history",
    "monthly_stats",
    "portfolio_value",
    "to_csv",
]
