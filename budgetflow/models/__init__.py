"""
Data Models Package

This package contains all Pydantic models used in BudgetFlow.
All records in the record store and all derived views conform to these schemas.
"""

from budgetflow.models.finance import (
    DEFAULT_CATEGORIES,
    OTHER_CATEGORY,
    SYSTEM_USER_ID,
    UNKNOWN_CATEGORY,
    AllocationItem,
    Category,
    CategorySlice,
    CsvExport,
    DailyFlow,
    DashboardView,
    Investment,
    InvestmentType,
    LedgerSnapshot,
    MonthlyAllocation,
    MonthlySummary,
    PaymentMethod,
    SummaryStats,
    Transaction,
    TransactionType,
    User,
    generate_id,
)
from budgetflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "DEFAULT_CATEGORIES",
    "OTHER_CATEGORY",
    "SYSTEM_USER_ID",
    "UNKNOWN_CATEGORY",
    "AllocationItem",
    "Category",
    "CategorySlice",
    "CsvExport",
    "DailyFlow",
    "DashboardView",
    "Investment",
    "InvestmentType",
    "LedgerSnapshot",
    "MonthlyAllocation",
    "MonthlySummary",
    "PaymentMethod",
    "SummaryStats",
    "Transaction",
    "TransactionType",
    "User",
    "generate_id",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
