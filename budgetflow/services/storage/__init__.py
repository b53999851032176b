"""
Storage Services Package

Provides the record store interface, its backends (in-memory, local JSON
files, Google Sheets) and the per-entity repositories built on top of it.
"""

from budgetflow.services.storage.interface import (
    AuditStorageInterface,
    Collection,
    RecordStoreInterface,
    StorageConnectionError,
    StorageError,
)
from budgetflow.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
)
from budgetflow.services.storage.json_file import (
    JsonFileRecordStore,
    JsonLinesAuditStorage,
)
from budgetflow.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
)
from budgetflow.services.storage.repositories import (
    AllocationRepository,
    CashSettingsRepository,
    CategoryRepository,
    InvestmentRepository,
    LedgerRepositories,
    TransactionRepository,
    UserRepository,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "Collection",
    "RecordStoreInterface",
    # Exceptions
    "StorageConnectionError",
    "StorageError",
    # Backends
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    "JsonLinesAuditStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    # Repositories
    "AllocationRepository",
    "CashSettingsRepository",
    "CategoryRepository",
    "InvestmentRepository",
    "LedgerRepositories",
    "TransactionRepository",
    "UserRepository",
]
