"""
Abstract Storage Interface

The record store is a key-addressed store of whole collections: each
collection is one JSON-serializable payload that is loaded, modified in
Python and written back as a whole. There are no partial queries and no
transactions across collections.

Keeping the interface this small lets us:
1. Swap the local JSON files for Google Sheets (or anything else) later
2. Use in-memory storage for testing
3. Keep the repositories and the derivation engine storage-agnostic
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Union

from budgetflow.models.audit import AuditEvent


class Collection(str, Enum):
    """Logical collection names of the record store."""
    USERS = "users"
    TRANSACTIONS = "transactions"
    CATEGORIES = "categories"
    CASH_SETTINGS = "cash_settings"
    INVESTMENTS = "investments"
    ALLOCATIONS = "allocations"


# cash_settings is a map of user_id -> amount; every other collection is an array
MAP_COLLECTIONS = frozenset({Collection.CASH_SETTINGS})

Payload = Union[list, dict]


def empty_payload(collection: Collection) -> Payload:
    """Payload returned for a collection that was never written."""
    return {} if collection in MAP_COLLECTIONS else []


class RecordStoreInterface(ABC):
    """
    Abstract interface for the record store.

    Any storage implementation (JSON files, Google Sheets, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def load(self, collection: Collection) -> Payload:
        """
        Load a whole collection.

        Args:
            collection: The collection to read

        Returns:
            A JSON-compatible list (or dict for map collections).
            Never None: a missing collection yields an empty payload.

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def save(self, collection: Collection, payload: Payload) -> None:
        """
        Replace a whole collection.

        Args:
            collection: The collection to overwrite
            payload: The complete new content

        Raises:
            StorageError: If the write fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


def ensure_payload_shape(collection: Collection, payload: Any) -> Payload:
    """Reject payloads whose top-level type does not match the collection."""
    expected = dict if collection in MAP_COLLECTIONS else list
    if not isinstance(payload, expected):
        raise StorageError(
            f"Collection {collection.value!r} expects a JSON "
            f"{'object' if expected is dict else 'array'}, got {type(payload).__name__}"
        )
    return payload


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
