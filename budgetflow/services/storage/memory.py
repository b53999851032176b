"""In-memory storage backends, used for tests and throwaway sessions."""

import copy
import json

from budgetflow.models.audit import AuditEvent
from budgetflow.services.storage.interface import (
    AuditStorageInterface,
    Collection,
    Payload,
    RecordStoreInterface,
    empty_payload,
    ensure_payload_shape,
)


class InMemoryRecordStore(RecordStoreInterface):
    """
    Record store kept in a dict.

    Payloads go through a JSON round trip on save so that the in-memory
    backend accepts exactly what the file and Sheets backends accept.
    """

    def __init__(self):
        self._collections: dict[Collection, Payload] = {}

    async def load(self, collection: Collection) -> Payload:
        if collection not in self._collections:
            return empty_payload(collection)
        return copy.deepcopy(self._collections[collection])

    async def save(self, collection: Collection, payload: Payload) -> None:
        ensure_payload_shape(collection, payload)
        self._collections[collection] = json.loads(json.dumps(payload))


class InMemoryAuditStorage(AuditStorageInterface):

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
