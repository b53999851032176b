"""
Local JSON File Storage

One `<collection>.json` file per collection inside a data directory, the
file-system counterpart of the browser key/value store the tracker started
with. Every save rewrites the whole file through a temp file and
`os.replace`, so a reader never sees a half-written collection.

Audit events go to an append-only JSON Lines file in the same directory.
"""

import json
import os
from pathlib import Path
from typing import Union

from budgetflow.models.audit import AuditEvent
from budgetflow.services.storage.interface import (
    AuditStorageInterface,
    Collection,
    Payload,
    RecordStoreInterface,
    StorageError,
    empty_payload,
    ensure_payload_shape,
)


def _write_text_atomic(path: Path, content: str) -> None:
    """Atomic replace on the same filesystem."""
    tmp = path.with_name(f"{path.name}.tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(content)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)


class JsonFileRecordStore(RecordStoreInterface):
    """Record store backed by JSON files on local disk."""

    def __init__(self, data_dir: Union[str, Path]):
        self._data_dir = Path(data_dir)

    def _path(self, collection: Collection) -> Path:
        return self._data_dir / f"{collection.value}.json"

    async def load(self, collection: Collection) -> Payload:
        path = self._path(collection)
        if not path.exists():
            return empty_payload(collection)
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = f.read()
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}")

        if not raw.strip():
            return empty_payload(collection)
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt collection file {path}: {e}")
        return ensure_payload_shape(collection, payload)

    async def save(self, collection: Collection, payload: Payload) -> None:
        ensure_payload_shape(collection, payload)
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            _write_text_atomic(self._path(collection), json.dumps(payload, indent=2))
        except (OSError, TypeError) as e:
            raise StorageError(f"Failed to save {collection.value}: {e}")


class JsonLinesAuditStorage(AuditStorageInterface):
    """Append-only audit log, one JSON document per line."""

    def __init__(self, data_dir: Union[str, Path], filename: str = "audit.jsonl"):
        self._path = Path(data_dir) / filename

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(event.model_dump_json() + "\n")
            return True
        except OSError:
            # Audit logging should not break the main flow; AuditLogger reports it
            return False

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        if not self._path.exists():
            return []
        events = []
        with open(self._path, "r", encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    events.append(AuditEvent.model_validate_json(line))
                except ValueError:
                    continue  # Skip malformed lines
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
