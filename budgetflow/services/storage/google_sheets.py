"""
Google Sheets Storage Implementation

Google Sheets can serve as the record store because:
1. Users can look at their raw data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

Each collection lives in its own worksheet. Row 1 is a header; every
following row holds one record as a JSON document (map collections store
one key/value pair per row). A save clears the worksheet and rewrites it,
which gives the same replace-the-whole-collection semantics as the file
backend.

TRADEOFFS:
- Not suitable for high-volume data (fine for personal use)
- No transactions across worksheets
- Clear-then-write is not atomic on the Sheets side
"""

import json
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from budgetflow.config import GoogleSheetsSettings, get_settings
from budgetflow.models.audit import AuditEvent, AuditEventType, AuditSeverity
from budgetflow.services.storage.interface import (
    MAP_COLLECTIONS,
    AuditStorageInterface,
    Collection,
    Payload,
    RecordStoreInterface,
    StorageConnectionError,
    StorageError,
    empty_payload,
    ensure_payload_shape,
)


LIST_HEADER = ["id", "record_json"]
MAP_HEADER = ["key", "value_json"]

# Column mappings for the audit sheet (see AuditEvent.to_sheets_row)
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, header: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(header),
            )
            sheet.append_row(header)
        return sheet

    def get_collection_sheet(self, collection: Collection) -> gspread.Worksheet:
        header = MAP_HEADER if collection in MAP_COLLECTIONS else LIST_HEADER
        return self.get_worksheet(collection.value, header)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsRecordStore(RecordStoreInterface):
    """Google Sheets implementation of the record store."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _payload_to_rows(self, collection: Collection, payload: Payload) -> list[list[str]]:
        if collection in MAP_COLLECTIONS:
            return [MAP_HEADER] + [
                [str(key), json.dumps(value)] for key, value in payload.items()
            ]
        return [LIST_HEADER] + [
            [str(record.get("id", "")) if isinstance(record, dict) else "", json.dumps(record)]
            for record in payload
        ]

    def _rows_to_payload(self, collection: Collection, rows: list[list[str]]) -> Payload:
        payload = empty_payload(collection)
        for row in rows[1:]:  # Skip header
            if len(row) < 2 or not row[1]:
                continue
            value = json.loads(row[1])
            if collection in MAP_COLLECTIONS:
                payload[row[0]] = value
            else:
                payload.append(value)
        return payload

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def load(self, collection: Collection) -> Payload:
        try:
            sheet = self._client.get_collection_sheet(collection)
            return self._rows_to_payload(collection, sheet.get_all_values())
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load {collection.value}: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save(self, collection: Collection, payload: Payload) -> None:
        ensure_payload_shape(collection, payload)
        try:
            sheet = self._client.get_collection_sheet(collection)
            rows = self._payload_to_rows(collection, payload)
            sheet.clear()
            sheet.update(values=rows, range_name="A1", value_input_option="RAW")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save {collection.value}: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=safe_get(0),
            timestamp=safe_get(1),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            user_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=safe_get(6) or None,
            correlation_id=safe_get(7) or None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_code=safe_get(10) or None,
            error_message=safe_get(11) or None,
            is_user_action=safe_get(12).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception:
            # AuditLogger records the failure locally
            return False

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except ValueError:
                    continue

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
