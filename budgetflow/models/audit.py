"""
Audit Models for BudgetFlow

Every mutation of a user's ledger and every authentication outcome is
recorded as an audit event. This provides:
1. Traceability of all writes to the record store
2. Debugging information when an external service misbehaves
3. The ability to reconstruct what happened to a user's numbers

Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Authentication
    USER_SIGNED_IN = "user_signed_in"
    USER_REGISTERED = "user_registered"
    USER_SIGNED_OUT = "user_signed_out"
    SIGN_IN_FAILED = "sign_in_failed"
    PASSWORD_CHANGED = "password_changed"
    PASSWORD_CHANGE_FAILED = "password_change_failed"

    # Ledger mutations
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_DELETED = "transaction_deleted"
    CASH_UPDATED = "cash_updated"
    ALLOCATION_ITEM_ADDED = "allocation_item_added"
    ALLOCATION_ITEM_DELETED = "allocation_item_deleted"
    INVESTMENT_ADDED = "investment_added"
    INVESTMENT_DELETED = "investment_deleted"

    # Rejected input (no mutation happened)
    INPUT_REJECTED = "input_rejected"

    # Reports
    CSV_EXPORTED = "csv_exported"
    INSIGHT_GENERATED = "insight_generated"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and what
    user_id: Optional[str] = Field(
        default=None,
        description="User whose ledger or account this event concerns"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'allocation', 'cash')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one sign-in attempt)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json, error_code,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_code or "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(user_id, tx_id, "expense", "40")
        event = AuditEventBuilder.cash_updated(user_id, "500", "-40")
    """

    @staticmethod
    def user_signed_in(
        user_id: str,
        email: str,
        registered: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.USER_REGISTERED if registered
                else AuditEventType.USER_SIGNED_IN
            ),
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=(
                f"New account registered: {email}" if registered
                else f"User signed in: {email}"
            ),
            details={"email": email},
            is_user_action=True,
        )

    @staticmethod
    def user_signed_out(user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_SIGNED_OUT,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            description="User signed out",
            is_user_action=True,
        )

    @staticmethod
    def sign_in_failed(
        email: str,
        error_code: Optional[str],
        message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGN_IN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            correlation_id=correlation_id,
            description=f"Sign-in failed for {email}",
            details={"email": email},
            error_code=error_code,
            error_message=message,
            is_user_action=True,
        )

    @staticmethod
    def password_changed(user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PASSWORD_CHANGED,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            description="Password updated",
            is_user_action=True,
        )

    @staticmethod
    def password_change_failed(
        user_id: Optional[str],
        error_code: Optional[str],
        message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PASSWORD_CHANGE_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            description="Password change failed",
            error_code=error_code,
            error_message=message,
            is_user_action=True,
        )

    @staticmethod
    def transaction_added(
        user_id: str,
        transaction_id: str,
        transaction_type: str,
        amount: str,
        payment_method: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction added: {transaction_type} {amount} ({payment_method})",
            details={
                "type": transaction_type,
                "amount": amount,
                "payment_method": payment_method,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(user_id: str, transaction_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def cash_updated(
        user_id: str,
        new_amount: str,
        new_baseline: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CASH_UPDATED,
            user_id=user_id,
            entity_type="cash",
            entity_id=user_id,
            description=f"Current cash set to {new_amount}",
            details={
                "current_cash": new_amount,
                "cash_baseline": new_baseline,
            },
            is_user_action=True,
        )

    @staticmethod
    def allocation_item_added(
        user_id: str,
        month: str,
        item_id: str,
        label: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOCATION_ITEM_ADDED,
            user_id=user_id,
            entity_type="allocation",
            entity_id=item_id,
            description=f"Special allocation added for {month}: {label}",
            details={"month": month, "label": label, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def allocation_item_deleted(
        user_id: str,
        month: str,
        item_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOCATION_ITEM_DELETED,
            user_id=user_id,
            entity_type="allocation",
            entity_id=item_id,
            description=f"Special allocation removed from {month}",
            details={"month": month},
            is_user_action=True,
        )

    @staticmethod
    def investment_added(
        user_id: str,
        investment_id: str,
        name: str,
        investment_type: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVESTMENT_ADDED,
            user_id=user_id,
            entity_type="investment",
            entity_id=investment_id,
            description=f"Investment added: {name} ({investment_type})",
            details={"name": name, "type": investment_type, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def investment_deleted(user_id: str, investment_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVESTMENT_DELETED,
            user_id=user_id,
            entity_type="investment",
            entity_id=investment_id,
            description="Investment deleted",
            is_user_action=True,
        )

    @staticmethod
    def input_rejected(
        user_id: str,
        operation: str,
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INPUT_REJECTED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            description=f"Input rejected for {operation}",
            details={"operation": operation, "reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def csv_exported(user_id: str, filename: str, row_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CSV_EXPORTED,
            user_id=user_id,
            entity_type="report",
            description=f"CSV exported: {filename}",
            details={"filename": filename, "row_count": row_count},
            is_user_action=True,
        )

    @staticmethod
    def insight_generated(
        user_id: str,
        month: str,
        sample_size: int,
        used_fallback: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHT_GENERATED,
            severity=AuditSeverity.WARNING if used_fallback else AuditSeverity.INFO,
            user_id=user_id,
            entity_type="report",
            description=f"AI insights requested for {month}",
            details={
                "month": month,
                "sample_size": sample_size,
                "used_fallback": used_fallback,
            },
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
