"""
Audit Logger

DESIGN DECISION: Every write to a user's ledger and every authentication
outcome is logged. This provides:
1. Traceability of how a user's numbers came to be
2. Debugging capability when an external service misbehaves
3. A record of rejected input (no write happened)

The audit logger:
- Is async like the storage it writes to
- Gracefully handles failures (a failed audit write never fails the action)
- Supports correlation IDs to tie related events together
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from budgetflow.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from budgetflow.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (always)
    2. An audit store (JSON Lines file or Google Sheets) when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("budgetflow.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def recent_events(self, limit: int = 50) -> list[AuditEvent]:
        if not self._storage:
            return []
        return await self._storage.get_recent_events(limit)

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def log_sign_in(
        self,
        user_id: str,
        email: str,
        registered: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.user_signed_in(
            user_id=user_id,
            email=email,
            registered=registered,
            correlation_id=correlation_id,
        ))

    async def log_sign_in_failed(
        self,
        email: str,
        error_code: Optional[str],
        message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.sign_in_failed(
            email=email,
            error_code=error_code,
            message=message,
            correlation_id=correlation_id,
        ))

    async def log_sign_out(self, user_id: str) -> None:
        await self.log(AuditEventBuilder.user_signed_out(user_id))

    async def log_password_changed(self, user_id: str) -> None:
        await self.log(AuditEventBuilder.password_changed(user_id))

    async def log_password_change_failed(
        self,
        user_id: Optional[str],
        error_code: Optional[str],
        message: str,
    ) -> None:
        await self.log(AuditEventBuilder.password_change_failed(
            user_id=user_id,
            error_code=error_code,
            message=message,
        ))

    # -------------------------------------------------------------------------
    # Ledger mutations
    # -------------------------------------------------------------------------

    async def log_transaction_added(
        self,
        user_id: str,
        transaction_id: str,
        transaction_type: str,
        amount: Decimal,
        payment_method: str,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_added(
            user_id=user_id,
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=str(amount),
            payment_method=payment_method,
        ))

    async def log_transaction_deleted(self, user_id: str, transaction_id: str) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(user_id, transaction_id))

    async def log_cash_updated(
        self,
        user_id: str,
        new_amount: Decimal,
        new_baseline: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.cash_updated(
            user_id=user_id,
            new_amount=str(new_amount),
            new_baseline=str(new_baseline),
        ))

    async def log_allocation_item_added(
        self,
        user_id: str,
        month: str,
        item_id: str,
        label: str,
        amount: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.allocation_item_added(
            user_id=user_id,
            month=month,
            item_id=item_id,
            label=label,
            amount=str(amount),
        ))

    async def log_allocation_item_deleted(self, user_id: str, month: str, item_id: str) -> None:
        await self.log(AuditEventBuilder.allocation_item_deleted(user_id, month, item_id))

    async def log_investment_added(
        self,
        user_id: str,
        investment_id: str,
        name: str,
        investment_type: str,
        amount: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.investment_added(
            user_id=user_id,
            investment_id=investment_id,
            name=name,
            investment_type=investment_type,
            amount=str(amount),
        ))

    async def log_investment_deleted(self, user_id: str, investment_id: str) -> None:
        await self.log(AuditEventBuilder.investment_deleted(user_id, investment_id))

    async def log_input_rejected(self, user_id: str, operation: str, reason: str) -> None:
        await self.log(AuditEventBuilder.input_rejected(user_id, operation, reason))

    # -------------------------------------------------------------------------
    # Reports and errors
    # -------------------------------------------------------------------------

    async def log_csv_exported(self, user_id: str, filename: str, row_count: int) -> None:
        await self.log(AuditEventBuilder.csv_exported(user_id, filename, row_count))

    async def log_insight_generated(
        self,
        user_id: str,
        month: str,
        sample_size: int,
        used_fallback: bool,
    ) -> None:
        await self.log(AuditEventBuilder.insight_generated(
            user_id=user_id,
            month=month,
            sample_size=sample_size,
            used_fallback=used_fallback,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., one sign-in attempt)
    and pass it to every event that action produces.
    """
    return uuid4()
