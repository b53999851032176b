"""
Main Orchestrator for BudgetFlow

This module ties the components together and defines the end-to-end flows:
1. Authentication (sign in or register -> sync user record -> session)
2. Ledger reads (load snapshot -> derive dashboard)
3. Ledger mutations (validate -> write -> derive dashboard)
4. Reports (CSV export, AI insights)

DESIGN DECISION: every mutation writes to the record store and then returns
a dashboard recomputed from a freshly loaded snapshot. Derived values are
never patched in place or cached between calls.

Rejected input is a silent no-op: the mutation is skipped, the rejection is
logged at debug level and the unchanged dashboard is returned.
"""

from decimal import Decimal
from typing import Any, Optional

import structlog
from pydantic import BaseModel

from budgetflow.agents import InsightAgent, InsightResult
from budgetflow.audit import AuditLogger, create_correlation_id
from budgetflow.config import Settings, get_settings
from budgetflow.engine import (
    baseline_for_cash,
    build_dashboard,
    build_export,
    current_cash,
    insight_sample,
    lifetime_liquidity,
    month_bounds,
    monthly_history,
)
from budgetflow.models.finance import (
    CsvExport,
    DashboardView,
    LedgerSnapshot,
    MonthlyAllocation,
    MonthlySummary,
    PaymentMethod,
    User,
)
from budgetflow.services.identity import (
    FirebaseIdentityProvider,
    IdentityError,
    IdentityProviderInterface,
    LocalIdentityProvider,
)
from budgetflow.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryAuditStorage,
    InMemoryRecordStore,
    JsonFileRecordStore,
    JsonLinesAuditStorage,
    LedgerRepositories,
    StorageError,
)
from budgetflow.session import SessionContext
from budgetflow.validation import InputValidator


logger = structlog.get_logger(__name__)


# Provider codes that mean "no usable account yet": register instead
REGISTER_FALLBACK_CODES = frozenset({"auth/user-not-found", "auth/user-disabled"})

WRONG_PASSWORD_CODES = frozenset({"auth/wrong-password", "invalid-login-credentials"})

WRONG_PASSWORD_MESSAGE = (
    "Incorrect password. If you forgot your password, reset it in Firebase "
    "console or recreate the account."
)
INVALID_EMAIL_MESSAGE = "Invalid email address. Please check the email and try again."
TOO_MANY_REQUESTS_MESSAGE = "Too many attempts. Please try again later."
PASSWORD_CHANGED_MESSAGE = "Password updated successfully"
PASSWORD_CHANGE_FAILED_MESSAGE = "Could not change password"


class AuthResult(BaseModel):
    """Outcome of one authentication attempt. Produced exactly once per call."""

    success: bool
    user: Optional[User] = None
    message: str = ""
    error_code: Optional[str] = None
    registered: bool = False


def sign_in_error_message(error: IdentityError) -> str:
    """User-facing message for a failed sign-in."""
    if error.code in WRONG_PASSWORD_CODES:
        return WRONG_PASSWORD_MESSAGE
    if error.code == "auth/invalid-email":
        return INVALID_EMAIL_MESSAGE
    if error.code == "auth/too-many-requests":
        return TOO_MANY_REQUESTS_MESSAGE
    return f"{error.code} - {error.message}"


class AuthFlow:
    """
    Orchestrates sign-in, password change and sign-out.

    Flow:
    1. Authenticate with the identity provider
    2. If the account does not exist (or is disabled), register it instead
    3. The provider reports the identity; the session syncs the user record
    4. Return an AuthResult with the sanitized user

    Every call returns exactly one AuthResult; provider and storage failures
    are turned into a failed result with a message for the user.
    """

    def __init__(
        self,
        provider: IdentityProviderInterface,
        session: SessionContext,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._provider = provider
        self._session = session
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def session(self) -> SessionContext:
        return self._session

    async def restore_session(self) -> Optional[User]:
        """Attach the session to the provider and return the current user, if any."""
        await self._session.start()
        return self._session.user

    async def sign_in(self, email: str, password: str) -> AuthResult:
        correlation_id = create_correlation_id()
        await self._session.start()
        registered = False

        try:
            try:
                await self._provider.authenticate(email, password)
            except IdentityError as e:
                if e.code not in REGISTER_FALLBACK_CODES:
                    raise
                logger.info("sign_in_falling_back_to_register", code=e.code)
                await self._provider.register(email, password)
                registered = True
        except IdentityError as e:
            message = sign_in_error_message(e)
            await self._audit_logger.log_sign_in_failed(
                email=email,
                error_code=e.code,
                message=e.message,
                correlation_id=correlation_id,
            )
            return AuthResult(success=False, message=message, error_code=e.code)
        except StorageError as e:
            await self._audit_logger.log_error(
                error_type="user_sync_failed",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return AuthResult(success=False, message="Could not sync user")

        user = self._session.user
        if user is None:
            return AuthResult(success=False, message="Authentication failed")

        await self._audit_logger.log_sign_in(
            user_id=user.id,
            email=user.email,
            registered=registered,
            correlation_id=correlation_id,
        )
        return AuthResult(success=True, user=user, registered=registered)

    async def change_password(self, current_password: str, new_password: str) -> AuthResult:
        user = self._session.require_user()
        try:
            await self._provider.change_credential(current_password, new_password)
        except IdentityError as e:
            message = e.message or PASSWORD_CHANGE_FAILED_MESSAGE
            await self._audit_logger.log_password_change_failed(
                user_id=user.id,
                error_code=e.code,
                message=message,
            )
            return AuthResult(success=False, user=user, message=message, error_code=e.code)

        await self._audit_logger.log_password_changed(user.id)
        return AuthResult(success=True, user=user, message=PASSWORD_CHANGED_MESSAGE)

    async def sign_out(self) -> None:
        user = self._session.user
        await self._provider.sign_out()
        # The provider event already tore the session down; make sure of it
        self._session.teardown()
        if user is not None:
            await self._audit_logger.log_sign_out(user.id)


class FinanceFlow:
    """
    Orchestrates every ledger read and mutation for a signed-in user.

    Reads and mutations return a DashboardView for the requested month,
    always recomputed from a snapshot loaded after the write.
    """

    def __init__(
        self,
        repositories: LedgerRepositories,
        validator: Optional[InputValidator] = None,
        insight_agent: Optional[InsightAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
    ):
        self._repos = repositories
        self._validator = validator or InputValidator()
        self._insight_agent = insight_agent
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def load_snapshot(self, user_id: str) -> LedgerSnapshot:
        return await self._repos.load_snapshot(user_id)

    async def load_dashboard(self, user_id: str, month: str) -> DashboardView:
        month_bounds(month)  # raises ValueError for a malformed month
        snapshot = await self.load_snapshot(user_id)
        return build_dashboard(snapshot, month)

    async def current_cash(self, user_id: str) -> Decimal:
        snapshot = await self.load_snapshot(user_id)
        return current_cash(snapshot.cash_baseline, snapshot.transactions)

    async def lifetime_liquidity(self, user_id: str) -> Decimal:
        snapshot = await self.load_snapshot(user_id)
        return lifetime_liquidity(
            snapshot.cash_baseline, snapshot.transactions, snapshot.allocations
        )

    async def monthly_allocation_total(self, user_id: str, month: str) -> Decimal:
        allocation = await self._repos.allocations.get(user_id, month)
        return allocation.total if allocation else Decimal("0")

    async def monthly_history(self, user_id: str) -> list[MonthlySummary]:
        snapshot = await self.load_snapshot(user_id)
        return monthly_history(snapshot.transactions)

    async def _rejected(
        self,
        user_id: str,
        month: str,
        operation: str,
        reason: Optional[str],
    ) -> DashboardView:
        await self._audit_logger.log_input_rejected(
            user_id=user_id,
            operation=operation,
            reason=reason or "invalid input",
        )
        return await self.load_dashboard(user_id, month)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def add_transaction(
        self,
        user_id: str,
        month: str,
        amount: Any,
        transaction_type: Any,
        category_id: Optional[str],
        on: Any,
        note: Optional[str] = "",
        payment_method: Any = PaymentMethod.ONLINE,
    ) -> DashboardView:
        month_bounds(month)
        outcome = self._validator.validate_transaction(
            user_id=user_id,
            amount=amount,
            transaction_type=transaction_type,
            category_id=category_id,
            on=on,
            note=note,
            payment_method=payment_method,
        )
        if not outcome.is_valid:
            return await self._rejected(user_id, month, "add_transaction", outcome.reason)
        transaction = outcome.value

        await self._repos.transactions.add(transaction)
        await self._audit_logger.log_transaction_added(
            user_id=user_id,
            transaction_id=transaction.id,
            transaction_type=transaction.type.value,
            amount=transaction.amount,
            payment_method=transaction.payment_method.value,
        )
        return await self.load_dashboard(user_id, month)

    async def delete_transaction(self, user_id: str, month: str, transaction_id: str) -> DashboardView:
        month_bounds(month)
        if await self._repos.transactions.delete(user_id, transaction_id):
            await self._audit_logger.log_transaction_deleted(user_id, transaction_id)
        return await self.load_dashboard(user_id, month)

    # -------------------------------------------------------------------------
    # Cash
    # -------------------------------------------------------------------------

    async def set_current_cash(self, user_id: str, month: str, new_amount: Any) -> DashboardView:
        """
        Make current cash equal `new_amount` by back-solving the baseline
        against the full transaction history.
        """
        month_bounds(month)
        outcome = self._validator.validate_cash_amount(new_amount)
        if not outcome.is_valid:
            return await self._rejected(user_id, month, "set_current_cash", outcome.reason)
        amount = outcome.value

        snapshot = await self.load_snapshot(user_id)
        new_baseline = baseline_for_cash(amount, snapshot.transactions)
        await self._repos.cash.set_baseline(user_id, new_baseline)
        await self._audit_logger.log_cash_updated(user_id, amount, new_baseline)
        return await self.load_dashboard(user_id, month)

    # -------------------------------------------------------------------------
    # Special allocations
    # -------------------------------------------------------------------------

    async def add_allocation_item(
        self,
        user_id: str,
        month: str,
        label: Optional[str],
        amount: Any,
    ) -> DashboardView:
        month_bounds(month)
        outcome = self._validator.validate_allocation_item(label, amount)
        if not outcome.is_valid:
            return await self._rejected(user_id, month, "add_allocation_item", outcome.reason)
        item = outcome.value

        allocation = await self._repos.allocations.get(user_id, month)
        items = list(allocation.items) if allocation else []
        items.append(item)
        await self._repos.allocations.save(
            MonthlyAllocation(user_id=user_id, month=month, items=items)
        )
        await self._audit_logger.log_allocation_item_added(
            user_id=user_id,
            month=month,
            item_id=item.id,
            label=item.label,
            amount=item.amount,
        )
        return await self.load_dashboard(user_id, month)

    async def delete_allocation_item(self, user_id: str, month: str, item_id: str) -> DashboardView:
        """Remove one item; the month's record is kept even when it becomes empty."""
        month_bounds(month)
        allocation = await self._repos.allocations.get(user_id, month)
        if allocation is not None:
            remaining = [i for i in allocation.items if i.id != item_id]
            await self._repos.allocations.save(
                MonthlyAllocation(user_id=user_id, month=month, items=remaining)
            )
            if len(remaining) != len(allocation.items):
                await self._audit_logger.log_allocation_item_deleted(user_id, month, item_id)
        return await self.load_dashboard(user_id, month)

    # -------------------------------------------------------------------------
    # Investments
    # -------------------------------------------------------------------------

    async def add_investment(
        self,
        user_id: str,
        month: str,
        name: Optional[str],
        investment_type: Any,
        amount: Any,
        on: Any = None,
    ) -> DashboardView:
        month_bounds(month)
        outcome = self._validator.validate_investment(
            user_id=user_id,
            name=name,
            investment_type=investment_type,
            amount=amount,
            on=on,
        )
        if not outcome.is_valid:
            return await self._rejected(user_id, month, "add_investment", outcome.reason)
        investment = outcome.value

        await self._repos.investments.add(investment)
        await self._audit_logger.log_investment_added(
            user_id=user_id,
            investment_id=investment.id,
            name=investment.name,
            investment_type=investment.type.value,
            amount=investment.amount,
        )
        return await self.load_dashboard(user_id, month)

    async def delete_investment(self, user_id: str, month: str, investment_id: str) -> DashboardView:
        month_bounds(month)
        if await self._repos.investments.delete(user_id, investment_id):
            await self._audit_logger.log_investment_deleted(user_id, investment_id)
        return await self.load_dashboard(user_id, month)

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    async def export_csv(self, user_id: str, month: str) -> CsvExport:
        """CSV of the month's transactions, newest first."""
        dashboard = await self.load_dashboard(user_id, month)
        export = build_export(dashboard.transactions, month)
        await self._audit_logger.log_csv_exported(
            user_id, export.filename, len(dashboard.transactions)
        )
        return export

    async def generate_insights(self, user_id: str, month: str) -> InsightResult:
        """
        AI insights for the month's transactions.

        Never raises for insight failures; the result carries a placeholder
        text instead.
        """
        dashboard = await self.load_dashboard(user_id, month)
        sample = insight_sample(
            dashboard.transactions, self._settings.app.insight_sample_size
        )

        if self._insight_agent is None:
            self._insight_agent = InsightAgent()
        result = await self._insight_agent.analyze(sample)

        if result.error:
            await self._audit_logger.log_external_service_error(
                service="gemini",
                error_message=result.error,
                user_id=user_id,
            )
        await self._audit_logger.log_insight_generated(
            user_id=user_id,
            month=month,
            sample_size=len(sample),
            used_fallback=result.used_fallback,
        )
        return result


def create_app_components(
    settings: Optional[Settings] = None,
) -> tuple[AuthFlow, FinanceFlow, SessionContext]:
    """
    Factory function to create all application components.

    Backends are picked from configuration:
    - STORAGE_BACKEND: json (default), memory or google_sheets
    - IDENTITY_BACKEND: firebase (default) or local

    Returns:
        (auth_flow, finance_flow, session)
    """
    settings = settings or get_settings()
    storage_settings = settings.storage

    if storage_settings.backend == "google_sheets":
        sheets_client = GoogleSheetsClient(settings.google_sheets)
        store = GoogleSheetsRecordStore(sheets_client)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    elif storage_settings.backend == "memory":
        store = InMemoryRecordStore()
        audit_storage = InMemoryAuditStorage()
    else:
        store = JsonFileRecordStore(storage_settings.data_path)
        audit_storage = JsonLinesAuditStorage(storage_settings.data_path)

    audit_logger = AuditLogger(audit_storage)
    repositories = LedgerRepositories(store)

    if settings.app.identity_backend == "local":
        provider: IdentityProviderInterface = LocalIdentityProvider(repositories.users)
    else:
        provider = FirebaseIdentityProvider(settings.firebase)

    session = SessionContext(provider, repositories.users)
    auth_flow = AuthFlow(provider, session, audit_logger=audit_logger)
    finance_flow = FinanceFlow(
        repositories,
        audit_logger=audit_logger,
        settings=settings,
    )
    return auth_flow, finance_flow, session
