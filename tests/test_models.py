"""
Tests for BudgetFlow models

Test strategy:
1. Unit tests for individual components (models, validators, derivation)
2. Integration tests for flows (with in-memory storage and fake services)
3. No real API calls in tests
"""

import datetime as dt
import json
from decimal import Decimal
from uuid import uuid4

import pytest

from budgetflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from budgetflow.models.finance import (
    DEFAULT_CATEGORIES,
    AllocationItem,
    CsvExport,
    Investment,
    InvestmentType,
    LedgerSnapshot,
    MonthlyAllocation,
    PaymentMethod,
    Transaction,
    TransactionType,
    User,
)
from budgetflow.validation import InputValidator


class TestFinanceModels:
    """Tests for ledger record models."""

    def test_transaction_defaults_to_online(self):
        """Test that payment method defaults to online."""
        tx = Transaction(
            user_id="u1",
            amount=Decimal("12.50"),
            type=TransactionType.EXPENSE,
            category_id="c3",
            date=dt.date(2024, 1, 5),
        )
        assert tx.payment_method == PaymentMethod.ONLINE
        assert tx.note == ""
        assert tx.id

    def test_transaction_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        for amount in ("0", "-5"):
            with pytest.raises(ValueError):
                Transaction(
                    user_id="u1",
                    amount=Decimal(amount),
                    type=TransactionType.INCOME,
                    category_id="c1",
                    date=dt.date(2024, 1, 5),
                )

    def test_transaction_parses_iso_date(self):
        """Test that ISO date strings from storage are parsed."""
        tx = Transaction.model_validate({
            "user_id": "u1",
            "amount": "100",
            "type": "income",
            "category_id": "c1",
            "date": "2024-02-29",
        })
        assert tx.date == dt.date(2024, 2, 29)

    def test_signed_amount(self, make_transaction):
        """Test that the type decides the sign."""
        assert make_transaction("40", TransactionType.INCOME).signed_amount == Decimal("40")
        assert make_transaction("40", TransactionType.EXPENSE).signed_amount == Decimal("-40")

    def test_transaction_json_round_trip_keeps_decimal(self, make_transaction):
        """Test that a stored transaction reloads with the exact amount."""
        tx = make_transaction("0.10")
        reloaded = Transaction.model_validate(json.loads(json.dumps(tx.model_dump(mode="json"))))
        assert reloaded.amount == Decimal("0.10")
        assert reloaded == tx

    def test_user_sanitized_drops_secret(self):
        """Test that the sanitized user carries no password hash."""
        user = User(email="a@example.com", password_hash="$2b$04$hashvalue")
        clean = user.sanitized()
        assert clean.password_hash is None
        assert user.password_hash is not None
        assert clean.id == user.id

    def test_default_categories(self):
        """Test the ten system categories."""
        assert [c.id for c in DEFAULT_CATEGORIES] == [f"c{i}" for i in range(1, 11)]
        assert all(c.user_id == "system" for c in DEFAULT_CATEGORIES)
        assert DEFAULT_CATEGORIES[0].name == "Salary"
        assert DEFAULT_CATEGORIES[0].type == TransactionType.INCOME

    def test_allocation_total(self):
        """Test that the allocation total is the sum of its items."""
        allocation = MonthlyAllocation(
            user_id="u1",
            month="2024-01",
            items=[
                AllocationItem(label="Gift", amount=Decimal("50")),
                AllocationItem(label="Trip", amount=Decimal("25.5")),
            ],
        )
        assert allocation.total == Decimal("75.5")
        assert MonthlyAllocation(user_id="u1", month="2024-01").total == Decimal("0")

    def test_allocation_rejects_bad_month(self):
        """Test that the month must be YYYY-MM."""
        for month in ("2024-13", "2024-1", "24-01", "2024/01"):
            with pytest.raises(ValueError):
                MonthlyAllocation(user_id="u1", month=month)

    def test_allocation_item_strips_label(self):
        """Test that labels are stripped and blank labels rejected."""
        assert AllocationItem(label="  Gift ", amount=Decimal("1")).label == "Gift"
        with pytest.raises(ValueError):
            AllocationItem(label="   ", amount=Decimal("1"))

    def test_investment_defaults(self):
        """Test investment type and date defaults."""
        inv = Investment(user_id="u1", name="Index fund", amount=Decimal("1000"))
        assert inv.type == InvestmentType.MUTUAL_FUND
        assert inv.date == dt.date.today()

    @pytest.mark.parametrize("amount", ["0", "-100"])
    def test_investment_amount_must_be_positive(self, amount):
        """Test that the model rejects the same amounts as the validator."""
        with pytest.raises(ValueError):
            Investment(user_id="u1", name="FD", amount=Decimal(amount))

    def test_snapshot_allocation_for(self):
        """Test that a snapshot finds the allocation of a month."""
        jan = MonthlyAllocation(user_id="u1", month="2024-01")
        snapshot = LedgerSnapshot(user_id="u1", allocations=[jan])
        assert snapshot.allocation_for("2024-01") is jan
        assert snapshot.allocation_for("2024-02") is None

    def test_csv_export_filename_must_be_csv(self):
        """Test that export filenames end in .csv."""
        CsvExport(filename="budget_export_2024-01.csv", content="")
        with pytest.raises(ValueError):
            CsvExport(filename="budget_export_2024-01.txt", content="")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            description="Transaction added",
        )
        assert event.event_id is not None
        assert event.timestamp is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.CASH_UPDATED,
            user_id="u1",
            description="Current cash set to 500",
            details={"current_cash": "500"},
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "cash_updated"
        assert log_dict["user_id"] == "u1"
        assert log_dict["details"]["current_cash"] == "500"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to a 13-column sheets row."""
        correlation_id = uuid4()
        event = AuditEventBuilder.sign_in_failed(
            email="a@example.com",
            error_code="auth/wrong-password",
            message="The password is invalid.",
            correlation_id=correlation_id,
        )
        row = event.to_sheets_row()
        assert len(row) == 13
        assert row[2] == "sign_in_failed"
        assert row[3] == "warning"
        assert row[7] == str(correlation_id)
        assert row[10] == "auth/wrong-password"
        assert row[12] == "True"

    def test_builder_registered_vs_signed_in(self):
        """Test that registration gets its own event type."""
        registered = AuditEventBuilder.user_signed_in("u1", "a@example.com", registered=True)
        signed_in = AuditEventBuilder.user_signed_in("u1", "a@example.com", registered=False)
        assert registered.event_type == AuditEventType.USER_REGISTERED
        assert signed_in.event_type == AuditEventType.USER_SIGNED_IN
        assert signed_in.entity_id == "u1"

    def test_builder_transaction_added(self):
        """Test AuditEventBuilder.transaction_added."""
        event = AuditEventBuilder.transaction_added("u1", "tx1", "expense", "40", "cash")
        assert event.event_type == AuditEventType.TRANSACTION_ADDED
        assert event.entity_type == "transaction"
        assert event.entity_id == "tx1"
        assert event.details["payment_method"] == "cash"
        assert event.is_user_action is True

    def test_builder_input_rejected_is_debug(self):
        """Test that rejected input is logged at debug level."""
        event = AuditEventBuilder.input_rejected("u1", "add_transaction", "amount must be greater than zero")
        assert event.severity == AuditSeverity.DEBUG
        assert event.details["operation"] == "add_transaction"

    def test_builder_insight_fallback_is_warning(self):
        """Test that a placeholder insight is flagged."""
        event = AuditEventBuilder.insight_generated("u1", "2024-01", 3, used_fallback=True)
        assert event.severity == AuditSeverity.WARNING
        ok = AuditEventBuilder.insight_generated("u1", "2024-01", 3, used_fallback=False)
        assert ok.severity == AuditSeverity.INFO


if __name__ == "__main__":
    pytest.main([__file__, "-v"])


class TestInputValidator:
    """Tests for local input validation outcomes."""

    def test_accepted_input_carries_the_record(self):
        """Test that a valid transaction comes back ready to store."""
        outcome = InputValidator().validate_transaction(
            user_id="u1", amount="12.50", transaction_type="expense",
            category_id="c3", on="2024-01-05", payment_method="cash",
        )
        assert outcome.is_valid
        assert outcome.reason is None
        assert outcome.value.amount == Decimal("12.50")
        assert outcome.value.payment_method == PaymentMethod.CASH

    def test_each_rejection_keeps_its_own_reason(self):
        """Test that one validator serves several calls without sharing state."""
        validator = InputValidator()
        negative = validator.validate_cash_amount("-5")
        blank = validator.validate_allocation_item("  ", "10")

        assert not negative.is_valid and negative.value is None
        assert negative.reason == "amount is negative"
        assert blank.reason == "label is required"

    @pytest.mark.parametrize("amount", ["0", "-1", "abc", None])
    def test_investment_amount_rejected(self, amount):
        """Test that investments need a positive amount."""
        outcome = InputValidator().validate_investment("u1", "FD", "FD", amount)
        assert outcome.reason == "amount must be greater than zero"
