"""
Local Input Validation

All validation happens here, before anything is written. There is no
server-side validation behind the record store.

IMPORTANT: rejected input is not an error. Every validate_* method returns a
ValidationOutcome holding either the ready-to-store value or the reason the
input was rejected; on rejection the caller skips the mutation entirely.
The validator keeps no state between calls.
"""

import datetime as dt
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

import structlog
from pydantic import BaseModel, ValidationError

from budgetflow.models.finance import (
    AllocationItem,
    Investment,
    InvestmentType,
    PaymentMethod,
    Transaction,
    TransactionType,
)


logger = structlog.get_logger(__name__)

DateInput = Union[dt.date, str, None]


class ValidationOutcome(BaseModel):
    """A validated value, or the reason the input was rejected."""

    value: Any = None
    reason: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.reason is None


class InputValidator:
    """Turns raw form input into validated records."""

    def _reject(self, operation: str, reason: str) -> ValidationOutcome:
        logger.debug("input_rejected", operation=operation, reason=reason)
        return ValidationOutcome(reason=reason)

    @staticmethod
    def parse_amount(value: Any) -> Optional[Decimal]:
        """
        Parse a user-entered amount.

        Accepts Decimal, int, float and numeric strings. Returns None for
        anything non-numeric or non-finite (booleans included).
        """
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, float):
            if not math.isfinite(value):
                return None
            value = repr(value)
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
        if not amount.is_finite():
            return None
        return amount

    @staticmethod
    def parse_date(value: DateInput) -> Optional[dt.date]:
        if value is None or value == "":
            return None
        if isinstance(value, dt.datetime):
            return value.date()
        if isinstance(value, dt.date):
            return value
        try:
            return dt.date.fromisoformat(str(value).strip())
        except ValueError:
            return None

    def validate_cash_amount(self, value: Any) -> ValidationOutcome:
        """Cash on hand must be a number and not negative."""
        amount = self.parse_amount(value)
        if amount is None:
            return self._reject("set_current_cash", "amount is not a number")
        if amount < 0:
            return self._reject("set_current_cash", "amount is negative")
        return ValidationOutcome(value=amount)

    def validate_transaction(
        self,
        user_id: str,
        amount: Any,
        transaction_type: Any,
        category_id: Optional[str],
        on: DateInput,
        note: Optional[str] = "",
        payment_method: Any = PaymentMethod.ONLINE,
    ) -> ValidationOutcome:
        operation = "add_transaction"

        parsed = self.parse_amount(amount)
        if parsed is None or parsed <= 0:
            return self._reject(operation, "amount must be greater than zero")
        if not category_id or not str(category_id).strip():
            return self._reject(operation, "category is required")

        try:
            kind = TransactionType(transaction_type)
            method = PaymentMethod(payment_method)
        except ValueError:
            return self._reject(operation, "unknown transaction type or payment method")

        day = self.parse_date(on)
        if day is None:
            return self._reject(operation, "date must be YYYY-MM-DD")

        try:
            transaction = Transaction(
                user_id=user_id,
                amount=parsed,
                type=kind,
                category_id=str(category_id).strip(),
                date=day,
                note=(note or "").strip(),
                payment_method=method,
            )
        except ValidationError as e:
            return self._reject(operation, str(e))
        return ValidationOutcome(value=transaction)

    def validate_allocation_item(self, label: Optional[str], amount: Any) -> ValidationOutcome:
        operation = "add_allocation_item"

        label = (label or "").strip()
        if not label:
            return self._reject(operation, "label is required")
        parsed = self.parse_amount(amount)
        if parsed is None or parsed <= 0:
            return self._reject(operation, "amount must be greater than zero")

        try:
            item = AllocationItem(label=label, amount=parsed)
        except ValidationError as e:
            return self._reject(operation, str(e))
        return ValidationOutcome(value=item)

    def validate_investment(
        self,
        user_id: str,
        name: Optional[str],
        investment_type: Any,
        amount: Any,
        on: DateInput = None,
    ) -> ValidationOutcome:
        operation = "add_investment"

        name = (name or "").strip()
        if not name:
            return self._reject(operation, "name is required")
        parsed = self.parse_amount(amount)
        if parsed is None or parsed <= 0:
            return self._reject(operation, "amount must be greater than zero")
        try:
            kind = InvestmentType(investment_type)
        except ValueError:
            return self._reject(operation, "unknown investment type")

        day = dt.date.today()
        if on is not None and on != "":
            day = self.parse_date(on)
            if day is None:
                return self._reject(operation, "date must be YYYY-MM-DD")

        try:
            investment = Investment(user_id=user_id, name=name, type=kind, amount=parsed, date=day)
        except ValidationError as e:
            return self._reject(operation, str(e))
        return ValidationOutcome(value=investment)
