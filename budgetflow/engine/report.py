"""
CSV Report Projection

Turns a list of hydrated transactions into the CSV download offered on the
transactions page. The format is fixed:

    Date,Type,Payment,Category,Amount,Note

Category and Note are always quoted (they are free text); the other columns
are written bare. Rows are joined with "\\n".
"""

from decimal import Decimal
from typing import Iterable

from budgetflow.models.finance import OTHER_CATEGORY, CsvExport, Transaction


CSV_HEADER = ["Date", "Type", "Payment", "Category", "Amount", "Note"]
CSV_MIME_TYPE = "text/csv"


def _quote(value: str) -> str:
    return '"' + (value or "").replace('"', '""') + '"'


def _format_amount(amount: Decimal) -> str:
    # Decimal("100.00") -> "100", Decimal("12.50") -> "12.5"
    return format(amount.normalize(), "f")


def to_csv(transactions: Iterable[Transaction]) -> str:
    """One row per transaction, in the order given."""
    rows = [",".join(CSV_HEADER)]
    for t in transactions:
        rows.append(",".join([
            t.date.isoformat(),
            t.type.value,
            t.payment_method.value,
            _quote(t.category_name or OTHER_CATEGORY),
            _format_amount(t.amount),
            _quote(t.note),
        ]))
    return "\n".join(rows)


def export_filename(month: str) -> str:
    return f"budget_export_{month}.csv"


def build_export(transactions: Iterable[Transaction], month: str) -> CsvExport:
    return CsvExport(
        filename=export_filename(month),
        mime_type=CSV_MIME_TYPE,
        content=to_csv(transactions),
    )
