"""
Spreadsheet export of the transaction list.

Writes CSV with one row per transaction. Columns follow the team's
established spreadsheet layout so old and new exports line up.
"""

import csv
import datetime as dt
from io import StringIO
from pathlib import Path
from typing import Iterable, Optional, TextIO, Union

from nexora.models.finance import Transaction

EXPORT_COLUMNS = (
    "Date",
    "Type",
    "Category",
    "Amount",
    "Method",
    "Description",
    "CreatedBy",
    "InvestmentType",
    "TeamMembers",
)

DEFAULT_FILENAME_PREFIX = "NEXORACREW_Data"


def default_export_filename(
    today: Optional[dt.date] = None,
    prefix: str = DEFAULT_FILENAME_PREFIX,
) -> str:
    """e.g. NEXORACREW_Data_2024-05-01.csv"""
    today = today or dt.date.today()
    return f"{prefix}_{today.isoformat()}.csv"


def _row(t: Transaction) -> list[str]:
    return [
        t.date.isoformat(),
        t.type.value,
        t.category,
        str(t.amount),
        t.payment_method.value,
        (t.description or "").replace("\n", " ").strip(),
        t.user_name or "",
        t.investment_type.value if t.investment_type else "",
        ", ".join(t.investors or []),
    ]


def write_transactions_csv(transactions: Iterable[Transaction], out: TextIO) -> int:
    """Write header and rows to an open text stream. Returns the row count."""
    writer = csv.writer(out)
    writer.writerow(EXPORT_COLUMNS)

    count = 0
    for t in transactions:
        writer.writerow(_row(t))
        count += 1
    return count


def export_transactions_csv(
    transactions: Iterable[Transaction],
    destination: Union[str, Path],
) -> int:
    """
    Export transactions to a CSV file, replacing it if it exists.

    Returns:
        Number of data rows written
    """
    path = Path(destination).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        return write_transactions_csv(transactions, f)


def transactions_csv_text(transactions: Iterable[Transaction]) -> str:
    """The CSV export as a string, for download responses."""
    buffer = StringIO()
    write_transactions_csv(transactions, buffer)
    return buffer.getvalue()
