"""Transaction list queries: filtering and export."""

from nexora.queries.export import (
    EXPORT_COLUMNS,
    default_export_filename,
    export_transactions_csv,
    transactions_csv_text,
    write_transactions_csv,
)
from nexora.queries.filters import filter_transactions

__all__ = [
    "EXPORT_COLUMNS",
    "default_export_filename",
    "export_transactions_csv",
    "filter_transactions",
    "transactions_csv_text",
    "write_transactions_csv",
]
