"""Spreadsheet export package."""

from kasa.export.excel import (
    EXPORT_COLUMNS,
    XLSX_MIME_TYPE,
    ExportError,
    export_filename,
    export_transactions,
    transactions_dataframe,
)

__all__ = [
    "EXPORT_COLUMNS",
    "XLSX_MIME_TYPE",
    "ExportError",
    "export_filename",
    "export_transactions",
    "transactions_dataframe",
]
