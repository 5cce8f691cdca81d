"""
Excel export of transaction listings.

The export contains exactly the rows currently shown (after filters and
search), with Turkish column headers.
"""

from collections.abc import Mapping, Sequence
from datetime import date
from io import BytesIO
from typing import Optional

import pandas as pd

from kasa.formatting import (
    format_date,
    format_datetime,
    invoice_type_text,
    payment_method_text,
)
from kasa.models.finance import Transaction


SHEET_NAME = "İşlemler"
XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

EXPORT_COLUMNS = [
    "ID",
    "İşlem Tarihi",
    "Başlık",
    "Miktar",
    "Tip",
    "Ödeme Şekli",
    "Fatura Tipi",
    "Açıklama",
    "Bölge",
    "Gider Bölge Detayı",
    "İşlemi Yapan",
    "Kayıt Tarihi",
]

UNKNOWN = "Bilinmiyor"


class ExportError(Exception):
    """Building the spreadsheet failed."""
    pass


def export_filename(on: Optional[date] = None) -> str:
    """islem_kayitlari_DD_MM_YYYY.xlsx"""
    on = on or date.today()
    return f"islem_kayitlari_{on.strftime('%d_%m_%Y')}.xlsx"


def transaction_row(tx: Transaction, user_names: Mapping[str, str]) -> dict:
    return {
        "ID": tx.id,
        "İşlem Tarihi": format_date(tx.transaction_date),
        "Başlık": tx.title,
        "Miktar": float(tx.amount),
        "Tip": tx.type.value,
        "Ödeme Şekli": payment_method_text(tx.payment_method),
        "Fatura Tipi": invoice_type_text(tx.invoice_type),
        "Açıklama": tx.description or "",
        "Bölge": tx.region_name or UNKNOWN,
        "Gider Bölge Detayı": tx.expense_region_info or "Yok",
        "İşlemi Yapan": user_names.get(tx.user_id or "", UNKNOWN),
        "Kayıt Tarihi": format_datetime(tx.created_at),
    }


def transactions_dataframe(
    transactions: Sequence[Transaction],
    user_names: Optional[Mapping[str, str]] = None,
) -> pd.DataFrame:
    names = user_names or {}
    rows = [transaction_row(tx, names) for tx in transactions]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_transactions(
    transactions: Sequence[Transaction],
    user_names: Optional[Mapping[str, str]] = None,
) -> bytes:
    """
    Build an .xlsx workbook of the given transactions.

    Raises:
        ExportError: If the workbook cannot be written
    """
    df = transactions_dataframe(transactions, user_names)
    output = BytesIO()
    try:
        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=SHEET_NAME, index=False)
    except Exception as e:
        raise ExportError(str(e) or "Bilinmeyen Hata")
    return output.getvalue()
