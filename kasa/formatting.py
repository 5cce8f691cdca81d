"""
Turkish display formatting for amounts and dates.

Formatting is done by hand rather than through the locale module so the
output does not depend on which locales the host has installed.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from kasa.models.finance import InvoiceType, PaymentMethod, to_decimal


TURKISH_MONTHS = (
    "Ocak", "Şubat", "Mart", "Nisan", "Mayıs", "Haziran",
    "Temmuz", "Ağustos", "Eylül", "Ekim", "Kasım", "Aralık",
)

CURRENCY_SYMBOL = "₺"

Number = Union[Decimal, int, float, str, None]


def format_amount(value: Number) -> str:
    """1234.5 -> '1.234,50'"""
    amount = to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    whole, fraction = f"{abs(amount):.2f}".split(".")
    groups = []
    while whole:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    return f"{sign}{'.'.join(groups)},{fraction}"


def format_currency(value: Number) -> str:
    """1234.5 -> '₺1.234,50'"""
    text = format_amount(value)
    if text.startswith("-"):
        return f"-{CURRENCY_SYMBOL}{text[1:]}"
    return f"{CURRENCY_SYMBOL}{text}"


def format_date(value: Optional[date]) -> str:
    """date(2024, 3, 5) -> '5 Mart 2024'"""
    if value is None:
        return ""
    return f"{value.day} {TURKISH_MONTHS[value.month - 1]} {value.year}"


def format_datetime(value: Optional[datetime]) -> str:
    """datetime(2024, 3, 5, 14, 7, 9) -> '05.03.2024 14:07:09'"""
    if value is None:
        return ""
    return value.strftime("%d.%m.%Y %H:%M:%S")


def payment_method_text(method: Optional[PaymentMethod]) -> str:
    """Stored value with underscores spaced out, as shown in lists."""
    if method is None:
        return "Belirtilmemiş"
    return method.value.replace("_", " ")


def invoice_type_text(invoice: Optional[InvoiceType]) -> str:
    if invoice is None:
        return "Yok"
    return invoice.value.replace("_", " ")
