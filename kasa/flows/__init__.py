"""User-facing flows."""

from kasa.flows.admin import RegionAdminFlow, UserAdminFlow
from kasa.flows.dashboard import DashboardFlow, DashboardView
from kasa.flows.live import LiveSnapshot, LiveTransactionList
from kasa.flows.notifications import (
    UNKNOWN_CREATOR,
    NotificationFlow,
    NotificationOverview,
)
from kasa.flows.transactions import (
    ReceiptUpload,
    TransactionFlow,
    TransactionForm,
    user_directory,
)

__all__ = [
    "DashboardFlow",
    "DashboardView",
    "LiveSnapshot",
    "LiveTransactionList",
    "NotificationFlow",
    "NotificationOverview",
    "ReceiptUpload",
    "RegionAdminFlow",
    "TransactionFlow",
    "TransactionForm",
    "UNKNOWN_CREATOR",
    "UserAdminFlow",
    "user_directory",
]
