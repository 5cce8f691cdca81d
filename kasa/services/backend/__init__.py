"""
Backend Services Package

Abstract interfaces over the hosted backend and their Supabase
implementations. Flows depend on the interfaces only.
"""

from kasa.services.backend.interface import (
    AuthenticationError,
    AuthGateway,
    AuthorizationError,
    BackendError,
    ChangeCallback,
    ChangeFeed,
    ConnectionError,
    NotFoundError,
    NotificationStorage,
    ProfileStorage,
    ReceiptStorage,
    RegionStorage,
    StorageError,
    Subscription,
    TransactionStorage,
    UserAdministration,
)
from kasa.services.backend.realtime import SupabaseChangeFeed
from kasa.services.backend.supabase_backend import (
    SupabaseAuthGateway,
    SupabaseClient,
    SupabaseNotificationStorage,
    SupabaseProfileStorage,
    SupabaseReceiptStorage,
    SupabaseRegionStorage,
    SupabaseTransactionStorage,
    SupabaseUserAdministration,
)

__all__ = [
    # Interfaces
    "AuthGateway",
    "ChangeCallback",
    "ChangeFeed",
    "NotificationStorage",
    "ProfileStorage",
    "ReceiptStorage",
    "RegionStorage",
    "Subscription",
    "TransactionStorage",
    "UserAdministration",
    # Exceptions
    "AuthenticationError",
    "AuthorizationError",
    "BackendError",
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Supabase implementation
    "SupabaseAuthGateway",
    "SupabaseChangeFeed",
    "SupabaseClient",
    "SupabaseNotificationStorage",
    "SupabaseProfileStorage",
    "SupabaseReceiptStorage",
    "SupabaseRegionStorage",
    "SupabaseTransactionStorage",
    "SupabaseUserAdministration",
]
