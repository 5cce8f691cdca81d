"""
Abstract Backend Interfaces

DESIGN DECISION: Every call to the hosted backend goes through one of the
interfaces below. This allows us to:
1. Keep flows decoupled from the Supabase SDK
2. Use in-memory fakes for testing
3. Pass one explicitly built client handle everywhere instead of a
   module-level singleton

The interfaces are intentionally thin. Auth, storage, realtime and
row-level security are owned by the backend; we only call them.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from kasa.models.finance import (
    AuthUser,
    Notification,
    NotificationStatus,
    Profile,
    Region,
    Role,
    Transaction,
    TransactionChanges,
    TransactionDraft,
    TransactionFilter,
)


class AuthGateway(ABC):
    """Session-scoped authentication operations."""

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> AuthUser:
        """
        Sign in with email and password.

        Raises:
            AuthenticationError: If the credentials are rejected
        """
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        pass

    @abstractmethod
    async def get_current_user(self) -> Optional[AuthUser]:
        """Return the signed-in user, or None when there is no session."""
        pass

    @abstractmethod
    async def request_password_reset(self, email: str, redirect_to: str) -> None:
        """Send a recovery email whose link returns to ``redirect_to``."""
        pass

    @abstractmethod
    async def update_password(self, password: str) -> None:
        """Set a new password for the current session's user."""
        pass

    @abstractmethod
    async def exchange_code_for_session(self, code: str) -> AuthUser:
        """Complete an email-link flow by exchanging its code for a session."""
        pass


class TransactionStorage(ABC):
    """Operations on the ``transactions`` table."""

    @abstractmethod
    async def list_transactions(self, filters: TransactionFilter) -> list[Transaction]:
        """
        List transactions matching the filter, with joined region names.

        The filter is applied as given; role scoping happens before this
        call. ``search_term`` is not applied here.
        """
        pass

    @abstractmethod
    async def list_recent(
        self,
        limit: int,
        region_id: Optional[str] = None,
    ) -> list[Transaction]:
        """Most recent transactions by transaction date."""
        pass

    @abstractmethod
    async def create_transaction(self, draft: TransactionDraft) -> Transaction:
        pass

    @abstractmethod
    async def update_transaction(
        self,
        transaction_id: str,
        changes: TransactionChanges,
    ) -> None:
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> None:
        pass


class RegionStorage(ABC):
    """Operations on the ``regions`` table."""

    @abstractmethod
    async def list_regions(self) -> list[Region]:
        """All regions ordered by name."""
        pass

    @abstractmethod
    async def create_region(self, name: str) -> Region:
        pass

    @abstractmethod
    async def delete_region(self, region_id: str) -> None:
        pass


class ProfileStorage(ABC):
    """Operations on the ``profiles`` table."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[Profile]:
        pass

    @abstractmethod
    async def list_profiles(self) -> list[Profile]:
        """All profiles with joined region names, ordered by full name."""
        pass

    @abstractmethod
    async def update_profile(
        self,
        user_id: str,
        full_name: str,
        role: Role,
        region_id: Optional[str],
    ) -> None:
        pass


class NotificationStorage(ABC):
    """Operations on ``notifications`` and ``user_notification_status``."""

    @abstractmethod
    async def create_notification(self, message: str, created_by: str) -> Notification:
        pass

    @abstractmethod
    async def list_notifications(self) -> list[Notification]:
        """All notifications, newest first."""
        pass

    @abstractmethod
    async def list_active(self) -> list[Notification]:
        pass

    @abstractmethod
    async def deactivate(self, notification_id: str) -> None:
        pass

    @abstractmethod
    async def list_dismissals(self, notification_id: str) -> list[NotificationStatus]:
        """Dismissal records (``is_dismissed`` true) of one notification."""
        pass

    @abstractmethod
    async def list_dismissed_ids(self, user_id: str) -> set[str]:
        """Ids of the notifications a user has dismissed."""
        pass

    @abstractmethod
    async def dismiss(self, status: NotificationStatus) -> None:
        """Insert or update the user's status row for the notification."""
        pass


class ReceiptStorage(ABC):
    """Object storage for receipt images."""

    @abstractmethod
    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        """
        Upload an object.

        Returns:
            The stored object's path, to be saved on the transaction
        """
        pass

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        pass


class UserAdministration(ABC):
    """
    Privileged user management.

    Implementations hold service-role credentials and must never be
    reachable from code that runs for non-admin users without a role check.
    """

    @abstractmethod
    async def create_user(self, email: str, password: str, full_name: str) -> str:
        """
        Create a confirmed auth user.

        Returns:
            The new user's id
        """
        pass

    @abstractmethod
    async def delete_user(self, user_id: str) -> None:
        pass

    @abstractmethod
    async def insert_profile(
        self,
        user_id: str,
        full_name: str,
        role: Role,
        region_id: Optional[str],
    ) -> None:
        pass


class Subscription(ABC):
    """Handle of an open change-feed subscription."""

    @abstractmethod
    def unsubscribe(self) -> None:
        """Stop receiving changes. Safe to call more than once."""
        pass


ChangeCallback = Callable[[dict[str, Any]], None]


class ChangeFeed(ABC):
    """Realtime insert/update/delete notifications for a table."""

    @abstractmethod
    def subscribe(self, table: str, callback: ChangeCallback) -> Subscription:
        pass


class BackendError(Exception):
    """Base exception for backend operations."""
    pass


class StorageError(BackendError):
    """A data-store operation failed."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class AuthenticationError(BackendError):
    """The auth service rejected the request."""
    pass


class ConnectionError(BackendError):
    """Could not connect to the backend."""
    pass


class AuthorizationError(Exception):
    """The acting user's role does not permit the operation."""

    def __init__(self, message: str, action: str = ""):
        super().__init__(message)
        self.action = action
