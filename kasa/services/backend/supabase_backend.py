"""
Supabase Backend Implementation

DESIGN DECISION: Supabase is the system of record. It owns:
1. Authentication (password sign-in, recovery emails, sessions)
2. The relational tables, protected by row-level security
3. Object storage for receipt images
4. The realtime change feed

We only call its client SDK. Each browser session gets its own
SupabaseClient handle (sessions live inside the SDK client), built
explicitly by the orchestrator and passed to every storage class here.

Data operations are NOT retried. A failure surfaces its message to the
user and the operation is aborted. Only building the client is retried.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from supabase import Client, create_client
from tenacity import retry, stop_after_attempt, wait_exponential

from kasa.config import SupabaseSettings, get_settings
from kasa.models.finance import (
    NO_INVOICE,
    AuthUser,
    Notification,
    NotificationStatus,
    Profile,
    Region,
    Role,
    SortOrder,
    Transaction,
    TransactionChanges,
    TransactionDraft,
    TransactionFilter,
)
from kasa.services.backend.interface import (
    AuthenticationError,
    AuthGateway,
    ConnectionError,
    NotFoundError,
    NotificationStorage,
    ProfileStorage,
    ReceiptStorage,
    RegionStorage,
    StorageError,
    TransactionStorage,
    UserAdministration,
)


# Table names
TRANSACTIONS_TABLE = "transactions"
REGIONS_TABLE = "regions"
PROFILES_TABLE = "profiles"
NOTIFICATIONS_TABLE = "notifications"
NOTIFICATION_STATUS_TABLE = "user_notification_status"

# Select clauses with joined region names
TRANSACTION_COLUMNS = "*, regions(name)"
PROFILE_COLUMNS = "*, regions(name)"


def error_message(error: Exception) -> str:
    """Extract the backend's own message from an SDK exception."""
    message = getattr(error, "message", None)
    return message if isinstance(message, str) and message else str(error)


def _to_auth_user(user: Any) -> AuthUser:
    return AuthUser(id=user.id, email=getattr(user, "email", None))


class SupabaseClient:
    """
    Handle to the hosted backend.

    Wraps one session-scoped SDK client (anon key) and, when configured,
    one privileged client (service role key) used only for user
    administration.
    """

    def __init__(self, settings: Optional[SupabaseSettings] = None):
        self._settings = settings or get_settings().supabase
        self._client: Optional[Client] = None
        self._admin_client: Optional[Client] = None

    @property
    def settings(self) -> SupabaseSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> Client:
        """Build the session client on first use."""
        if self._client is None:
            try:
                self._client = create_client(
                    self._settings.url,
                    self._settings.anon_key,
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Supabase: {e}")
        return self._client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def admin(self) -> Client:
        """Build the service-role client on first use."""
        if self._admin_client is None:
            if not self._settings.service_role_key:
                raise ConnectionError(
                    "SUPABASE_SERVICE_ROLE_KEY is not configured; "
                    "user administration is unavailable"
                )
            try:
                self._admin_client = create_client(
                    self._settings.url,
                    self._settings.service_role_key,
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Supabase (admin): {e}")
        return self._admin_client

    def access_token(self) -> Optional[str]:
        """Access token of the current session, if signed in."""
        if self._client is None:
            return None
        try:
            session = self._client.auth.get_session()
        except Exception:
            return None
        return session.access_token if session else None

    def table(self, name: str):
        return self.connect().table(name)


class SupabaseAuthGateway(AuthGateway):
    """Auth operations through the session client."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    async def sign_in_with_password(self, email: str, password: str) -> AuthUser:
        try:
            response = self._client.connect().auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise AuthenticationError(error_message(e))
        if response is None or response.user is None:
            raise AuthenticationError("No user returned for these credentials")
        return _to_auth_user(response.user)

    async def sign_out(self) -> None:
        try:
            self._client.connect().auth.sign_out()
        except Exception as e:
            raise AuthenticationError(error_message(e))

    async def get_current_user(self) -> Optional[AuthUser]:
        try:
            response = self._client.connect().auth.get_user()
        except ConnectionError:
            raise
        except Exception:
            # Expired or missing session
            return None
        if response is None or response.user is None:
            return None
        return _to_auth_user(response.user)

    async def request_password_reset(self, email: str, redirect_to: str) -> None:
        try:
            self._client.connect().auth.reset_password_for_email(
                email,
                {"redirect_to": redirect_to},
            )
        except Exception as e:
            raise AuthenticationError(error_message(e))

    async def update_password(self, password: str) -> None:
        try:
            self._client.connect().auth.update_user({"password": password})
        except Exception as e:
            raise AuthenticationError(error_message(e))

    async def exchange_code_for_session(self, code: str) -> AuthUser:
        try:
            response = self._client.connect().auth.exchange_code_for_session(
                {"auth_code": code}
            )
        except Exception as e:
            raise AuthenticationError(error_message(e))
        if response is None or response.user is None:
            raise AuthenticationError("Code exchange returned no user")
        return _to_auth_user(response.user)


class SupabaseTransactionStorage(TransactionStorage):
    """Transactions table access."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    def _apply_filters(self, query, filters: TransactionFilter):
        if filters.start_date:
            query = query.gte("transaction_date", filters.start_date.isoformat())
        if filters.end_date:
            query = query.lte("transaction_date", filters.end_date.isoformat())
        if filters.type:
            query = query.eq("type", filters.type.value)
        if filters.payment_method:
            query = query.eq("payment_method", filters.payment_method.value)
        if filters.invoice_type:
            if filters.invoice_type == NO_INVOICE:
                query = query.is_("fatura_tipi", "null")
            else:
                query = query.eq("fatura_tipi", filters.invoice_type)
        if filters.region_id:
            query = query.eq("region_id", filters.region_id)
        if filters.user_id:
            query = query.eq("user_id", filters.user_id)
        if filters.expense_region_info:
            query = query.eq("expense_region_info", filters.expense_region_info)
        return query

    async def list_transactions(self, filters: TransactionFilter) -> list[Transaction]:
        try:
            query = (
                self._client.table(TRANSACTIONS_TABLE)
                .select(TRANSACTION_COLUMNS)
                .order(filters.sort_by.value, desc=filters.sort_order == SortOrder.DESC)
                .limit(filters.limit)
            )
            response = self._apply_filters(query, filters).execute()
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {error_message(e)}")
        return [Transaction.model_validate(row) for row in response.data or []]

    async def list_recent(
        self,
        limit: int,
        region_id: Optional[str] = None,
    ) -> list[Transaction]:
        try:
            query = (
                self._client.table(TRANSACTIONS_TABLE)
                .select(TRANSACTION_COLUMNS)
                .order("transaction_date", desc=True)
                .limit(limit)
            )
            if region_id:
                query = query.eq("region_id", region_id)
            response = query.execute()
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list recent transactions: {error_message(e)}")
        return [Transaction.model_validate(row) for row in response.data or []]

    async def create_transaction(self, draft: TransactionDraft) -> Transaction:
        try:
            response = (
                self._client.table(TRANSACTIONS_TABLE)
                .insert(draft.to_record())
                .execute()
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(error_message(e))
        if not response.data:
            raise StorageError("Insert returned no row")
        return Transaction.model_validate(response.data[0])

    async def update_transaction(
        self,
        transaction_id: str,
        changes: TransactionChanges,
    ) -> None:
        try:
            response = (
                self._client.table(TRANSACTIONS_TABLE)
                .update(changes.to_record())
                .eq("id", transaction_id)
                .execute()
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(error_message(e))
        if not response.data:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

    async def delete_transaction(self, transaction_id: str) -> None:
        try:
            (
                self._client.table(TRANSACTIONS_TABLE)
                .delete()
                .eq("id", transaction_id)
                .execute()
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(error_message(e))


class SupabaseRegionStorage(RegionStorage):
    """Regions table access."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    async def list_regions(self) -> list[Region]:
        try:
            response = (
                self._client.table(REGIONS_TABLE)
                .select("id, name")
                .order("name")
                .execute()
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list regions: {error_message(e)}")
        return [Region.model_validate(row) for row in response.data or []]

    async def create_region(self, name: str) -> Region:
        try:
            response = (
                self._client.table(REGIONS_TABLE)
                .insert({"name": name})
                .execute()
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(error_message(e))
        if not response.data:
            raise StorageError("Insert returned no row")
        return Region.model_validate(response.data[0])

    async def delete_region(self, region_id: str) -> None:
        try:
            self._client.table(REGIONS_TABLE).delete().eq("id", region_id).execute()
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(error_message(e))


class SupabaseProfileStorage(ProfileStorage):
    """Profiles table access through the session client."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        try:
            response = (
                self._client.table(PROFILES_TABLE)
                .select(PROFILE_COLUMNS)
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load profile: {error_message(e)}")
        if not response.data:
            return None
        return Profile.model_validate(response.data[0])

    async def list_profiles(self) -> list[Profile]:
        try:
            response = (
                self._client.table(PROFILES_TABLE)
                .select(PROFILE_COLUMNS)
                .order("full_name")
                .execute()
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list profiles: {error_message(e)}")
        return [Profile.model_validate(row) for row in response.data or []]

    async def update_profile(
        self,
        user_id: str,
        full_name: str,
        role: Role,
        region_id: Optional[str],
    ) -> None:
        try:
            (
                self._client.table(PROFILES_TABLE)
                .update({
                    "full_name": full_name,
                    "role": role.value,
                    "region_id": region_id,
                })
                .eq("id", user_id)
                .execute()
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(error_message(e))


class SupabaseNotificationStorage(NotificationStorage):
    """Notifications and per-user dismissal status."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    async def create_notification(self, message: str, created_by: str) -> Notification:
        try:
            response = (
                self._client.table(NOTIFICATIONS_TABLE)
                .insert({"message": message, "created_by": created_by})
                .execute()
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(error_message(e))
        if not response.data:
            raise StorageError("Insert returned no row")
        return Notification.model_validate(response.data[0])

    async def list_notifications(self) -> list[Notification]:
        try:
            response = (
                self._client.table(NOTIFICATIONS_TABLE)
                .select("*")
                .order("created_at", desc=True)
                .execute()
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list notifications: {error_message(e)}")
        return [Notification.model_validate(row) for row in response.data or []]

    async def list_active(self) -> list[Notification]:
        try:
            response = (
                self._client.table(NOTIFICATIONS_TABLE)
                .select("*")
                .eq("is_active", True)
                .order("created_at", desc=True)
                .execute()
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list notifications: {error_message(e)}")
        return [Notification.model_validate(row) for row in response.data or []]

    async def deactivate(self, notification_id: str) -> None:
        try:
            (
                self._client.table(NOTIFICATIONS_TABLE)
                .update({"is_active": False})
                .eq("id", notification_id)
                .execute()
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(error_message(e))

    async def list_dismissals(self, notification_id: str) -> list[NotificationStatus]:
        try:
            response = (
                self._client.table(NOTIFICATION_STATUS_TABLE)
                .select("user_id, notification_id, is_dismissed, dismissed_at")
                .eq("notification_id", notification_id)
                .eq("is_dismissed", True)
                .execute()
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load notification status: {error_message(e)}")
        return [NotificationStatus.model_validate(row) for row in response.data or []]

    async def list_dismissed_ids(self, user_id: str) -> set[str]:
        try:
            response = (
                self._client.table(NOTIFICATION_STATUS_TABLE)
                .select("notification_id")
                .eq("user_id", user_id)
                .eq("is_dismissed", True)
                .execute()
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load notification status: {error_message(e)}")
        return {str(row["notification_id"]) for row in response.data or []}

    async def dismiss(self, status: NotificationStatus) -> None:
        dismissed_at = status.dismissed_at or datetime.now(timezone.utc)
        try:
            (
                self._client.table(NOTIFICATION_STATUS_TABLE)
                .upsert(
                    {
                        "user_id": status.user_id,
                        "notification_id": status.notification_id,
                        "is_dismissed": status.is_dismissed,
                        "dismissed_at": dismissed_at.isoformat(),
                    },
                    on_conflict="user_id,notification_id",
                )
                .execute()
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(error_message(e))


class SupabaseReceiptStorage(ReceiptStorage):
    """Receipt images in a public storage bucket."""

    def __init__(self, client: SupabaseClient, bucket: Optional[str] = None):
        self._client = client
        self._bucket = bucket or client.settings.receipts_bucket

    def _bucket_api(self):
        return self._client.connect().storage.from_(self._bucket)

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        try:
            result = self._bucket_api().upload(
                path=key,
                file=data,
                file_options={"content-type": content_type},
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(error_message(e))
        # Newer SDKs return an UploadResponse carrying the stored path
        return getattr(result, "path", None) or key

    def get_public_url(self, path: str) -> str:
        try:
            return self._bucket_api().get_public_url(path)
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(error_message(e))


class SupabaseUserAdministration(UserAdministration):
    """User management through the service-role client."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    async def create_user(self, email: str, password: str, full_name: str) -> str:
        try:
            response = self._client.admin().auth.admin.create_user({
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": {"full_name": full_name},
            })
        except ConnectionError:
            raise
        except Exception as e:
            raise AuthenticationError(error_message(e))
        if response is None or response.user is None:
            raise AuthenticationError("User creation returned no user")
        return str(response.user.id)

    async def delete_user(self, user_id: str) -> None:
        try:
            self._client.admin().auth.admin.delete_user(user_id)
        except ConnectionError:
            raise
        except Exception as e:
            raise AuthenticationError(error_message(e))

    async def insert_profile(
        self,
        user_id: str,
        full_name: str,
        role: Role,
        region_id: Optional[str],
    ) -> None:
        try:
            (
                self._client.admin()
                .table(PROFILES_TABLE)
                .insert({
                    "id": user_id,
                    "full_name": full_name,
                    "role": role.value,
                    "region_id": region_id,
                })
                .execute()
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(error_message(e))
