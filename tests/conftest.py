"""
Shared fixtures for Kasa tests.

Every backend interface has an in-memory fake here. Fakes record the
calls they receive so tests can assert that rejected actions never
reached the backend.
"""

from datetime import date, datetime
from decimal import Decimal
from itertools import count
from typing import Optional

import pytest

from kasa.audit import AuditLogger
from kasa.auth import Authorizer
from kasa.config import AppSettings
from kasa.models.audit import AuditEvent
from kasa.models.finance import (
    NO_INVOICE,
    AuthUser,
    Notification,
    NotificationStatus,
    PaymentMethod,
    Profile,
    Region,
    Role,
    SortOrder,
    Transaction,
    TransactionChanges,
    TransactionDraft,
    TransactionFilter,
    TransactionType,
)
from kasa.services.backend.interface import (
    AuthenticationError,
    AuthGateway,
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
from kasa.validation import FormValidator


# =============================================================================
# AUDIT
# =============================================================================

class RecordingAuditLogger(AuditLogger):
    """Keeps events in memory instead of writing them."""

    def __init__(self):
        super().__init__()
        self.events: list[AuditEvent] = []

    async def log(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    @property
    def event_types(self) -> list:
        return [event.event_type for event in self.events]


# =============================================================================
# STORAGE FAKES
# =============================================================================

class FakeTransactionStorage(TransactionStorage):
    def __init__(self, transactions: Optional[list[Transaction]] = None, regions=None):
        self.rows: list[Transaction] = list(transactions or [])
        self.region_names = {r.id: r.name for r in regions or []}
        self.calls: list[str] = []
        self.last_filter: Optional[TransactionFilter] = None
        self.fail_with: Optional[Exception] = None
        self._ids = count(1000)

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def list_transactions(self, filters: TransactionFilter) -> list[Transaction]:
        self.calls.append("list_transactions")
        self.last_filter = filters
        self._maybe_fail()

        rows = list(self.rows)
        if filters.start_date:
            rows = [t for t in rows if t.transaction_date >= filters.start_date]
        if filters.end_date:
            rows = [t for t in rows if t.transaction_date <= filters.end_date]
        if filters.type:
            rows = [t for t in rows if t.type == filters.type]
        if filters.payment_method:
            rows = [t for t in rows if t.payment_method == filters.payment_method]
        if filters.invoice_type == NO_INVOICE:
            rows = [t for t in rows if t.invoice_type is None]
        elif filters.invoice_type:
            rows = [
                t for t in rows
                if t.invoice_type is not None and t.invoice_type.value == filters.invoice_type
            ]
        if filters.region_id:
            rows = [t for t in rows if t.region_id == filters.region_id]
        if filters.user_id:
            rows = [t for t in rows if t.user_id == filters.user_id]
        if filters.expense_region_info:
            rows = [t for t in rows if t.expense_region_info == filters.expense_region_info]

        rows.sort(
            key=lambda t: getattr(t, filters.sort_by.value) or datetime.min,
            reverse=filters.sort_order == SortOrder.DESC,
        )
        return rows[: filters.limit]

    async def list_recent(self, limit: int, region_id: Optional[str] = None) -> list[Transaction]:
        self.calls.append("list_recent")
        self._maybe_fail()
        rows = [t for t in self.rows if region_id is None or t.region_id == region_id]
        rows.sort(key=lambda t: t.transaction_date, reverse=True)
        return rows[:limit]

    async def create_transaction(self, draft: TransactionDraft) -> Transaction:
        self.calls.append("create_transaction")
        self._maybe_fail()
        record = draft.to_record()
        record["id"] = str(next(self._ids))
        record["region_name"] = self.region_names.get(draft.region_id)
        record["created_at"] = datetime(2024, 3, 1, 12, 0, 0)
        created = Transaction.model_validate(record)
        self.rows.append(created)
        return created

    async def update_transaction(self, transaction_id: str, changes: TransactionChanges) -> None:
        self.calls.append("update_transaction")
        self._maybe_fail()
        for index, row in enumerate(self.rows):
            if row.id == transaction_id:
                updated = row.model_dump(by_alias=True)
                updated.update(changes.to_record())
                self.rows[index] = Transaction.model_validate(updated)
                return
        raise NotFoundError(f"Transaction not found: {transaction_id}")

    async def delete_transaction(self, transaction_id: str) -> None:
        self.calls.append("delete_transaction")
        self._maybe_fail()
        self.rows = [row for row in self.rows if row.id != transaction_id]


class FakeRegionStorage(RegionStorage):
    def __init__(self, regions: Optional[list[Region]] = None):
        self.regions: list[Region] = list(regions or [])
        self.calls: list[str] = []
        self.fail_with: Optional[Exception] = None
        self._ids = count(100)

    async def list_regions(self) -> list[Region]:
        self.calls.append("list_regions")
        if self.fail_with is not None:
            raise self.fail_with
        return sorted(self.regions, key=lambda r: r.name)

    async def create_region(self, name: str) -> Region:
        self.calls.append("create_region")
        if self.fail_with is not None:
            raise self.fail_with
        region = Region(id=str(next(self._ids)), name=name)
        self.regions.append(region)
        return region

    async def delete_region(self, region_id: str) -> None:
        self.calls.append("delete_region")
        if self.fail_with is not None:
            raise self.fail_with
        self.regions = [r for r in self.regions if r.id != region_id]


class FakeProfileStorage(ProfileStorage):
    def __init__(self, profiles: Optional[list[Profile]] = None):
        self.profiles: dict[str, Profile] = {p.id: p for p in profiles or []}
        self.calls: list[str] = []
        self.fail_with: Optional[Exception] = None

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        self.calls.append("get_profile")
        if self.fail_with is not None:
            raise self.fail_with
        return self.profiles.get(user_id)

    async def list_profiles(self) -> list[Profile]:
        self.calls.append("list_profiles")
        if self.fail_with is not None:
            raise self.fail_with
        return sorted(self.profiles.values(), key=lambda p: p.full_name)

    async def update_profile(self, user_id, full_name, role, region_id) -> None:
        self.calls.append("update_profile")
        if self.fail_with is not None:
            raise self.fail_with
        self.profiles[user_id] = Profile(
            id=user_id, full_name=full_name, role=role, region_id=region_id
        )


class FakeNotificationStorage(NotificationStorage):
    def __init__(self, notifications: Optional[list[Notification]] = None):
        self.notifications: list[Notification] = list(notifications or [])
        self.statuses: dict[tuple[str, str], NotificationStatus] = {}
        self.calls: list[str] = []
        self.fail_with: Optional[Exception] = None
        self._ids = count(1)

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def create_notification(self, message: str, created_by: str) -> Notification:
        self.calls.append("create_notification")
        self._maybe_fail()
        notification = Notification(
            id=str(next(self._ids)),
            message=message,
            created_by=created_by,
            created_at=datetime(2024, 3, 1, 9, 0, 0),
        )
        self.notifications.insert(0, notification)
        return notification

    async def list_notifications(self) -> list[Notification]:
        self.calls.append("list_notifications")
        self._maybe_fail()
        return list(self.notifications)

    async def list_active(self) -> list[Notification]:
        self.calls.append("list_active")
        self._maybe_fail()
        return [n for n in self.notifications if n.is_active]

    async def deactivate(self, notification_id: str) -> None:
        self.calls.append("deactivate")
        self._maybe_fail()
        self.notifications = [
            n.model_copy(update={"is_active": False}) if n.id == notification_id else n
            for n in self.notifications
        ]

    async def list_dismissals(self, notification_id: str) -> list[NotificationStatus]:
        self.calls.append("list_dismissals")
        self._maybe_fail()
        return [
            s for (_, nid), s in self.statuses.items()
            if nid == notification_id and s.is_dismissed
        ]

    async def list_dismissed_ids(self, user_id: str) -> set[str]:
        self.calls.append("list_dismissed_ids")
        self._maybe_fail()
        return {
            nid for (uid, nid), s in self.statuses.items()
            if uid == user_id and s.is_dismissed
        }

    async def dismiss(self, status: NotificationStatus) -> None:
        self.calls.append("dismiss")
        self._maybe_fail()
        self.statuses[(status.user_id, status.notification_id)] = status


class FakeReceiptStorage(ReceiptStorage):
    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.fail_with: Optional[Exception] = None

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        self.objects[key] = data
        self.content_types[key] = content_type
        return key

    def get_public_url(self, path: str) -> str:
        return f"https://files.example.com/islem-gorselleri/{path}"


class FakeUserAdministration(UserAdministration):
    def __init__(self):
        self.users: dict[str, str] = {}
        self.profiles: dict[str, dict] = {}
        self.calls: list[str] = []
        self.fail_create: Optional[Exception] = None
        self.fail_profile: Optional[Exception] = None
        self.fail_delete: Optional[Exception] = None
        self._ids = count(1)

    async def create_user(self, email: str, password: str, full_name: str) -> str:
        self.calls.append("create_user")
        if self.fail_create is not None:
            raise self.fail_create
        user_id = f"user-{next(self._ids)}"
        self.users[user_id] = email
        return user_id

    async def delete_user(self, user_id: str) -> None:
        self.calls.append("delete_user")
        if self.fail_delete is not None:
            raise self.fail_delete
        self.users.pop(user_id, None)

    async def insert_profile(self, user_id, full_name, role, region_id) -> None:
        self.calls.append("insert_profile")
        if self.fail_profile is not None:
            raise self.fail_profile
        self.profiles[user_id] = {
            "full_name": full_name,
            "role": role,
            "region_id": region_id,
        }


class FakeAuthGateway(AuthGateway):
    def __init__(self, accounts: Optional[dict[str, tuple[str, str]]] = None):
        # email -> (password, user id)
        self.accounts = dict(accounts or {})
        self.current: Optional[AuthUser] = None
        self.valid_codes: dict[str, AuthUser] = {}
        self.reset_requests: list[tuple[str, str]] = []
        self.new_password: Optional[str] = None
        self.fail_reset: Optional[Exception] = None
        self.fail_update: Optional[Exception] = None

    async def sign_in_with_password(self, email: str, password: str) -> AuthUser:
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            raise AuthenticationError("Invalid login credentials")
        self.current = AuthUser(id=account[1], email=email)
        return self.current

    async def sign_out(self) -> None:
        self.current = None

    async def get_current_user(self) -> Optional[AuthUser]:
        return self.current

    async def request_password_reset(self, email: str, redirect_to: str) -> None:
        if self.fail_reset is not None:
            raise self.fail_reset
        self.reset_requests.append((email, redirect_to))

    async def update_password(self, password: str) -> None:
        if self.fail_update is not None:
            raise self.fail_update
        self.new_password = password

    async def exchange_code_for_session(self, code: str) -> AuthUser:
        user = self.valid_codes.get(code)
        if user is None:
            raise AuthenticationError("invalid flow state, no valid flow state found")
        self.current = user
        return user


class FakeSubscription(Subscription):
    def __init__(self, feed: "FakeChangeFeed", table: str, callback):
        self.feed = feed
        self.table = table
        self.callback = callback
        self.unsubscribe_count = 0

    def unsubscribe(self) -> None:
        self.unsubscribe_count += 1
        if self in self.feed.subscriptions:
            self.feed.subscriptions.remove(self)


class FakeChangeFeed(ChangeFeed):
    def __init__(self, fail: bool = False):
        self.subscriptions: list[FakeSubscription] = []
        self.opened: list[FakeSubscription] = []
        self.fail = fail

    def subscribe(self, table: str, callback) -> Subscription:
        if self.fail:
            raise ConnectionError("Realtime channel could not be joined")
        subscription = FakeSubscription(self, table, callback)
        self.subscriptions.append(subscription)
        self.opened.append(subscription)
        return subscription

    def emit(self, table: str, payload: Optional[dict] = None) -> None:
        for subscription in list(self.subscriptions):
            if subscription.table == table:
                subscription.callback(payload or {"eventType": "INSERT"})


# =============================================================================
# DATA
# =============================================================================

def make_transaction(
    id: str,
    amount: str,
    type: TransactionType = TransactionType.EXPENSE,
    payment_method: Optional[PaymentMethod] = PaymentMethod.CASH,
    region_id: Optional[str] = "r1",
    region_name: Optional[str] = "Ankara",
    transaction_date: date = date(2024, 3, 5),
    **extra,
) -> Transaction:
    return Transaction(
        id=id,
        title=extra.pop("title", f"İşlem {id}"),
        amount=Decimal(amount),
        type=type,
        payment_method=payment_method,
        transaction_date=transaction_date,
        region_id=region_id,
        region_name=region_name,
        **extra,
    )


@pytest.fixture
def settings():
    return AppSettings()


@pytest.fixture
def audit():
    return RecordingAuditLogger()


@pytest.fixture
def validator(settings):
    return FormValidator(settings)


@pytest.fixture
def authorizer(audit):
    return Authorizer(audit)


@pytest.fixture
def regions():
    return [Region(id="r1", name="Ankara"), Region(id="r2", name="İstanbul")]


@pytest.fixture
def admin():
    return Profile(id="admin-1", full_name="Ayşe Yönetici", role=Role.SUPER_ADMIN, region_id="r1")


@pytest.fixture
def editor():
    return Profile(id="editor-1", full_name="Mehmet Editör", role=Role.REGIONAL_EDITOR, region_id="r2")


@pytest.fixture
def base_user():
    return Profile(id="user-1", full_name="Ali Kullanıcı", role=Role.BASE_USER, region_id="r1")


@pytest.fixture
def sample_transactions():
    return [
        make_transaction(
            "1", "100", type=TransactionType.INCOME,
            transaction_date=date(2024, 3, 1), user_id="user-1",
        ),
        make_transaction(
            "2", "40", payment_method=PaymentMethod.CASH,
            transaction_date=date(2024, 3, 2), user_id="user-1",
            description="Kırtasiye",
        ),
        make_transaction(
            "3", "25", payment_method=PaymentMethod.CARD,
            region_id="r2", region_name="İstanbul",
            transaction_date=date(2024, 3, 3), user_id="editor-1",
            fatura_tipi="FATURA", expense_region_info="İstanbul",
        ),
    ]


@pytest.fixture
def storage_error():
    return StorageError("duplicate key value violates unique constraint")
