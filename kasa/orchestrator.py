"""
Composition root for Kasa.

This module builds every component once per user session and wires them
together explicitly:
1. One SupabaseClient handle (the SDK client carries the session)
2. One storage object per backend concern, all sharing that handle
3. The services and flows the UI calls

DESIGN DECISION: Nothing in the package reaches for a global client.
Tests build the same flows from in-memory fakes instead of calling
create_app_components().
"""

from dataclasses import dataclass, field
from typing import Optional

import structlog

from kasa.audit import AuditLogger, configure_logging
from kasa.auth import AuthService, Authorizer
from kasa.config import AppSettings, Settings, get_settings
from kasa.flows import (
    DashboardFlow,
    LiveTransactionList,
    NotificationFlow,
    RegionAdminFlow,
    TransactionFlow,
    UserAdminFlow,
)
from kasa.models.finance import Profile, TransactionFilter
from kasa.services.backend import (
    SupabaseAuthGateway,
    SupabaseChangeFeed,
    SupabaseClient,
    SupabaseNotificationStorage,
    SupabaseProfileStorage,
    SupabaseReceiptStorage,
    SupabaseRegionStorage,
    SupabaseTransactionStorage,
    SupabaseUserAdministration,
)
from kasa.services.images import ReceiptImageService
from kasa.validation import FormValidator


logger = structlog.get_logger(__name__)


@dataclass
class AppComponents:
    """Everything one user session needs."""

    client: SupabaseClient
    auth: AuthService
    dashboard: DashboardFlow
    transactions: TransactionFlow
    users: UserAdminFlow
    regions: RegionAdminFlow
    notifications: NotificationFlow
    receipts: ReceiptImageService
    audit: AuditLogger
    settings: AppSettings
    _change_feed: Optional[SupabaseChangeFeed] = field(default=None, repr=False)

    def change_feed(self) -> SupabaseChangeFeed:
        """The session's realtime feed, authenticated as the signed-in user."""
        if self._change_feed is None:
            self._change_feed = SupabaseChangeFeed(
                self.client.settings,
                access_token=self.client.access_token(),
            )
        return self._change_feed

    def live_transactions(
        self,
        actor: Profile,
        filters: Optional[TransactionFilter] = None,
    ) -> LiveTransactionList:
        return LiveTransactionList(
            self.transactions,
            self.change_feed(),
            actor,
            filters,
        )

    def close(self) -> None:
        """Release the realtime thread, if one was started."""
        if self._change_feed is not None:
            self._change_feed.close()
            self._change_feed = None


_logging_configured = False


def create_app_components(settings: Optional[Settings] = None) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use; defaults to the cached environment settings

    Returns:
        AppComponents sharing one Supabase client handle
    """
    global _logging_configured

    settings = settings or get_settings()
    app_settings = settings.app
    supabase_settings = settings.supabase

    if not _logging_configured:
        configure_logging(debug=app_settings.debug_mode)
        _logging_configured = True

    client = SupabaseClient(supabase_settings)
    audit = AuditLogger()
    authorizer = Authorizer(audit)
    validator = FormValidator(app_settings)

    profiles = SupabaseProfileStorage(client)
    regions = SupabaseRegionStorage(client)
    transactions = SupabaseTransactionStorage(client)
    notifications = SupabaseNotificationStorage(client)
    receipts = ReceiptImageService(SupabaseReceiptStorage(client), app_settings)

    if not supabase_settings.has_admin_access:
        logger.warning("user_administration_disabled", reason="no service role key")

    components = AppComponents(
        client=client,
        auth=AuthService(
            SupabaseAuthGateway(client),
            profiles,
            validator=validator,
            audit=audit,
            settings=app_settings,
        ),
        dashboard=DashboardFlow(transactions, regions, settings=app_settings),
        transactions=TransactionFlow(
            transactions,
            regions,
            profiles,
            receipts,
            validator=validator,
            authorizer=authorizer,
            audit=audit,
            settings=app_settings,
        ),
        users=UserAdminFlow(
            profiles,
            SupabaseUserAdministration(client),
            validator=validator,
            authorizer=authorizer,
            audit=audit,
        ),
        regions=RegionAdminFlow(
            regions,
            validator=validator,
            authorizer=authorizer,
            audit=audit,
        ),
        notifications=NotificationFlow(
            notifications,
            profiles,
            validator=validator,
            authorizer=authorizer,
            audit=audit,
            settings=app_settings,
        ),
        receipts=receipts,
        audit=audit,
        settings=app_settings,
    )
    return components
