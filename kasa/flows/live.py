"""
Live transaction list.

While a transaction list is open it listens to the change feed. Any
insert, update or delete marks the list stale; the next read re-runs the
fetch and aggregation. Reads are not deduplicated: the last fetch wins.

Usage:
    with LiveTransactionList(flow, feed, actor, filters) as live:
        snapshot = await live.current()

The subscription is released when the block exits, even on error.
"""

import threading
from datetime import datetime
from typing import Any, Optional

import structlog
from pydantic import BaseModel

from kasa.models.finance import Profile, TransactionFilter
from kasa.queries import TransactionListing
from kasa.services.backend.interface import (
    BackendError,
    ChangeFeed,
    Subscription,
)


logger = structlog.get_logger(__name__)

TRANSACTIONS_TABLE = "transactions"
FETCH_FAILED_PREFIX = "İşlemler yüklenirken bir sorun oluştu"


class LiveSnapshot(BaseModel):
    """The most recent successful listing, plus the last fetch error."""

    listing: Optional[TransactionListing] = None
    error: Optional[str] = None
    refreshed_at: Optional[datetime] = None
    version: int = 0


class LiveTransactionList:
    """
    A transaction listing kept fresh by the change feed.

    A failed fetch keeps the previous listing and reports the error on
    the snapshot; the list stays stale so the next read tries again.
    """

    def __init__(
        self,
        flow,
        feed: Optional[ChangeFeed],
        actor: Profile,
        filters: Optional[TransactionFilter] = None,
    ):
        self._flow = flow
        self._feed = feed
        self._actor = actor
        self._filters = filters
        self._subscription: Optional[Subscription] = None
        self._stale = threading.Event()
        self._stale.set()
        self._snapshot = LiveSnapshot()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_live(self) -> bool:
        """Whether change notifications are being received."""
        return self._subscription is not None

    def open(self) -> "LiveTransactionList":
        """
        Subscribe to the change feed.

        A feed that cannot be reached leaves the list usable without
        live updates.
        """
        if self._subscription is not None or self._feed is None:
            return self
        try:
            self._subscription = self._feed.subscribe(TRANSACTIONS_TABLE, self.mark_stale)
        except BackendError as e:
            logger.warning("live_list_subscribe_failed", error=str(e))
        return self

    def close(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()

    def __enter__(self) -> "LiveTransactionList":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def stale(self) -> bool:
        return self._stale.is_set()

    @property
    def snapshot(self) -> LiveSnapshot:
        return self._snapshot

    @property
    def filters(self) -> Optional[TransactionFilter]:
        return self._filters

    def mark_stale(self, payload: Optional[dict[str, Any]] = None) -> None:
        """Change-feed callback. Runs on the feed's thread."""
        self._stale.set()

    def set_filters(self, filters: Optional[TransactionFilter]) -> None:
        if filters != self._filters:
            self._filters = filters
            self._stale.set()

    async def refresh(self) -> LiveSnapshot:
        """Fetch and aggregate now, regardless of staleness."""
        # Cleared before fetching so a change during the fetch is not lost
        self._stale.clear()
        try:
            listing = await self._flow.list_transactions(self._actor, self._filters)
        except BackendError as e:
            self._stale.set()
            self._snapshot = self._snapshot.model_copy(
                update={"error": f"{FETCH_FAILED_PREFIX}: {e}"}
            )
            return self._snapshot

        self._snapshot = LiveSnapshot(
            listing=listing,
            error=None,
            refreshed_at=datetime.now(),
            version=self._snapshot.version + 1,
        )
        return self._snapshot

    async def current(self) -> LiveSnapshot:
        """The listing, re-fetched first if anything changed."""
        if self.stale:
            return await self.refresh()
        return self._snapshot
