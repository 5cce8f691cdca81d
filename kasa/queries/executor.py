"""
Transaction Query Execution

DESIGN DECISION: Listing is split into a backend query and a local pass.

BACKEND QUERY:
- Role scoping (a region-bound viewer only ever sees their region)
- Column filters, sorting and the row limit

LOCAL PASS:
- Free-text search over the fetched rows
- Aggregation of the searched rows

Role scoping is applied to the filter BEFORE it reaches the backend, so a
non-admin can never widen their view by sending admin-only filters.
Row-level security in the backend enforces the same rule independently.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from kasa.aggregation import summarize
from kasa.models.finance import Profile, Transaction, TransactionFilter
from kasa.models.stats import FinanceSummary
from kasa.services.backend.interface import TransactionStorage


class TransactionListing(BaseModel):
    """Result of a transaction listing."""

    transactions: list[Transaction] = Field(default_factory=list)
    summary: FinanceSummary = Field(default_factory=FinanceSummary)
    fetched_count: int = Field(
        default=0,
        description="Rows returned by the backend before the search pass"
    )
    applied_filter: Optional[TransactionFilter] = None

    @property
    def is_empty(self) -> bool:
        return not self.transactions


def scope_filter(filters: TransactionFilter, viewer: Profile) -> TransactionFilter:
    """
    Restrict a filter to what the viewer may see.

    - Admin-only filters (region, user, expense region) are dropped for
      roles that may not use them.
    - A viewer bound to a region who may not see all regions is pinned to
      their own region.
    """
    capabilities = viewer.capabilities
    updates = {}

    if not capabilities.uses_admin_filters:
        updates.update(region_id=None, user_id=None, expense_region_info=None)

    if not capabilities.sees_all_regions and viewer.region_id:
        updates["region_id"] = viewer.region_id

    return filters.model_copy(update=updates) if updates else filters


def _amount_text(amount: Decimal) -> str:
    """Plain rendering of an amount for search ("12.5", "100")."""
    text = format(amount, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def searchable_text(tx: Transaction, user_names: Mapping[str, str]) -> str:
    """Lower-cased text a search term is matched against."""
    parts = [
        tx.title,
        _amount_text(tx.amount),
        tx.description,
        tx.payment_method.value if tx.payment_method else None,
        tx.invoice_type.value if tx.invoice_type else None,
        tx.region_name,
        tx.expense_region_info,
        user_names.get(tx.user_id) if tx.user_id else None,
    ]
    return " ".join(part for part in parts if part).lower()


def search_transactions(
    transactions: Iterable[Transaction],
    term: str,
    user_names: Optional[Mapping[str, str]] = None,
) -> list[Transaction]:
    """
    Case-insensitive substring search.

    Matches title, amount, description, payment method, invoice type,
    region name, expense-region note and the recording user's name.
    An empty term returns every transaction.
    """
    needle = (term or "").strip().lower()
    if not needle:
        return list(transactions)
    names = user_names or {}
    return [tx for tx in transactions if needle in searchable_text(tx, names)]


class TransactionQueryExecutor:
    """
    Executes role-scoped transaction listings.

    GUARANTEES:
    - Never returns rows outside the viewer's scope
    - The summary always describes exactly the returned rows
    """

    def __init__(self, storage: TransactionStorage):
        self._storage = storage

    async def execute(
        self,
        filters: TransactionFilter,
        viewer: Profile,
        user_names: Optional[Mapping[str, str]] = None,
    ) -> TransactionListing:
        """
        Fetch, search and summarize transactions.

        Raises:
            StorageError: If the backend query fails
        """
        scoped = scope_filter(filters, viewer)
        fetched = await self._storage.list_transactions(scoped)
        matches = search_transactions(fetched, scoped.search_term, user_names)

        return TransactionListing(
            transactions=matches,
            summary=summarize(matches),
            fetched_count=len(fetched),
            applied_filter=scoped,
        )

    async def recent(self, viewer: Profile, limit: int) -> list[Transaction]:
        """Most recent transactions within the viewer's scope."""
        region_id = None
        if not viewer.capabilities.sees_all_regions:
            region_id = viewer.region_id
        return await self._storage.list_recent(limit, region_id=region_id)
