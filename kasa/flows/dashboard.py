"""
Dashboard flow.

Loads the recent transactions and the role-scoped summary. Cross-region
administrators also get the per-region breakdown.
"""

from typing import Optional

from pydantic import BaseModel, Field

from kasa.aggregation import aggregate
from kasa.config import AppSettings, get_settings
from kasa.models.finance import Profile, Region, Transaction, TransactionFilter
from kasa.models.stats import FinanceSummary, RegionalBreakdown
from kasa.queries import TransactionQueryExecutor, scope_filter
from kasa.services.backend.interface import RegionStorage, TransactionStorage


class DashboardView(BaseModel):
    """Everything the dashboard page renders."""

    profile: Profile
    recent: list[Transaction] = Field(default_factory=list)
    summary: FinanceSummary = Field(default_factory=FinanceSummary)
    regional: Optional[RegionalBreakdown] = None
    regions: list[Region] = Field(default_factory=list)


class DashboardFlow:
    def __init__(
        self,
        transactions: TransactionStorage,
        regions: RegionStorage,
        settings: Optional[AppSettings] = None,
    ):
        self._transactions = transactions
        self._regions = regions
        self._settings = settings or get_settings().app
        self._executor = TransactionQueryExecutor(transactions)

    async def load(self, actor: Profile) -> DashboardView:
        """
        Raises:
            StorageError: If any backend query fails
        """
        recent = await self._executor.recent(
            actor,
            self._settings.recent_transaction_count,
        )
        scoped = scope_filter(
            TransactionFilter(limit=self._settings.transaction_fetch_limit),
            actor,
        )
        transactions = await self._transactions.list_transactions(scoped)
        regions = await self._regions.list_regions()

        result = aggregate(
            transactions,
            regions,
            include_regions=actor.capabilities.sees_regional_stats,
        )
        return DashboardView(
            profile=actor,
            recent=recent,
            summary=result.summary,
            regional=result.regional,
            regions=regions,
        )
