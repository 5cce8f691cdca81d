"""
Transaction Aggregation

Turns a flat list of transactions into the figures shown on the dashboard
and the transaction list:

- total income
- cash expenses (expenses not paid by card)
- credit card expenses
- total expense = cash + card
- cash balance = income - cash expenses

Cross-region administrators additionally get the same figures per region.

DESIGN DECISION: This module is pure. No I/O, no caching, no hidden state.
Callers restrict the input to one region before aggregating when the
viewer may only see their own region.
"""

from collections.abc import Iterable, Sequence
from typing import Optional

from kasa.models.finance import (
    PaymentMethod,
    Region,
    Transaction,
    TransactionType,
    to_decimal,
)
from kasa.models.stats import (
    ZERO,
    AggregationResult,
    FinanceSummary,
    RegionalBreakdown,
    RegionStats,
)


class _Bucket:
    """Mutable accumulator for one set of totals."""

    __slots__ = ("income", "cash", "card")

    def __init__(self):
        self.income = ZERO
        self.cash = ZERO
        self.card = ZERO

    def add(self, tx: Transaction) -> None:
        amount = to_decimal(tx.amount)
        if tx.type == TransactionType.INCOME:
            self.income += amount
        elif tx.payment_method == PaymentMethod.CARD:
            self.card += amount
        else:
            # Expenses without a card payment count as cash
            self.cash += amount

    def summary(self) -> FinanceSummary:
        return FinanceSummary(
            total_income=self.income,
            cash_expenses=self.cash,
            credit_card_expense_total=self.card,
        )

    def region_stats(self, region: Region) -> RegionStats:
        return RegionStats(
            region_id=region.id,
            name=region.name,
            total_income=self.income,
            cash_expenses=self.cash,
            credit_card_expense_total=self.card,
        )


def summarize(transactions: Iterable[Transaction]) -> FinanceSummary:
    """Compute global totals for the given transactions."""
    bucket = _Bucket()
    for tx in transactions:
        bucket.add(tx)
    return bucket.summary()


def aggregate(
    transactions: Iterable[Transaction],
    regions: Optional[Sequence[Region]] = None,
    include_regions: bool = False,
) -> AggregationResult:
    """
    Aggregate transactions in a single pass.

    Args:
        transactions: Transactions to aggregate (already scoped by caller)
        regions: Every known region; used to seed the per-region map
        include_regions: Whether to build the per-region breakdown

    Returns:
        AggregationResult with global totals, and the per-region breakdown
        when requested. Every known region appears in the breakdown, zeroed
        if it has no transactions. Transactions with no region, or with a
        region missing from ``regions``, only count towards the global totals
        and the breakdown's ``unattributed`` figures.
    """
    total = _Bucket()

    if not include_regions:
        for tx in transactions:
            total.add(tx)
        return AggregationResult(summary=total.summary())

    known: dict[str, Region] = {region.id: region for region in regions or ()}
    per_region: dict[str, _Bucket] = {region_id: _Bucket() for region_id in known}
    unattributed = _Bucket()

    for tx in transactions:
        total.add(tx)
        bucket = per_region.get(tx.region_id) if tx.region_id else None
        if bucket is None:
            unattributed.add(tx)
        else:
            bucket.add(tx)

    breakdown = RegionalBreakdown(
        regions={
            region_id: per_region[region_id].region_stats(region)
            for region_id, region in known.items()
        },
        unattributed=unattributed.summary(),
    )
    return AggregationResult(summary=total.summary(), regional=breakdown)

