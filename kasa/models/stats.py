"""
Aggregate statistics models.

These are derived, never persisted. Totals that are defined in terms of
other totals (total expense, cash balance) are computed fields, so the
relationships between them hold for every instance.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, computed_field


ZERO = Decimal("0")


class FinanceSummary(BaseModel):
    """Income and expense figures for a set of transactions."""

    total_income: Decimal = Field(default=ZERO)
    cash_expenses: Decimal = Field(default=ZERO)
    credit_card_expense_total: Decimal = Field(default=ZERO)

    @computed_field
    @property
    def total_expense(self) -> Decimal:
        return self.cash_expenses + self.credit_card_expense_total

    @computed_field
    @property
    def cash_balance(self) -> Decimal:
        """Income minus cash-paid expenses. Card expenses are tracked separately."""
        return self.total_income - self.cash_expenses

    @property
    def is_empty(self) -> bool:
        return (
            self.total_income == ZERO
            and self.cash_expenses == ZERO
            and self.credit_card_expense_total == ZERO
        )


class RegionStats(FinanceSummary):
    """Summary figures for one region."""

    region_id: str
    name: str


class RegionalBreakdown(BaseModel):
    """
    Per-region summaries for cross-region administrators.

    ``regions`` holds one entry per known region, zeroed when the region
    has no transactions. Transactions without a known region are kept
    out of ``regions`` and summed in ``unattributed`` instead.
    """

    regions: dict[str, RegionStats] = Field(default_factory=dict)
    unattributed: FinanceSummary = Field(default_factory=FinanceSummary)

    def get(self, region_id: str) -> Optional[RegionStats]:
        return self.regions.get(region_id)

    def sorted_by_name(self) -> list[RegionStats]:
        return sorted(self.regions.values(), key=lambda r: r.name.lower())


class AggregationResult(BaseModel):
    """Output of the transaction aggregator."""

    summary: FinanceSummary
    regional: Optional[RegionalBreakdown] = None
