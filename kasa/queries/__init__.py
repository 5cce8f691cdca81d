"""Transaction query package."""

from kasa.queries.executor import (
    TransactionListing,
    TransactionQueryExecutor,
    scope_filter,
    search_transactions,
)

__all__ = [
    "TransactionListing",
    "TransactionQueryExecutor",
    "scope_filter",
    "search_transactions",
]
