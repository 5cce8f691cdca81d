"""Transaction aggregation package."""

from kasa.aggregation.aggregator import aggregate, summarize

__all__ = ["aggregate", "summarize"]
