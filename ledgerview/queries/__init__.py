"""Balance query package."""

from ledgerview.queries.aggregator import (
    IDEAL_SPLIT,
    BalanceAggregator,
    aggregate,
    compare_to_ideal,
    display_category_amount,
)

__all__ = [
    "IDEAL_SPLIT",
    "BalanceAggregator",
    "aggregate",
    "compare_to_ideal",
    "display_category_amount",
]
