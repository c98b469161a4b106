"""
Balance Aggregation

DESIGN DECISION: Aggregation is a pure computation over a snapshot of
the store. It never calls the backend and never caches anything.

SIGN RULES (the asymmetry is deliberate and tested):
- `total` keeps the natural stored sign: expenses reduce it
- category amounts are NEGATED for display, so money spent on needs,
  wants or savings shows as a positive magnitude

A transaction counts in a category when it carries a tag whose label
is the category value. A transaction with two category tags counts in
both, the same way the backend's per-category balance does.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from ledgerview.models.ledger import (
    BalanceBreakdown,
    BudgetCategory,
    CategoryShare,
    Period,
    Transaction,
)

IDEAL_SPLIT: dict[BudgetCategory, Decimal] = {
    BudgetCategory.NEEDS: Decimal("50"),
    BudgetCategory.WANTS: Decimal("30"),
    BudgetCategory.SAVINGS: Decimal("20"),
}

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_PERCENT_PLACES = Decimal("0.01")


def display_category_amount(raw: Decimal) -> Decimal:
    """Display form of a raw signed category sum."""
    shown = -raw
    # Avoid showing "-0" for an empty category
    return shown if shown != 0 else abs(shown)


class BalanceAggregator:
    """Computes the balance breakdown of a set of transactions."""

    @staticmethod
    def category_sum(
        transactions: Iterable[Transaction],
        category: BudgetCategory,
    ) -> Decimal:
        """Raw signed sum of the transactions in `category`."""
        return sum(
            (t.amount for t in transactions if t.has_tag_label(category.value)),
            _ZERO,
        )

    @classmethod
    def aggregate(
        cls,
        transactions: Iterable[Transaction],
        period: Optional[Period] = None,
    ) -> BalanceBreakdown:
        """Breakdown of `transactions`, limited to `period` when given."""
        transactions = [
            t for t in transactions if period is None or period.contains(t.date)
        ]
        total = sum((t.amount for t in transactions), _ZERO)
        amounts = {
            category.value: display_category_amount(cls.category_sum(transactions, category))
            for category in BudgetCategory
        }
        return BalanceBreakdown(total=total, **amounts)

    @staticmethod
    def compare_to_ideal(breakdown: BalanceBreakdown) -> list[CategoryShare]:
        """
        Actual percent share of each category next to the ideal split.

        Categories with a negative display amount (net income) count as
        zero. If nothing was spent, every actual share is zero.
        """
        spent = {
            category: max(breakdown.amount_for(category), _ZERO)
            for category in BudgetCategory
        }
        whole = sum(spent.values(), _ZERO)

        shares = []
        for category in BudgetCategory:
            if whole == 0:
                actual = _ZERO
            else:
                actual = (spent[category] * _HUNDRED / whole).quantize(
                    _PERCENT_PLACES, rounding=ROUND_HALF_UP
                )
            shares.append(CategoryShare(
                category=category,
                actual_percent=actual,
                ideal_percent=IDEAL_SPLIT[category],
            ))
        return shares


def aggregate(
    transactions: Iterable[Transaction],
    period: Optional[Period] = None,
) -> BalanceBreakdown:
    return BalanceAggregator.aggregate(transactions, period)


def compare_to_ideal(breakdown: BalanceBreakdown) -> list[CategoryShare]:
    return BalanceAggregator.compare_to_ideal(breakdown)
