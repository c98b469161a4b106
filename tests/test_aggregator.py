"""Tests for balance aggregation."""

from datetime import datetime, timezone
from decimal import Decimal

from ledgerview.models.ledger import BalanceBreakdown, BudgetCategory, Period, Tag, Transaction
from ledgerview.queries import (
    IDEAL_SPLIT,
    BalanceAggregator,
    aggregate,
    compare_to_ideal,
    display_category_amount,
)

WHEN = datetime(2024, 1, 1, tzinfo=timezone.utc)
NEEDS = Tag(id="t-needs", label="needs")
WANTS = Tag(id="t-wants", label="wants")
SAVINGS = Tag(id="t-savings", label="savings")


def make_tx(tx_id: str, amount: str, *tags: Tag) -> Transaction:
    return Transaction(
        id=tx_id,
        account="checking",
        amount=Decimal(amount),
        date=WHEN,
        tags=tags,
    )


class TestAggregate:
    """Tests for aggregate()."""

    def test_empty_set_is_all_zero(self):
        """Test that no transactions give all-zero totals."""
        breakdown = aggregate([])
        assert breakdown == BalanceBreakdown()
        assert breakdown.total == 0
        assert breakdown.needs == 0
        assert breakdown.wants == 0
        assert breakdown.savings == 0

    def test_expense_in_needs_and_untagged_income(self):
        """Test the documented example: -100 needs, +200 untagged."""
        breakdown = aggregate([
            make_tx("a", "-100", NEEDS),
            make_tx("b", "200"),
        ])
        assert breakdown.total == Decimal("100")
        assert breakdown.needs == Decimal("100")
        assert breakdown.wants == Decimal("0")
        assert breakdown.savings == Decimal("0")

    def test_total_keeps_natural_sign_categories_are_negated(self):
        """Test the sign asymmetry between total and categories."""
        breakdown = aggregate([make_tx("a", "-40", WANTS)])
        assert breakdown.total == Decimal("-40")
        assert breakdown.wants == Decimal("40")

    def test_refund_in_category_reduces_display(self):
        """Test that income tagged with a category lowers its display amount."""
        breakdown = aggregate([
            make_tx("a", "-50", WANTS),
            make_tx("b", "20", WANTS),
        ])
        assert breakdown.wants == Decimal("30")

    def test_transaction_in_two_categories_counts_in_both(self):
        breakdown = aggregate([make_tx("a", "-10", NEEDS, WANTS)])
        assert breakdown.needs == Decimal("10")
        assert breakdown.wants == Decimal("10")
        assert breakdown.total == Decimal("-10")

    def test_category_match_is_exact(self):
        """Test that 'Needs' is not the needs category."""
        breakdown = aggregate([make_tx("a", "-10", Tag(id="x", label="Needs"))])
        assert breakdown.needs == 0
        assert breakdown.total == Decimal("-10")

    def test_category_sum_is_raw(self):
        raw = BalanceAggregator.category_sum([make_tx("a", "-10", SAVINGS)], BudgetCategory.SAVINGS)
        assert raw == Decimal("-10")

    def test_period_limits_the_breakdown(self):
        """Test that only transactions dated inside the period count."""
        january = make_tx("a", "-10", NEEDS)
        february = make_tx("b", "-25", NEEDS).model_copy(
            update={"date": datetime(2024, 2, 1, tzinfo=timezone.utc)}
        )

        breakdown = aggregate([january, february], Period.month_of(WHEN))

        assert breakdown.total == Decimal("-10")
        assert breakdown.needs == Decimal("10")
        assert aggregate([january, february]).needs == Decimal("35")


class TestDisplaySign:
    """Tests for display_category_amount()."""

    def test_negates(self):
        assert display_category_amount(Decimal("-12.50")) == Decimal("12.50")
        assert display_category_amount(Decimal("5")) == Decimal("-5")

    def test_zero_has_no_sign(self):
        shown = display_category_amount(Decimal("0"))
        assert shown == 0
        assert not shown.is_signed()


class TestCompareToIdeal:
    """Tests for the 50/30/20 comparison."""

    def test_ideal_split_sums_to_hundred(self):
        assert sum(IDEAL_SPLIT.values()) == Decimal("100")

    def test_actual_shares(self):
        breakdown = BalanceBreakdown(
            total=Decimal("-200"),
            needs=Decimal("100"),
            wants=Decimal("60"),
            savings=Decimal("40"),
        )
        shares = {share.category: share for share in compare_to_ideal(breakdown)}
        assert shares[BudgetCategory.NEEDS].actual_percent == Decimal("50.00")
        assert shares[BudgetCategory.WANTS].actual_percent == Decimal("30.00")
        assert shares[BudgetCategory.SAVINGS].actual_percent == Decimal("20.00")
        assert shares[BudgetCategory.WANTS].deviation == 0

    def test_nothing_spent_gives_zero_shares(self):
        shares = compare_to_ideal(BalanceBreakdown())
        assert [share.actual_percent for share in shares] == [0, 0, 0]
        assert [share.ideal_percent for share in shares] == [50, 30, 20]

    def test_negative_display_counts_as_zero(self):
        """Test that a category with net income doesn't skew the split."""
        breakdown = BalanceBreakdown(needs=Decimal("80"), wants=Decimal("-20"))
        shares = {share.category: share for share in compare_to_ideal(breakdown)}
        assert shares[BudgetCategory.NEEDS].actual_percent == Decimal("100.00")
        assert shares[BudgetCategory.WANTS].actual_percent == 0
