"""
Tests for Ledger Viewer models

Test strategy:
1. Unit tests for the ledger models and their invariants
2. Unit tests for audit events
3. No backend involved
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from pydantic import ValidationError

from ledgerview.models.ledger import (
    Account,
    BalanceBreakdown,
    BudgetCategory,
    Operation,
    Period,
    Tag,
    Transaction,
    TransactionDraft,
    TransactionPatch,
)
from ledgerview.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

WHEN = datetime(2024, 3, 1, tzinfo=timezone.utc)
NEEDS = Tag(id="t1", label="needs")


def make_tx(**overrides) -> Transaction:
    data = {
        "id": "tx1",
        "account": "checking",
        "amount": Decimal("-10"),
        "description": "Coffee",
        "date": WHEN,
    }
    data.update(overrides)
    return Transaction(**data)


class TestAccountAndTag:
    """Tests for Account and Tag."""

    def test_currency_upper_cased(self):
        """Test that the currency code is normalized."""
        account = Account(id="checking", currency="eur")
        assert account.currency == "EUR"

    def test_currency_must_be_letters(self):
        with pytest.raises(ValidationError):
            Account(id="checking", currency="E1R")

    def test_display_name_falls_back_to_id(self):
        assert Account(id="checking", currency="EUR").display_name == "checking"
        assert Account(id="c", name="Main", currency="EUR").display_name == "Main"

    def test_tag_label_stripped_and_required(self):
        assert Tag(id="t", label="  Food ").label == "Food"
        with pytest.raises(ValidationError):
            Tag(id="t", label="   ")

    def test_models_are_frozen(self):
        """Test that snapshots can't be mutated."""
        account = Account(id="checking", currency="EUR")
        with pytest.raises(ValidationError):
            account.currency = "USD"


class TestTransaction:
    """Tests for the sign convention and invariants of Transaction."""

    def test_operation_derived_from_sign(self):
        assert make_tx(amount=Decimal("-1")).operation == Operation.EXPENSE
        assert make_tx(amount=Decimal("1")).operation == Operation.INCOME
        assert make_tx(amount=Decimal("0")).operation == Operation.INCOME

    def test_matching_operation_accepted(self):
        tx = make_tx(amount=Decimal("-5"), operation="expense")
        assert tx.operation == Operation.EXPENSE

    def test_contradicting_operation_rejected(self):
        """Test that an explicit operation must agree with the sign."""
        with pytest.raises(ValidationError):
            make_tx(amount=Decimal("5"), operation="expense")
        with pytest.raises(ValidationError):
            make_tx(amount=Decimal("-5"), operation="income")

    def test_amount_must_be_finite(self):
        with pytest.raises(ValidationError):
            make_tx(amount=Decimal("NaN"))
        with pytest.raises(ValidationError):
            make_tx(amount=Decimal("Infinity"))

    def test_duplicate_tag_ids_rejected(self):
        with pytest.raises(ValidationError):
            make_tx(tags=(NEEDS, Tag(id="t1", label="other")))

    def test_dump_round_trip_keeps_operation_consistent(self):
        """Test that a dumped transaction (with operation) validates again."""
        tx = make_tx(tags=(NEEDS,))
        assert Transaction.model_validate(tx.model_dump()) == tx

    def test_has_tag_label_is_exact(self):
        tx = make_tx(tags=(NEEDS,))
        assert tx.has_tag_label("needs")
        assert not tx.has_tag_label("Needs")


class TestDraftAndPatch:
    """Tests for TransactionDraft and TransactionPatch."""

    @pytest.mark.parametrize(
        "operation, amount, expected",
        [
            (Operation.EXPENSE, "45.99", "-45.99"),
            (Operation.EXPENSE, "-45.99", "-45.99"),
            (Operation.INCOME, "20", "20"),
            (Operation.INCOME, "-20", "20"),
            (Operation.EXPENSE, "0", "0"),
        ],
    )
    def test_signed_amount(self, operation, amount, expected):
        """Test that the operation, not the typed sign, decides the sign."""
        draft = TransactionDraft(operation=operation, amount=Decimal(amount), date=WHEN)
        assert draft.signed_amount == Decimal(expected)

    def test_zero_expense_reads_back_as_income(self):
        """Test that a zero amount has no sign to carry the expense."""
        draft = TransactionDraft(operation=Operation.EXPENSE, amount=Decimal("0"), date=WHEN)
        stored = make_tx(amount=draft.signed_amount)
        assert stored.amount == 0
        assert stored.operation == Operation.INCOME

    def test_patch_fields(self):
        patch = TransactionPatch(description="x", amount=Decimal("1"))
        assert patch.fields() == frozenset({"description", "amount"})
        assert TransactionPatch().fields() == frozenset()

    def test_patch_apply_returns_new_transaction(self):
        tx = make_tx()
        patched = TransactionPatch(amount=Decimal("25")).apply(tx)
        assert patched.amount == Decimal("25")
        assert patched.operation == Operation.INCOME
        assert patched.description == tx.description
        assert tx.amount == Decimal("-10")

    def test_empty_patch_returns_same_object(self):
        tx = make_tx()
        assert TransactionPatch().apply(tx) is tx

    def test_patch_keeps_empty_description(self):
        """Test that clearing the description is a real change."""
        patched = TransactionPatch(description="").apply(make_tx())
        assert patched.description == ""


class TestPeriod:
    """Tests for Period bounds."""

    def test_half_open_bounds(self):
        period = Period(start=WHEN, end=datetime(2024, 3, 2, tzinfo=timezone.utc))
        assert period.contains(WHEN)
        assert not period.contains(datetime(2024, 3, 2, tzinfo=timezone.utc))
        assert not period.contains(datetime(2024, 2, 29, tzinfo=timezone.utc))

    def test_open_ended(self):
        assert Period().contains(WHEN)
        assert Period(start=WHEN).contains(datetime(2030, 1, 1, tzinfo=timezone.utc))

    def test_end_must_follow_start(self):
        with pytest.raises(ValidationError):
            Period(start=WHEN, end=WHEN)

    def test_month_of_wraps_the_year(self):
        month = Period.month_of(datetime(2024, 12, 15, 18, 30, tzinfo=timezone.utc))
        assert month.start == datetime(2024, 12, 1, tzinfo=timezone.utc)
        assert month.end == datetime(2025, 1, 1, tzinfo=timezone.utc)


class TestBalanceBreakdown:
    """Tests for BalanceBreakdown helpers."""

    def test_categories_in_fixed_order(self):
        breakdown = BalanceBreakdown(needs=Decimal("1"), wants=Decimal("2"), savings=Decimal("3"))
        categories = breakdown.categories()
        assert [c.category for c in categories] == list(BudgetCategory)
        assert [c.amount for c in categories] == [1, 2, 3]
        assert breakdown.amount_for(BudgetCategory.WANTS) == Decimal("2")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.SLICE_LOADED,
            description="Loaded transactions",
        )
        assert event.event_type == AuditEventType.SLICE_LOADED
        assert event.severity == AuditSeverity.INFO
        assert event.timestamp.tzinfo is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            description="Transaction created",
            details={"amount": "-45.99"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transaction_created"
        assert log_dict["details"]["amount"] == "-45.99"

    def test_builder_update_reverted(self):
        event = AuditEventBuilder.update_reverted(
            account_id="checking",
            transaction_id="tx1",
            fields=["amount"],
            error_message="backend down",
        )
        assert event.event_type == AuditEventType.UPDATE_REVERTED
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_id == "tx1"
        assert event.details["fields"] == ["amount"]

    def test_builder_remote_call_failed(self):
        event = AuditEventBuilder.remote_call_failed(
            operation="get_balance",
            error_message="timed out",
            account_id="checking",
            error_code="timeout",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_code == "timeout"
        assert event.details["operation"] == "get_balance"

    def test_builder_transaction_updated_is_user_action(self):
        event = AuditEventBuilder.transaction_updated("checking", "tx1", ["description"])
        assert event.is_user_action is True
        assert event.account_id == "checking"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
