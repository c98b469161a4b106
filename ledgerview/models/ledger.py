"""
Core Data Models for Ledger Viewer

These models define the strict schemas for all data flowing between the
backend, the store and the controllers. They are designed to:
1. Enforce the ledger invariants at construction time
2. Be immutable, so a snapshot handed out by the store can't be mutated
3. Be serializable for the backend boundary and for logging

DESIGN DECISION: Amounts are stored SIGNED. Expenses are negative,
income is zero or positive. `operation` is derived from the sign and is
never stored next to it, so the two can never disagree.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Operation(str, Enum):
    """Kind of a transaction, derived from the sign of its amount."""
    EXPENSE = "expense"
    INCOME = "income"


class BudgetCategory(str, Enum):
    """
    The three fixed budget buckets.

    Membership is expressed through tags: a transaction belongs to a
    category when it carries a tag whose label equals the value exactly.
    """
    NEEDS = "needs"
    WANTS = "wants"
    SAVINGS = "savings"


class Theme(str, Enum):
    """Theme stored in the backend settings record."""
    SYSTEM = "system"
    LIGHT = "light"
    DARK = "dark"


PATCHABLE_FIELDS = ("description", "date", "amount", "tags")


def _check_unique_tag_ids(tags: tuple["Tag", ...]) -> tuple["Tag", ...]:
    seen = set()
    for tag in tags:
        if tag.id in seen:
            raise ValueError(f"Duplicate tag id: {tag.id}")
        seen.add(tag.id)
    return tags


# =============================================================================
# ACCOUNTS AND TAGS
# =============================================================================

class Account(BaseModel):
    """
    A financial account.

    Selected outside the core and passed in as context; never changes
    for the lifetime of a view session.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Account identifier"
    )
    name: str = Field(
        default="",
        max_length=200,
        description="Display name"
    )
    currency: str = Field(
        ...,
        min_length=3,
        max_length=3,
        description="Three-letter currency code"
    )

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        if not v.isalpha():
            raise ValueError(f"Invalid currency code: {v}")
        return v.upper()

    @property
    def display_name(self) -> str:
        return self.name or self.id


class Tag(BaseModel):
    """
    A user-defined label attachable to transactions.

    Tags are global. A label maps to at most one id, and the id is
    always assigned by the backend.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Backend-assigned identifier"
    )
    label: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Label shown on the chip"
    )


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A single ledger entry as confirmed by the backend.

    Invariants:
    - `amount` is finite and signed (negative = expense)
    - `tags` holds no two tags with the same id
    - an explicit `operation` in the input must agree with the sign
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Backend-assigned identifier"
    )
    account: str = Field(
        ...,
        min_length=1,
        description="Id of the owning account"
    )
    amount: Decimal = Field(
        ...,
        allow_inf_nan=False,
        description="Signed amount in the account currency"
    )
    description: str = Field(
        default="",
        max_length=500,
    )
    date: datetime
    tags: tuple[Tag, ...] = Field(default_factory=tuple)

    @model_validator(mode='before')
    @classmethod
    def check_declared_operation(cls, data: Any) -> Any:
        """Accept a redundant `operation` only if it matches the sign, then drop it."""
        if not isinstance(data, dict) or "operation" not in data:
            return data

        data = dict(data)
        declared = data.pop("operation")
        if declared is None:
            return data

        operation = Operation(declared)
        try:
            amount = Decimal(str(data.get("amount")))
        except (InvalidOperation, TypeError, ValueError):
            # Let the field validator report the bad amount
            return data

        if operation is Operation.EXPENSE and amount > 0:
            raise ValueError("An expense cannot have a positive amount")
        if operation is Operation.INCOME and amount < 0:
            raise ValueError("An income cannot have a negative amount")
        return data

    @field_validator('tags')
    @classmethod
    def validate_unique_tags(cls, v: tuple[Tag, ...]) -> tuple[Tag, ...]:
        return _check_unique_tag_ids(v)

    @computed_field
    @property
    def operation(self) -> Operation:
        return Operation.EXPENSE if self.amount < 0 else Operation.INCOME

    def has_tag_label(self, label: str) -> bool:
        return any(tag.label == label for tag in self.tags)


class TransactionDraft(BaseModel):
    """
    An in-progress transaction from the add dialog.

    `amount` is the magnitude the user typed; the operation decides the
    sign. All tags already carry backend-assigned ids.

    NOTE: A zero amount has no sign, so a zero "expense" is stored as 0
    and reads back as an income.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    operation: Operation = Operation.EXPENSE
    amount: Decimal = Field(
        ...,
        allow_inf_nan=False,
        description="Amount as entered; the sign is taken from `operation`"
    )
    description: str = Field(
        default="",
        max_length=500,
    )
    date: datetime
    tags: tuple[Tag, ...] = Field(default_factory=tuple)

    @field_validator('tags')
    @classmethod
    def validate_unique_tags(cls, v: tuple[Tag, ...]) -> tuple[Tag, ...]:
        return _check_unique_tag_ids(v)

    @property
    def signed_amount(self) -> Decimal:
        """Amount in the canonical stored sign."""
        magnitude = abs(self.amount)
        if magnitude == 0:
            return magnitude
        return -magnitude if self.operation is Operation.EXPENSE else magnitude


class TransactionPatch(BaseModel):
    """
    A partial inline edit of one transaction.

    Only fields that are set take part in the edit.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    description: Optional[str] = Field(default=None, max_length=500)
    date: Optional[datetime] = None
    amount: Optional[Decimal] = Field(default=None, allow_inf_nan=False)
    tags: Optional[tuple[Tag, ...]] = None

    @field_validator('tags')
    @classmethod
    def validate_unique_tags(cls, v: Optional[tuple[Tag, ...]]) -> Optional[tuple[Tag, ...]]:
        if v is None:
            return v
        return _check_unique_tag_ids(v)

    def changes(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in PATCHABLE_FIELDS
            if getattr(self, name) is not None
        }

    def fields(self) -> frozenset[str]:
        return frozenset(self.changes())

    def apply(self, transaction: Transaction) -> Transaction:
        """Return `transaction` with this patch applied, re-validated."""
        changes = self.changes()
        if not changes:
            return transaction
        data = transaction.model_dump(exclude={"operation"})
        data.update(changes)
        return Transaction.model_validate(data)


# =============================================================================
# PERIODS
# =============================================================================

class Period(BaseModel):
    """
    Date range used to filter transactions and balances.

    The range is half-open: `start` is included, `end` is not. A missing
    bound leaves that side open.
    """
    model_config = ConfigDict(frozen=True)

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @model_validator(mode='after')
    def check_bounds(self) -> "Period":
        if self.start is not None and self.end is not None and self.end <= self.start:
            raise ValueError("A period must end after it starts")
        return self

    @classmethod
    def month_of(cls, moment: datetime) -> "Period":
        """The calendar month containing `moment`, in its timezone."""
        start = moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        if start.month == 12:
            end = start.replace(year=start.year + 1, month=1)
        else:
            end = start.replace(month=start.month + 1)
        return cls(start=start, end=end)

    def contains(self, moment: datetime) -> bool:
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment >= self.end:
            return False
        return True


# =============================================================================
# DERIVED BALANCE MODELS
# =============================================================================

class CategoryBalance(BaseModel):
    """Display total of one budget category. Derived, never persisted."""
    model_config = ConfigDict(frozen=True)

    category: BudgetCategory
    amount: Decimal


class BalanceBreakdown(BaseModel):
    """
    Account balance and the needs/wants/savings split.

    `total` keeps its natural sign. The category amounts are in display
    sign: money spent shows as a positive number.
    """
    model_config = ConfigDict(frozen=True)

    total: Decimal = Decimal("0")
    needs: Decimal = Decimal("0")
    wants: Decimal = Decimal("0")
    savings: Decimal = Decimal("0")

    def amount_for(self, category: BudgetCategory) -> Decimal:
        return getattr(self, category.value)

    def categories(self) -> list[CategoryBalance]:
        return [
            CategoryBalance(category=category, amount=self.amount_for(category))
            for category in BudgetCategory
        ]


class CategoryShare(BaseModel):
    """Actual share of a category next to its ideal share, in percent."""
    model_config = ConfigDict(frozen=True)

    category: BudgetCategory
    actual_percent: Decimal
    ideal_percent: Decimal

    @property
    def deviation(self) -> Decimal:
        return self.actual_percent - self.ideal_percent


# =============================================================================
# BACKEND SETTINGS RECORD
# =============================================================================

class BackendSettings(BaseModel):
    """Settings record returned by `get_settings`."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    accounts_path: Optional[str] = None
    theme: Theme = Theme.SYSTEM
    tags: list[str] = Field(
        default_factory=list,
        description="Known tag labels offered as suggestions"
    )
