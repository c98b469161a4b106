"""
Add-Transaction Form Controller

Owns the draft shown in the "add transaction" dialog.

States:
    closed -> open() -> valid | invalid
    valid | invalid <-> (any setter)
    valid -> submit() -> submitting -> closed         (backend confirmed)
                                    -> error_visible  (backend failed)
    any -> cancel() -> closed

The draft is frozen while submitting: setters raise FormError.

CRITICAL: The dialog only closes after the backend confirmed the new
transaction. A failed submission keeps the draft and shows the error.
"""

from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from pydantic import ValidationError

from ledgerview.models.ledger import Operation, Transaction, TransactionDraft
from ledgerview.store import StoreError, TransactionStore
from ledgerview.validation import INVALID, AmountParser

DEFAULT_AMOUNT_TEXT = "0"


class FormStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    SUBMITTING = "submitting"
    CLOSED = "closed"
    ERROR_VISIBLE = "error_visible"


class TransactionFormController:
    """Draft state and submission of the add-transaction dialog."""

    def __init__(self, store: TransactionStore, parser: type[AmountParser] = AmountParser):
        self._store = store
        self._parser = parser
        self._status = FormStatus.CLOSED
        self._suggestions: list[str] = []
        self._last_created: Optional[Transaction] = None
        self._reset_draft()

    def _reset_draft(self) -> None:
        self._amount_text = DEFAULT_AMOUNT_TEXT
        self._operation = Operation.EXPENSE
        self._description = ""
        self._date: Optional[datetime] = None
        self._tag_labels: list[str] = []
        self._error_message: Optional[str] = None

    # -------------------------------------------------------------------------
    # Read-only view of the draft
    # -------------------------------------------------------------------------

    @property
    def status(self) -> FormStatus:
        return self._status

    @property
    def is_open(self) -> bool:
        return self._status is not FormStatus.CLOSED

    @property
    def amount_text(self) -> str:
        return self._amount_text

    @property
    def operation(self) -> Operation:
        return self._operation

    @property
    def description(self) -> str:
        return self._description

    @property
    def date(self) -> Optional[datetime]:
        return self._date

    @property
    def tag_labels(self) -> list[str]:
        return list(self._tag_labels)

    @property
    def suggestions(self) -> list[str]:
        """Tag labels offered while typing."""
        return list(self._suggestions)

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def last_created(self) -> Optional[Transaction]:
        return self._last_created

    @property
    def can_submit(self) -> bool:
        if self._status in (FormStatus.CLOSED, FormStatus.SUBMITTING):
            return False
        return self._parser.is_valid(self._amount_text)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def open(self) -> FormStatus:
        """Start a fresh draft with the backend date and tag suggestions."""
        self._reset_draft()
        self._recompute_status()

        self._date = await self._store.today()
        settings = await self._store.settings()
        known = set(settings.tags) | set(self._store.tag_registry.labels)
        self._suggestions = sorted(label for label in known if label.strip())
        return self._status

    def cancel(self) -> None:
        """Drop the draft. Nothing is sent."""
        self._reset_draft()
        self._status = FormStatus.CLOSED

    # -------------------------------------------------------------------------
    # Setters
    # -------------------------------------------------------------------------

    def set_amount_text(self, text: str) -> FormStatus:
        self._ensure_open()
        self._amount_text = text
        return self._recompute_status()

    def set_operation(self, operation: Operation) -> FormStatus:
        self._ensure_open()
        self._operation = Operation(operation)
        return self._recompute_status()

    def set_description(self, description: str) -> FormStatus:
        self._ensure_open()
        self._description = description
        return self._recompute_status()

    def set_date(self, date: datetime) -> FormStatus:
        self._ensure_open()
        self._date = date
        return self._recompute_status()

    def set_tags(self, labels: Iterable[str]) -> FormStatus:
        self._ensure_open()
        self._tag_labels = list(labels)
        return self._recompute_status()

    def _ensure_open(self) -> None:
        if self._status is FormStatus.CLOSED:
            raise FormError("The form is not open")
        if self._status is FormStatus.SUBMITTING:
            raise FormError("The draft can't change while it is being submitted")

    def _recompute_status(self) -> FormStatus:
        if self._status is FormStatus.SUBMITTING:
            return self._status
        self._error_message = None
        valid = self._parser.is_valid(self._amount_text)
        self._status = FormStatus.VALID if valid else FormStatus.INVALID
        return self._status

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    async def submit(self) -> Optional[Transaction]:
        """
        Create the transaction described by the draft.

        Returns:
            The created transaction, or None if the backend failed
            (the form is then in `error_visible` with the message set)

        Raises:
            SubmissionBlockedError: If the form can't be submitted now
        """
        if not self.can_submit:
            raise SubmissionBlockedError(
                f"Cannot submit while the form is {self._status.value}"
            )

        amount = self._parser.parse(self._amount_text)
        if amount is INVALID:
            raise SubmissionBlockedError("Amount is not a number")

        self._status = FormStatus.SUBMITTING
        self._error_message = None
        operation = self._operation
        description = self._description
        date = self._date
        labels = list(self._tag_labels)

        try:
            tags = await self._store.resolve_tags(labels)
            if date is None:
                date = self._date = await self._store.today()
            draft = TransactionDraft(
                operation=operation,
                amount=amount,
                description=description,
                date=date,
                tags=tags,
            )
            created = await self._store.create(draft)
        except ValidationError as e:
            return self._show_error(f"Invalid transaction: {e.errors()[0]['msg']}")
        except StoreError as e:
            return self._show_error(str(e))

        self._last_created = created
        self._reset_draft()
        self._status = FormStatus.CLOSED
        return created

    def _show_error(self, message: str) -> None:
        self._status = FormStatus.ERROR_VISIBLE
        self._error_message = message
        return None


class FormError(Exception):
    """Invalid use of the form controller."""
    pass


class SubmissionBlockedError(FormError):
    """Submit was called while submission is not allowed."""
    pass
