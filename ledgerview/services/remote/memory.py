"""
In-Memory Backend Implementation

DESIGN DECISION: A complete in-process backend ships with the package
because:
1. Tests exercise the real store against real backend semantics
2. The demo front-end runs without any external process
3. It documents, in code, what each remote call is expected to do

TRADEOFFS:
- Nothing is persisted across processes
- Every call yields to the event loop once, so concurrent callers
  interleave the way they would against a real backend
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, Optional
from uuid import uuid4

from ledgerview.models.ledger import (
    Account,
    BackendSettings,
    BudgetCategory,
    Period,
    Tag,
    Transaction,
    TransactionDraft,
)
from ledgerview.services.remote.interface import (
    LedgerBackendInterface,
    NotFoundError,
    RemoteError,
)


def _new_id() -> str:
    return uuid4().hex


class InMemoryLedgerBackend(LedgerBackendInterface):
    """
    In-process implementation of the ledger backend.

    Accounts are keyed by id, transactions keep insertion order, and
    tags are keyed by label (a label maps to exactly one tag).
    """

    def __init__(
        self,
        accounts: Iterable[Account] = (),
        settings: Optional[BackendSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._accounts: dict[str, Account] = {a.id: a for a in accounts}
        self._transactions: dict[str, Transaction] = {}
        self._tags: dict[str, Tag] = {}
        self._settings = settings or BackendSettings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # -------------------------------------------------------------------------
    # Seeding helpers (not part of the remote contract)
    # -------------------------------------------------------------------------

    def seed_tag(self, label: str) -> Tag:
        """Create (or return) a tag without going through a call."""
        label = label.strip()
        if label not in self._tags:
            self._tags[label] = Tag(id=_new_id(), label=label)
        return self._tags[label]

    def seed_transaction(
        self,
        account_id: str,
        amount: Decimal,
        description: str = "",
        date: Optional[datetime] = None,
        tag_labels: Iterable[str] = (),
    ) -> Transaction:
        self._require_account(account_id)
        transaction = Transaction(
            id=_new_id(),
            account=account_id,
            amount=amount,
            description=description,
            date=date or self._clock(),
            tags=tuple(self.seed_tag(label) for label in dict.fromkeys(tag_labels)),
        )
        self._transactions[transaction.id] = transaction
        return transaction

    def stored_transaction(self, transaction_id: str) -> Transaction:
        """Backend-side copy of a transaction, for inspection."""
        return self._transactions[transaction_id]

    def replace_stored(self, transaction: Transaction) -> None:
        """Change a stored row behind the client's back."""
        self._transactions[transaction.id] = transaction

    def _require_account(self, account_id: str) -> Account:
        try:
            return self._accounts[account_id]
        except KeyError:
            raise NotFoundError(f"Account not found: {account_id}")

    def _account_transactions(
        self,
        account_id: str,
        period: Optional[Period] = None,
    ) -> list[Transaction]:
        return [
            t for t in self._transactions.values()
            if t.account == account_id and (period is None or period.contains(t.date))
        ]

    # -------------------------------------------------------------------------
    # Remote contract
    # -------------------------------------------------------------------------

    async def get_transactions(
        self,
        account: Account,
        period: Optional[Period] = None,
    ) -> list[Transaction]:
        await asyncio.sleep(0)
        self._require_account(account.id)
        return self._account_transactions(account.id, period)

    async def get_balance(
        self,
        account: Account,
        category: Optional[BudgetCategory] = None,
        period: Optional[Period] = None,
    ) -> Decimal:
        await asyncio.sleep(0)
        self._require_account(account.id)
        transactions = self._account_transactions(account.id, period)
        if category is not None:
            transactions = [t for t in transactions if t.has_tag_label(category.value)]
        return sum((t.amount for t in transactions), Decimal("0"))

    async def get_currency(self, account: Account) -> str:
        await asyncio.sleep(0)
        return self._require_account(account.id).currency

    async def add_transaction(
        self,
        account: Account,
        draft: TransactionDraft,
    ) -> Transaction:
        await asyncio.sleep(0)
        self._require_account(account.id)

        known_ids = {tag.id for tag in self._tags.values()}
        unknown = [tag.label for tag in draft.tags if tag.id not in known_ids]
        if unknown:
            raise RemoteError(f"Unknown tags: {', '.join(unknown)}")

        transaction = Transaction(
            id=_new_id(),
            account=account.id,
            amount=draft.signed_amount,
            description=draft.description,
            date=draft.date,
            tags=draft.tags,
        )
        self._transactions[transaction.id] = transaction
        return transaction

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        await asyncio.sleep(0)
        if transaction.id not in self._transactions:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        self._transactions[transaction.id] = transaction
        return transaction

    async def add_tags(self, labels: list[str]) -> list[Tag]:
        await asyncio.sleep(0)
        return [self.seed_tag(label) for label in labels]

    async def get_tags(self) -> list[Tag]:
        await asyncio.sleep(0)
        return sorted(self._tags.values(), key=lambda t: t.label)

    async def get_settings(self) -> BackendSettings:
        await asyncio.sleep(0)
        return self._settings

    async def get_date(self) -> datetime:
        await asyncio.sleep(0)
        return self._clock()
