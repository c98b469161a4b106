"""
Main Orchestrator for Ledger Viewer

This module ties the components together for one bound account:
1. Open: load known tags, then the three ledger slices
2. Switch account: close the current store, bind a fresh one
3. Breakdown: local aggregate, and the backend's per-category balances

DESIGN DECISION: The orchestrator owns the wiring, not the behaviour.
All state lives in the TransactionStore; the orchestrator only
decides which store is current and hands the controllers to the UI.

The tag registry, audit logger and notifier are shared across account
switches. Only the store and its controllers are per account.
"""

import asyncio
from decimal import Decimal
from typing import Optional

from ledgerview.audit import AuditLogger, Notifier
from ledgerview.config import RemoteSettings
from ledgerview.controllers import GridEditController, TransactionFormController
from ledgerview.models.ledger import (
    Account,
    BalanceBreakdown,
    BudgetCategory,
    CategoryShare,
    Period,
)
from ledgerview.queries import aggregate, compare_to_ideal, display_category_amount
from ledgerview.services.remote import (
    GuardedBackend,
    InMemoryLedgerBackend,
    LedgerBackendInterface,
)
from ledgerview.store import LedgerState, TransactionStore
from ledgerview.tags import TagRegistry


class LedgerView:
    """
    The ledger of one account, as seen by the UI.

    Flow:
    1. open() → tags, then transactions/balance/currency concurrently
    2. form / grid → edits go through the store
    3. breakdown() / category_balances() → derived views
    4. switch_account() → old responses are dropped from then on
    """

    def __init__(
        self,
        backend: LedgerBackendInterface,
        account: Account,
        tag_registry: Optional[TagRegistry] = None,
        audit_logger: Optional[AuditLogger] = None,
        notifier: Optional[Notifier] = None,
    ):
        self._backend = backend
        self._registry = tag_registry or TagRegistry()
        self._audit_logger = audit_logger or AuditLogger()
        self._notifier = notifier or Notifier()
        self._bind(account)

    def _bind(self, account: Account) -> None:
        self._store = TransactionStore(
            backend=self._backend,
            account=account,
            tag_registry=self._registry,
            audit_logger=self._audit_logger,
            notifier=self._notifier,
        )
        self._form = TransactionFormController(self._store)
        self._grid = GridEditController(self._store, audit_logger=self._audit_logger)

    @property
    def account(self) -> Account:
        return self._store.account

    @property
    def store(self) -> TransactionStore:
        return self._store

    @property
    def form(self) -> TransactionFormController:
        return self._form

    @property
    def grid(self) -> GridEditController:
        return self._grid

    @property
    def tag_registry(self) -> TagRegistry:
        return self._registry

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    @property
    def backend(self) -> LedgerBackendInterface:
        return self._backend

    async def open(self) -> LedgerState:
        await self._store.load_tags()
        return await self._store.load()

    async def refresh(self) -> LedgerState:
        return await self._store.load()

    async def switch_account(self, account: Account) -> LedgerState:
        """Bind a new account. Responses still in flight for the old one are discarded."""
        self._store.close()
        self._bind(account)
        return await self._store.load()

    def breakdown(self, period: Optional[Period] = None) -> BalanceBreakdown:
        return aggregate(self._store.transactions or (), period)

    def ideal_comparison(self, period: Optional[Period] = None) -> list[CategoryShare]:
        return compare_to_ideal(self.breakdown(period))

    async def category_balances(
        self,
        period: Optional[Period] = None,
    ) -> dict[BudgetCategory, Optional[Decimal]]:
        """
        Backend per-category balances in display sign, over `period` if given.

        A category whose fetch failed maps to None (the failure has been
        reported). When nothing is being written, the values are checked
        against the local aggregate and a mismatch raises a warning.
        """
        store = self._store
        categories = list(BudgetCategory)
        raw = await asyncio.gather(
            *(store.fetch_category_balance(category, period) for category in categories)
        )
        if store.closed:
            await self._audit_logger.log_stale_response(store.account.id, "get_balance")
            return {}

        balances = {
            category: display_category_amount(value) if value is not None else None
            for category, value in zip(categories, raw)
        }
        await self._check_against_local(store, balances, period)
        return balances

    async def _check_against_local(
        self,
        store: TransactionStore,
        balances: dict[BudgetCategory, Optional[Decimal]],
        period: Optional[Period],
    ) -> None:
        state = store.state
        if state.transactions is None:
            return
        if any(row.pending for row in state.rows.values()):
            return

        local = aggregate(state.transactions, period)
        mismatched = [
            category.value
            for category, amount in balances.items()
            if amount is not None and amount != local.amount_for(category)
        ]
        if mismatched:
            await self._audit_logger.log_divergence(
                store.account.id,
                mismatched,
                source="category_balance",
                entity_type="category",
            )
            self._notifier.warning(
                f"Category totals differ from the server for: {', '.join(mismatched)}"
            )


def create_ledger_view(
    account: Account,
    backend: Optional[LedgerBackendInterface] = None,
    remote_settings: Optional[RemoteSettings] = None,
    audit_logger: Optional[AuditLogger] = None,
    notifier: Optional[Notifier] = None,
) -> LedgerView:
    """
    Factory function to create a wired ledger view.

    Args:
        account: The account to bind first
        backend: Backend to talk to. Defaults to an in-memory backend
                 that knows only `account`.
        remote_settings: Timeout/retry policy. Defaults to the
                         environment configuration.

    Returns:
        A LedgerView whose backend calls go through GuardedBackend
    """
    if backend is None:
        backend = InMemoryLedgerBackend(accounts=[account])

    return LedgerView(
        backend=GuardedBackend(backend, settings=remote_settings),
        account=account,
        tag_registry=TagRegistry(),
        audit_logger=audit_logger or AuditLogger(),
        notifier=notifier or Notifier(),
    )
