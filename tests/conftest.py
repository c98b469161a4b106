"""
Shared fixtures for Ledger Viewer tests.

No test talks to a real backend: everything runs against the in-memory
backend, wrapped so calls can be recorded, delayed and made to fail.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest
import pytest_asyncio

from ledgerview.audit import AuditLogger, Notifier
from ledgerview.models.ledger import Account, BackendSettings, Transaction
from ledgerview.services.remote import InMemoryLedgerBackend, RemoteError
from ledgerview.store import TransactionStore
from ledgerview.tags import TagRegistry

FIXED_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


class RecordingBackend(InMemoryLedgerBackend):
    """
    In-memory backend that records every call.

    - fail_next(operation): the next call to `operation` raises
    - hold(operation): calls to `operation` wait until release(operation)
    - hold_reply(operation): the answer is computed, then held until
      release_reply(operation)
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls: list[tuple[str, tuple]] = []
        self._failures: dict[str, list[Exception]] = {}
        self._gates: dict[str, asyncio.Event] = {}
        self._reply_gates: dict[str, asyncio.Event] = {}

    def fail_next(self, operation: str, error: Optional[Exception] = None) -> None:
        self._failures.setdefault(operation, []).append(
            error or RemoteError(f"{operation} unavailable")
        )

    def hold(self, operation: str) -> None:
        self._gates[operation] = asyncio.Event()

    def release(self, operation: str) -> None:
        self._gates.pop(operation).set()

    def hold_reply(self, operation: str) -> None:
        self._reply_gates[operation] = asyncio.Event()

    def release_reply(self, operation: str) -> None:
        self._reply_gates.pop(operation).set()

    def calls_to(self, operation: str) -> list[tuple]:
        return [args for name, args in self.calls if name == operation]

    def operations(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def _enter(self, operation: str, *args) -> None:
        self.calls.append((operation, args))
        gate = self._gates.get(operation)
        if gate is not None:
            await gate.wait()
        queued = self._failures.get(operation)
        if queued:
            raise queued.pop(0)

    async def _deliver(self, operation: str, reply):
        gate = self._reply_gates.get(operation)
        if gate is not None:
            await gate.wait()
        return reply

    async def get_transactions(self, account, period=None):
        await self._enter("get_transactions", account, period)
        reply = await super().get_transactions(account, period)
        return await self._deliver("get_transactions", reply)

    async def get_balance(self, account, category=None, period=None):
        await self._enter("get_balance", account, category, period)
        reply = await super().get_balance(account, category, period)
        return await self._deliver("get_balance", reply)

    async def get_currency(self, account):
        await self._enter("get_currency", account)
        return await super().get_currency(account)

    async def add_transaction(self, account, draft):
        await self._enter("add_transaction", account, draft)
        return await super().add_transaction(account, draft)

    async def update_transaction(self, transaction):
        await self._enter("update_transaction", transaction)
        return await super().update_transaction(transaction)

    async def add_tags(self, labels):
        await self._enter("add_tags", list(labels))
        return await super().add_tags(labels)

    async def get_tags(self):
        await self._enter("get_tags")
        return await super().get_tags()

    async def get_settings(self):
        await self._enter("get_settings")
        return await super().get_settings()

    async def get_date(self):
        await self._enter("get_date")
        return await super().get_date()


def by_description(transactions, description: str) -> Transaction:
    """Find the single transaction with `description`."""
    matches = [t for t in transactions if t.description == description]
    assert len(matches) == 1, f"expected one {description!r}, found {len(matches)}"
    return matches[0]


@pytest.fixture
def account() -> Account:
    return Account(id="checking", name="Checking", currency="eur")


@pytest.fixture
def other_account() -> Account:
    return Account(id="savings", name="Savings", currency="EUR")


@pytest.fixture
def backend(account, other_account) -> RecordingBackend:
    """Backend with three transactions on `account` and one on `other_account`."""
    backend = RecordingBackend(
        accounts=[account, other_account],
        settings=BackendSettings(tags=["needs", "wants", "savings", "Rent"]),
        clock=lambda: FIXED_NOW,
    )
    backend.seed_transaction(account.id, Decimal("200"), "Salary", FIXED_NOW)
    backend.seed_transaction(account.id, Decimal("-100"), "Rent", FIXED_NOW, ["needs", "Rent"])
    backend.seed_transaction(account.id, Decimal("-30"), "Cinema", FIXED_NOW, ["wants"])
    backend.seed_transaction(other_account.id, Decimal("500"), "Transfer", FIXED_NOW)
    return backend


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger(history_size=200)


@pytest.fixture
def notifier() -> Notifier:
    return Notifier(history_size=50)


@pytest.fixture
def registry() -> TagRegistry:
    return TagRegistry()


@pytest.fixture
def store(backend, account, registry, audit_logger, notifier) -> TransactionStore:
    return TransactionStore(
        backend=backend,
        account=account,
        tag_registry=registry,
        audit_logger=audit_logger,
        notifier=notifier,
    )


@pytest_asyncio.fixture
async def loaded_store(store, backend) -> TransactionStore:
    """Store with tags and all three slices loaded, call log cleared."""
    await store.load_tags()
    await store.load()
    backend.calls.clear()
    return store
