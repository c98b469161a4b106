"""
Timeout and Retry Policy for Backend Calls

DESIGN DECISION: Policy is a wrapper, not a concern of each backend.
GuardedBackend wraps any LedgerBackendInterface and:
1. Bounds every call with an explicit timeout
2. Retries idempotent reads on timeout/connection loss (tenacity)
3. NEVER retries writes - a retried create could duplicate a row

With the default settings (one read attempt) nothing is retried and
a timeout is surfaced to the caller as RemoteTimeoutError.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledgerview.config import RemoteSettings, get_settings
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
    BackendConnectionError,
    LedgerBackendInterface,
    RemoteTimeoutError,
)

T = TypeVar("T")


class GuardedBackend(LedgerBackendInterface):
    """Applies the remote-call policy around another backend."""

    def __init__(
        self,
        inner: LedgerBackendInterface,
        settings: Optional[RemoteSettings] = None,
    ):
        self._inner = inner
        self._settings = settings or get_settings().remote

    @property
    def inner(self) -> LedgerBackendInterface:
        return self._inner

    async def _with_timeout(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        timeout = self._settings.timeout_seconds
        try:
            return await asyncio.wait_for(call(), timeout=timeout)
        except asyncio.TimeoutError:
            raise RemoteTimeoutError(operation, timeout)

    async def _read(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._settings.read_retry_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self._settings.retry_wait_min_seconds,
                max=self._settings.retry_wait_max_seconds,
            ),
            retry=retry_if_exception_type((RemoteTimeoutError, BackendConnectionError)),
            reraise=True,
        ):
            with attempt:
                return await self._with_timeout(operation, call)

    async def _write(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        return await self._with_timeout(operation, call)

    async def get_transactions(
        self,
        account: Account,
        period: Optional[Period] = None,
    ) -> list[Transaction]:
        return await self._read(
            "get_transactions", lambda: self._inner.get_transactions(account, period)
        )

    async def get_balance(
        self,
        account: Account,
        category: Optional[BudgetCategory] = None,
        period: Optional[Period] = None,
    ) -> Decimal:
        return await self._read(
            "get_balance", lambda: self._inner.get_balance(account, category, period)
        )

    async def get_currency(self, account: Account) -> str:
        return await self._read(
            "get_currency", lambda: self._inner.get_currency(account)
        )

    async def add_transaction(
        self,
        account: Account,
        draft: TransactionDraft,
    ) -> Transaction:
        return await self._write(
            "add_transaction", lambda: self._inner.add_transaction(account, draft)
        )

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        return await self._write(
            "update_transaction", lambda: self._inner.update_transaction(transaction)
        )

    async def add_tags(self, labels: list[str]) -> list[Tag]:
        return await self._write("add_tags", lambda: self._inner.add_tags(labels))

    async def get_tags(self) -> list[Tag]:
        return await self._read("get_tags", self._inner.get_tags)

    async def get_settings(self) -> BackendSettings:
        return await self._read("get_settings", self._inner.get_settings)

    async def get_date(self) -> datetime:
        return await self._read("get_date", self._inner.get_date)
