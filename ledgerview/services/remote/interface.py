"""
Abstract Ledger Backend Interface

DESIGN DECISION: The backend is reached through a typed command interface,
one async method per remote operation. This allows us to:
1. Swap the in-process backend for an IPC/HTTP bridge later
2. Use in-memory backends for testing
3. Wrap any backend with timeout/retry policy transparently
4. Keep the store and controllers decoupled from transport details

Every method may raise RemoteError (or a subclass). Nothing else is part
of the contract.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ledgerview.models.ledger import (
    Account,
    BackendSettings,
    BudgetCategory,
    Period,
    Tag,
    Transaction,
    TransactionDraft,
)


class LedgerBackendInterface(ABC):
    """
    Abstract interface for the ledger backend.

    Any backend implementation (in-process, IPC bridge, HTTP API)
    must implement these methods.
    """

    @abstractmethod
    async def get_transactions(
        self,
        account: Account,
        period: Optional[Period] = None,
    ) -> list[Transaction]:
        """
        List the transactions of an account.

        Args:
            account: The account to read
            period: If given, only transactions dated inside it

        Returns:
            Transactions in ledger order

        Raises:
            NotFoundError: If the account doesn't exist
        """
        pass

    @abstractmethod
    async def get_balance(
        self,
        account: Account,
        category: Optional[BudgetCategory] = None,
        period: Optional[Period] = None,
    ) -> Decimal:
        """
        Signed sum of the account's transaction amounts.

        Args:
            account: The account to sum
            category: If given, only transactions tagged with this category
            period: If given, only transactions dated inside it

        Returns:
            The signed sum in the raw stored sign
        """
        pass

    @abstractmethod
    async def get_currency(self, account: Account) -> str:
        """Currency code of the account."""
        pass

    @abstractmethod
    async def add_transaction(
        self,
        account: Account,
        draft: TransactionDraft,
    ) -> Transaction:
        """
        Create a transaction from a draft.

        Args:
            account: Owning account
            draft: The draft; its tags all carry ids

        Returns:
            The created transaction with its assigned id
        """
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> Transaction:
        """
        Replace a transaction with the given full record.

        Returns:
            The record as stored by the backend

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def add_tags(self, labels: list[str]) -> list[Tag]:
        """
        Create tags for the given labels.

        Returns:
            One tag per label, in the same order, with assigned ids
        """
        pass

    @abstractmethod
    async def get_tags(self) -> list[Tag]:
        """All known tags."""
        pass

    @abstractmethod
    async def get_settings(self) -> BackendSettings:
        """The persisted settings record."""
        pass

    @abstractmethod
    async def get_date(self) -> datetime:
        """Current backend time, used as the default transaction date."""
        pass


class RemoteError(Exception):
    """Base exception for backend calls."""

    code = "remote_error"


class NotFoundError(RemoteError):
    """Entity not found in the backend."""

    code = "not_found"


class BackendConnectionError(RemoteError):
    """Could not reach the backend."""

    code = "connection"


class RemoteTimeoutError(RemoteError):
    """The backend did not answer in time."""

    code = "timeout"

    def __init__(self, operation: str, timeout_seconds: float):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(f"{operation} timed out after {timeout_seconds:g}s")
