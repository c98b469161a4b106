"""
Transaction Store

Per-account cache of transactions, balance and currency, and the ONLY
component allowed to call the backend's mutation endpoints.

Flows:
1. Load: transactions, balance and currency are fetched concurrently;
   each result fills its own slice and a failure only fails its slice
2. Create: NOT optimistic. The row appears once the backend confirmed it
3. Update: optimistic. The patch shows at once as a pending write,
   writes to the same row go out one at a time, and a failed (or
   cancelled) write is reverted without touching anything else
4. Tags: unknown labels are created in one call before use

DESIGN DECISION: Every remote failure goes through `_report_failure`,
which writes an audit event AND a user-visible notification. There is
no failure that is only logged.

CRITICAL: A response is applied only if the store's scope is still
open. After `close()` (the view moved to another account) late
responses are logged and dropped.

A reload never overrides what a write confirmed after the reload was
issued, see `ledgerview.store.state`.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, Optional
from uuid import uuid4

import structlog

from ledgerview.audit import AuditLogger, Notifier
from ledgerview.models.ledger import (
    Account,
    BackendSettings,
    BudgetCategory,
    Period,
    Tag,
    Transaction,
    TransactionDraft,
    TransactionPatch,
)
from ledgerview.services.remote.interface import LedgerBackendInterface, RemoteError
from ledgerview.store.state import (
    BalanceLoaded,
    CurrencyLoaded,
    LedgerSlice,
    LedgerState,
    LoadStarted,
    Message,
    PatchApplied,
    PendingWrite,
    SliceFailed,
    TransactionAdded,
    TransactionsLoaded,
    WriteConfirmed,
    WriteFailed,
    WriteStatus,
    find_divergence,
    reduce,
)
from ledgerview.tags import TagRegistry, UnresolvedTagError

logger = structlog.get_logger(__name__)

StateListener = Callable[[LedgerState], None]

# Wording used in user notifications
_OPERATION_LABELS = {
    "get_transactions": "Loading transactions",
    "get_balance": "Loading the balance",
    "get_currency": "Loading the currency",
    "get_tags": "Loading tags",
    "add_tags": "Creating tags",
    "add_transaction": "Adding the transaction",
    "update_transaction": "Saving the change",
    "get_settings": "Loading settings",
    "get_date": "Loading the date",
}


class CancellationScope:
    """Lifetime of a store bound to one account."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def accepts(self, account_id: str) -> bool:
        return not self._cancelled and account_id == self.account_id


class TransactionStore:
    """
    Cache of one account's ledger.

    State transitions go through `reduce`; this class only decides which
    messages to send and when, and talks to the backend.
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
        self._account = account
        self._registry = tag_registry or TagRegistry()
        self._audit_logger = audit_logger or AuditLogger()
        self._notifier = notifier or Notifier()

        self._scope = CancellationScope(account.id)
        self._state = LedgerState.initial(account)
        self._row_locks: dict[str, asyncio.Lock] = {}
        self._listeners: list[StateListener] = []

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    @property
    def account(self) -> Account:
        return self._account

    @property
    def state(self) -> LedgerState:
        return self._state

    @property
    def transactions(self) -> Optional[tuple[Transaction, ...]]:
        return self._state.transactions

    @property
    def balance(self) -> Optional[Decimal]:
        return self._state.balance

    @property
    def currency(self) -> Optional[str]:
        return self._state.currency

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
    def closed(self) -> bool:
        return self._scope.cancelled

    def get(self, transaction_id: str) -> Optional[Transaction]:
        row = self._state.row(transaction_id)
        return row.current if row else None

    def row_status(self, transaction_id: str) -> Optional[WriteStatus]:
        row = self._state.row(transaction_id)
        return row.write_status() if row else None

    def cell_status(self, transaction_id: str, field: str) -> Optional[WriteStatus]:
        row = self._state.row(transaction_id)
        return row.write_status(field) if row else None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call `listener` with the new state after every transition."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Stop applying responses. Calls in flight are not aborted."""
        self._scope.cancel()
        logger.debug("store_closed", account_id=self._account.id)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load(self) -> LedgerState:
        """Fetch the three slices concurrently."""
        scope = self._scope
        issued_at = self._state.write_seq
        self._apply(LoadStarted())
        await asyncio.gather(
            self._load_transactions(scope, issued_at),
            self._load_balance(scope, issued_at),
            self._load_currency(scope),
        )
        return self._state

    async def _load_transactions(self, scope: CancellationScope, issued_at: int) -> None:
        try:
            remote = await self._backend.get_transactions(self._account)
        except RemoteError as e:
            await self._fail_slice(scope, LedgerSlice.TRANSACTIONS, "get_transactions", e)
            return

        if not await self._accept(scope, "get_transactions"):
            return

        diverged = find_divergence(self._state, remote, issued_at)
        self._apply(TransactionsLoaded(transactions=tuple(remote), issued_at=issued_at))
        await self._audit_logger.log_slice_loaded(
            self._account.id, LedgerSlice.TRANSACTIONS.value, len(remote)
        )

        if diverged:
            await self._audit_logger.log_divergence(
                self._account.id, list(diverged), source="reload"
            )
            self._notifier.warning(
                f"{len(diverged)} transaction(s) changed on the server and were refreshed"
            )

    async def _load_balance(self, scope: CancellationScope, issued_at: int) -> None:
        try:
            balance = await self._backend.get_balance(self._account)
        except RemoteError as e:
            await self._fail_slice(scope, LedgerSlice.BALANCE, "get_balance", e)
            return

        if await self._accept(scope, "get_balance"):
            self._apply(BalanceLoaded(balance=balance, issued_at=issued_at))
            await self._audit_logger.log_slice_loaded(
                self._account.id, LedgerSlice.BALANCE.value
            )

    async def _load_currency(self, scope: CancellationScope) -> None:
        try:
            currency = await self._backend.get_currency(self._account)
        except RemoteError as e:
            await self._fail_slice(scope, LedgerSlice.CURRENCY, "get_currency", e)
            return

        if await self._accept(scope, "get_currency"):
            self._apply(CurrencyLoaded(currency=currency))
            await self._audit_logger.log_slice_loaded(
                self._account.id, LedgerSlice.CURRENCY.value
            )

    async def _fail_slice(
        self,
        scope: CancellationScope,
        ledger_slice: LedgerSlice,
        operation: str,
        error: RemoteError,
    ) -> None:
        if not await self._accept(scope, operation):
            return
        self._apply(SliceFailed(slice=ledger_slice, error=str(error)))
        await self._audit_logger.log_slice_load_failed(
            self._account.id, ledger_slice.value, str(error)
        )
        await self._report_failure(operation, error)

    async def load_tags(self) -> tuple[Tag, ...]:
        """Fold the backend's tag list into the registry."""
        try:
            tags = await self._backend.get_tags()
        except RemoteError as e:
            await self._report_failure("get_tags", e)
            return self._registry.known_tags

        self._registry.fold(tags)
        return self._registry.known_tags

    # -------------------------------------------------------------------------
    # Reads used by the controllers
    # -------------------------------------------------------------------------

    async def fetch_category_balance(
        self,
        category: BudgetCategory,
        period: Optional[Period] = None,
    ) -> Optional[Decimal]:
        """Raw signed balance of one category, or None if the call failed."""
        try:
            return await self._backend.get_balance(self._account, category, period)
        except RemoteError as e:
            await self._report_failure("get_balance", e, entity_id=category.value)
            return None

    async def today(self) -> datetime:
        """Backend date, or the local clock if the backend can't answer."""
        try:
            return await self._backend.get_date()
        except RemoteError as e:
            await self._report_failure("get_date", e)
            return datetime.now(timezone.utc)

    async def settings(self) -> BackendSettings:
        try:
            return await self._backend.get_settings()
        except RemoteError as e:
            await self._report_failure("get_settings", e)
            return BackendSettings()

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def resolve_tags(self, labels: Iterable[str]) -> tuple[Tag, ...]:
        """
        Turn labels into tags, creating the unknown ones first.

        At most one `add_tags` call is made.

        Raises:
            TagCreationError: If the tags could not be created
        """
        labels = list(labels)
        resolution = self._registry.resolve(labels)

        if resolution.needs_creation:
            to_create = list(resolution.to_create)
            try:
                created = await self._backend.add_tags(to_create)
            except RemoteError as e:
                await self._report_failure("add_tags", e)
                raise TagCreationError(to_create, str(e)) from e

            self._registry.fold(created)
            await self._audit_logger.log_tags_created(
                labels=to_create,
                tag_ids=[tag.id for tag in created],
            )

        try:
            return self._registry.materialize(labels)
        except UnresolvedTagError as e:
            await self._audit_logger.log_error("UnresolvedTagError", str(e))
            self._notifier.error(f"Creating tags failed: {e}")
            raise TagCreationError(e.labels, str(e)) from e

    async def create(self, draft: TransactionDraft) -> Transaction:
        """
        Add a transaction and cache it once the backend confirmed it.

        Raises:
            InvalidDraftError: If a draft tag is unknown to the registry
            CreateFailedError: If the backend call failed
        """
        known_ids = {tag.id for tag in self._registry.known_tags}
        unknown = [tag.label for tag in draft.tags if tag.id not in known_ids]
        if unknown:
            raise InvalidDraftError(f"Tags not created yet: {', '.join(unknown)}")

        scope = self._scope
        try:
            created = await self._backend.add_transaction(self._account, draft)
        except RemoteError as e:
            await self._report_failure("add_transaction", e)
            raise CreateFailedError(str(e)) from e

        if await self._accept(scope, "add_transaction"):
            self._apply(TransactionAdded(transaction=created))
            await self._audit_logger.log_transaction_created(
                self._account.id, created.id, str(created.amount)
            )
        return created

    async def update(self, transaction_id: str, patch: TransactionPatch) -> Transaction:
        """
        Apply `patch` to a cached row and send it to the backend.

        The patch is visible immediately as a pending write. Writes to
        the same row are sent in order, one at a time, and each one
        carries the last confirmed row with only its own patch on top.

        Returns:
            The transaction as confirmed by the backend

        Raises:
            TransactionNotFoundError: If the row is not cached
            UpdateFailedError: If the backend rejected the write (the
                patch has been reverted by then)
        """
        row = self._state.row(transaction_id)
        if row is None:
            raise TransactionNotFoundError(transaction_id)

        fields = patch.fields()
        if not fields:
            return row.current

        scope = self._scope
        write = PendingWrite(write_id=uuid4().hex, patch=patch)
        self._apply(PatchApplied(transaction_id=transaction_id, write=write))

        try:
            return await self._send_update(scope, transaction_id, write)
        finally:
            self._drop_unsettled(scope, transaction_id, write)

    async def _send_update(
        self,
        scope: CancellationScope,
        transaction_id: str,
        write: PendingWrite,
    ) -> Transaction:
        patch = write.patch
        fields = patch.fields()
        async with self._lock_for(transaction_id):
            row = self._state.row(transaction_id)
            if row is None:
                raise TransactionNotFoundError(transaction_id)
            payload = patch.apply(row.confirmed)

            try:
                confirmed = await self._backend.update_transaction(payload)
            except RemoteError as e:
                if await self._accept(scope, "update_transaction"):
                    self._apply(WriteFailed(
                        transaction_id=transaction_id,
                        write_id=write.write_id,
                        fields=fields,
                        error=str(e),
                    ))
                    await self._audit_logger.log_update_reverted(
                        account_id=self._account.id,
                        transaction_id=transaction_id,
                        fields=sorted(fields),
                        error_message=str(e),
                    )
                await self._report_failure("update_transaction", e, entity_id=transaction_id)
                raise UpdateFailedError(transaction_id, sorted(fields), str(e)) from e

            if await self._accept(scope, "update_transaction"):
                self._apply(WriteConfirmed(
                    transaction_id=transaction_id,
                    write_id=write.write_id,
                    transaction=confirmed,
                ))
                await self._audit_logger.log_transaction_updated(
                    self._account.id, transaction_id, sorted(fields)
                )
        return confirmed

    def _drop_unsettled(
        self,
        scope: CancellationScope,
        transaction_id: str,
        write: PendingWrite,
    ) -> None:
        """Revert a write that left `update` without an answer (cancelled or crashed)."""
        row = self._state.row(transaction_id)
        if row is None or not row.is_pending(write.write_id):
            return
        if not scope.accepts(self._account.id):
            return

        logger.warning(
            "update_interrupted",
            account_id=self._account.id,
            transaction_id=transaction_id,
            fields=sorted(write.patch.fields()),
        )
        self._apply(WriteFailed(
            transaction_id=transaction_id,
            write_id=write.write_id,
            fields=write.patch.fields(),
            error="The change was interrupted before the server answered",
        ))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _lock_for(self, transaction_id: str) -> asyncio.Lock:
        return self._row_locks.setdefault(transaction_id, asyncio.Lock())

    def _apply(self, message: Message) -> None:
        self._state = reduce(self._state, message)
        logger.debug(
            "ledger_transition",
            account_id=self._account.id,
            message=type(message).__name__,
        )
        for listener in list(self._listeners):
            listener(self._state)

    async def _accept(self, scope: CancellationScope, operation: str) -> bool:
        """Whether a response for `scope` may still change the state."""
        if scope.accepts(self._account.id):
            return True
        await self._audit_logger.log_stale_response(scope.account_id, operation)
        return False

    async def _report_failure(
        self,
        operation: str,
        error: RemoteError,
        entity_id: Optional[str] = None,
    ) -> None:
        await self._audit_logger.log_remote_call_failed(
            operation=operation,
            error_message=str(error),
            account_id=self._account.id,
            entity_id=entity_id,
            error_code=error.code,
        )
        label = _OPERATION_LABELS.get(operation, operation)
        self._notifier.error(f"{label} failed: {error}")


class StoreError(Exception):
    """Base exception for store operations."""
    pass


class TransactionNotFoundError(StoreError):
    """The transaction is not in the cache."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class InvalidDraftError(StoreError):
    """The draft can't be sent as it is."""
    pass


class CreateFailedError(StoreError):
    """The backend did not create the transaction."""
    pass


class UpdateFailedError(StoreError):
    """The backend rejected an edit; the edit has been reverted."""

    def __init__(self, transaction_id: str, fields: list[str], message: str):
        self.transaction_id = transaction_id
        self.fields = fields
        super().__init__(message)


class TagCreationError(StoreError):
    """New tags could not be created."""

    def __init__(self, labels: list[str], message: str):
        self.labels = labels
        super().__init__(message)
