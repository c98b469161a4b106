"""
Ledger State and Transitions

The cached view of one account is an immutable LedgerState. It only
changes through `reduce(state, message)`, a pure function, so every
transition of the cache can be tested without a backend or a loop.

DESIGN DECISION: Each cached row keeps its last CONFIRMED backend copy
and the queue of PENDING patches separately. The row shown to the user
is the confirmed copy with the pending patches applied in order. This
makes the two outcomes of a write trivial:
- success: the confirmed copy becomes the backend response
- failure: the failed patch is dropped, nothing else is touched

CRITICAL: Transitions never rebuild a row they don't touch. Rows that
are not part of a message keep the exact same objects.

Every confirmed write (a created transaction or a confirmed patch) gets
the next write sequence number. Loads carry the sequence number current
when they were issued, and a snapshot never overrides a row confirmed
after that point: the snapshot is older than the row.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ledgerview.models.ledger import Account, Transaction, TransactionPatch


class LedgerSlice(str, Enum):
    """Independently loaded parts of the ledger view."""
    TRANSACTIONS = "transactions"
    BALANCE = "balance"
    CURRENCY = "currency"


class SliceStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class WriteStatus(str, Enum):
    """Status of a row, or of one cell of a row, against the backend."""
    CONFIRMED = "confirmed"
    PENDING = "pending"
    FAILED = "failed"


# =============================================================================
# ROW STATE
# =============================================================================

class PendingWrite(BaseModel):
    """A patch applied locally and not yet answered by the backend."""
    model_config = ConfigDict(frozen=True)

    write_id: str
    patch: TransactionPatch


class RowState(BaseModel):
    """Confirmed copy of a transaction plus its pending patches."""
    model_config = ConfigDict(frozen=True)

    confirmed: Transaction
    current: Transaction
    pending: tuple[PendingWrite, ...] = Field(default_factory=tuple)
    failed_fields: frozenset[str] = Field(default_factory=frozenset)
    last_error: Optional[str] = None
    # Write sequence number of the local write that produced `confirmed`,
    # 0 when it came from a load
    confirmed_seq: int = 0

    @classmethod
    def build(
        cls,
        confirmed: Transaction,
        pending: tuple[PendingWrite, ...] = (),
        failed_fields: frozenset[str] = frozenset(),
        last_error: Optional[str] = None,
        confirmed_seq: int = 0,
    ) -> "RowState":
        current = confirmed
        for write in pending:
            current = write.patch.apply(current)
        return cls(
            confirmed=confirmed,
            current=current,
            pending=pending,
            failed_fields=failed_fields,
            last_error=last_error,
            confirmed_seq=confirmed_seq,
        )

    def is_pending(self, write_id: str) -> bool:
        return any(write.write_id == write_id for write in self.pending)

    def pending_fields(self) -> frozenset[str]:
        fields: frozenset[str] = frozenset()
        for write in self.pending:
            fields |= write.patch.fields()
        return fields

    def write_status(self, field: Optional[str] = None) -> WriteStatus:
        """Status of the whole row, or of a single field when given."""
        if field is None:
            if self.pending:
                return WriteStatus.PENDING
            return WriteStatus.FAILED if self.failed_fields else WriteStatus.CONFIRMED

        if field in self.pending_fields():
            return WriteStatus.PENDING
        if field in self.failed_fields:
            return WriteStatus.FAILED
        return WriteStatus.CONFIRMED


# =============================================================================
# LEDGER STATE
# =============================================================================

class LedgerState(BaseModel):
    """Everything the view knows about one account."""
    model_config = ConfigDict(frozen=True)

    account: Account
    order: tuple[str, ...] = Field(default_factory=tuple)
    rows: dict[str, RowState] = Field(default_factory=dict)
    balance: Optional[Decimal] = None
    currency: Optional[str] = None
    transactions_status: SliceStatus = SliceStatus.LOADING
    balance_status: SliceStatus = SliceStatus.LOADING
    currency_status: SliceStatus = SliceStatus.LOADING
    slice_errors: dict[str, str] = Field(default_factory=dict)
    # Amount change of every confirmed write, in confirmation order
    write_log: tuple[Decimal, ...] = Field(default_factory=tuple)

    @classmethod
    def initial(cls, account: Account) -> "LedgerState":
        return cls(account=account)

    @property
    def write_seq(self) -> int:
        """Sequence number of the last confirmed write."""
        return len(self.write_log)

    def confirmed_delta_since(self, seq: int) -> Decimal:
        """Balance change of the writes confirmed after `seq`."""
        return sum(self.write_log[seq:], Decimal("0"))

    @property
    def transactions(self) -> Optional[tuple[Transaction, ...]]:
        """
        Rows as shown to the user, in ledger order.

        None until the transaction list has been loaded once.
        """
        if self.transactions_status is not SliceStatus.READY and not self.order:
            return None
        return tuple(self.rows[transaction_id].current for transaction_id in self.order)

    def status_of(self, ledger_slice: LedgerSlice) -> SliceStatus:
        return getattr(self, f"{ledger_slice.value}_status")

    def row(self, transaction_id: str) -> Optional[RowState]:
        return self.rows.get(transaction_id)


# =============================================================================
# MESSAGES
# =============================================================================

class LoadStarted(BaseModel):
    model_config = ConfigDict(frozen=True)

    slices: tuple[LedgerSlice, ...] = tuple(LedgerSlice)


class TransactionsLoaded(BaseModel):
    """
    A transaction list snapshot.

    `issued_at` is the write sequence number when the call was made;
    None means the snapshot is current.
    """
    model_config = ConfigDict(frozen=True)

    transactions: tuple[Transaction, ...]
    issued_at: Optional[int] = None


class BalanceLoaded(BaseModel):
    model_config = ConfigDict(frozen=True)

    balance: Decimal
    issued_at: Optional[int] = None


class CurrencyLoaded(BaseModel):
    model_config = ConfigDict(frozen=True)

    currency: str


class SliceFailed(BaseModel):
    model_config = ConfigDict(frozen=True)

    slice: LedgerSlice
    error: str


class TransactionAdded(BaseModel):
    model_config = ConfigDict(frozen=True)

    transaction: Transaction


class PatchApplied(BaseModel):
    model_config = ConfigDict(frozen=True)

    transaction_id: str
    write: PendingWrite


class WriteConfirmed(BaseModel):
    model_config = ConfigDict(frozen=True)

    transaction_id: str
    write_id: str
    transaction: Transaction


class WriteFailed(BaseModel):
    model_config = ConfigDict(frozen=True)

    transaction_id: str
    write_id: str
    fields: frozenset[str]
    error: str


Message = Union[
    LoadStarted,
    TransactionsLoaded,
    BalanceLoaded,
    CurrencyLoaded,
    SliceFailed,
    TransactionAdded,
    PatchApplied,
    WriteConfirmed,
    WriteFailed,
]


# =============================================================================
# TRANSITIONS
# =============================================================================

def _pending_delta(rows: dict[str, RowState]) -> Decimal:
    """Amount the shown rows differ from their confirmed copies."""
    return sum(
        (row.current.amount - row.confirmed.amount for row in rows.values() if row.pending),
        Decimal("0"),
    )


def _replace_row(state: LedgerState, transaction_id: str, row: RowState) -> LedgerState:
    previous = state.rows[transaction_id]
    rows = dict(state.rows)
    rows[transaction_id] = row

    balance = state.balance
    if balance is not None:
        balance += row.current.amount - previous.current.amount
    return state.model_copy(update={"rows": rows, "balance": balance})


def _issued_at(state: LedgerState, issued_at: Optional[int]) -> int:
    return state.write_seq if issued_at is None else issued_at


def _merge_loaded(
    state: LedgerState,
    transactions: tuple[Transaction, ...],
    issued_at: int,
) -> LedgerState:
    rows: dict[str, RowState] = {}
    for transaction in transactions:
        existing = state.rows.get(transaction.id)
        if existing is None:
            rows[transaction.id] = RowState.build(transaction)
        elif existing.confirmed_seq > issued_at:
            rows[transaction.id] = existing
        elif existing.pending:
            # Writes still in flight are replayed on the fresh copy
            rows[transaction.id] = RowState.build(
                transaction,
                pending=existing.pending,
                failed_fields=existing.failed_fields,
                last_error=existing.last_error,
            )
        elif existing.confirmed == transaction and not existing.failed_fields:
            rows[transaction.id] = existing
        else:
            rows[transaction.id] = RowState.build(transaction)

    # Rows created after the call was made are not in the snapshot yet
    for transaction_id in state.order:
        row = state.rows[transaction_id]
        if transaction_id not in rows and row.confirmed_seq > issued_at:
            rows[transaction_id] = row

    return state.model_copy(update={
        "order": tuple(rows),
        "rows": rows,
        "transactions_status": SliceStatus.READY,
    })


def _without_error(state: LedgerState, ledger_slice: LedgerSlice) -> dict[str, str]:
    errors = dict(state.slice_errors)
    errors.pop(ledger_slice.value, None)
    return errors


def reduce(state: LedgerState, message: Message) -> LedgerState:
    """Apply one message to the state and return the new state."""
    if isinstance(message, LoadStarted):
        update = {f"{s.value}_status": SliceStatus.LOADING for s in message.slices}
        errors = dict(state.slice_errors)
        for ledger_slice in message.slices:
            errors.pop(ledger_slice.value, None)
        update["slice_errors"] = errors
        return state.model_copy(update=update)

    if isinstance(message, TransactionsLoaded):
        merged = _merge_loaded(
            state, message.transactions, _issued_at(state, message.issued_at)
        )
        return merged.model_copy(update={
            "slice_errors": _without_error(state, LedgerSlice.TRANSACTIONS),
        })

    if isinstance(message, BalanceLoaded):
        issued_at = _issued_at(state, message.issued_at)
        balance = (
            message.balance
            + state.confirmed_delta_since(issued_at)
            + _pending_delta(state.rows)
        )
        return state.model_copy(update={
            "balance": balance,
            "balance_status": SliceStatus.READY,
            "slice_errors": _without_error(state, LedgerSlice.BALANCE),
        })

    if isinstance(message, CurrencyLoaded):
        return state.model_copy(update={
            "currency": message.currency,
            "currency_status": SliceStatus.READY,
            "slice_errors": _without_error(state, LedgerSlice.CURRENCY),
        })

    if isinstance(message, SliceFailed):
        errors = dict(state.slice_errors)
        errors[message.slice.value] = message.error
        return state.model_copy(update={
            f"{message.slice.value}_status": SliceStatus.FAILED,
            "slice_errors": errors,
        })

    if isinstance(message, TransactionAdded):
        transaction = message.transaction
        seq = state.write_seq + 1
        row = RowState.build(transaction, confirmed_seq=seq)
        existing = state.rows.get(transaction.id)
        if existing is not None:
            # A reload already brought the row in
            logged = state.model_copy(update={
                "write_log": state.write_log + (transaction.amount - existing.confirmed.amount,),
            })
            return _replace_row(logged, transaction.id, row)

        rows = dict(state.rows)
        rows[transaction.id] = row
        balance = state.balance
        if balance is not None:
            balance += transaction.amount
        return state.model_copy(update={
            "order": state.order + (transaction.id,),
            "rows": rows,
            "balance": balance,
            "write_log": state.write_log + (transaction.amount,),
        })

    if isinstance(message, PatchApplied):
        row = state.rows.get(message.transaction_id)
        if row is None:
            return state
        new_row = RowState.build(
            row.confirmed,
            pending=row.pending + (message.write,),
            failed_fields=row.failed_fields - message.write.patch.fields(),
            last_error=row.last_error,
            confirmed_seq=row.confirmed_seq,
        )
        return _replace_row(state, message.transaction_id, new_row)

    if isinstance(message, WriteConfirmed):
        row = state.rows.get(message.transaction_id)
        if row is None:
            return state
        pending = tuple(w for w in row.pending if w.write_id != message.write_id)
        new_row = RowState.build(
            message.transaction,
            pending=pending,
            failed_fields=row.failed_fields,
            last_error=row.last_error if row.failed_fields else None,
            confirmed_seq=state.write_seq + 1,
        )
        logged = state.model_copy(update={
            "write_log": state.write_log + (message.transaction.amount - row.confirmed.amount,),
        })
        return _replace_row(logged, message.transaction_id, new_row)

    if isinstance(message, WriteFailed):
        row = state.rows.get(message.transaction_id)
        if row is None:
            return state
        pending = tuple(w for w in row.pending if w.write_id != message.write_id)
        new_row = RowState.build(
            row.confirmed,
            pending=pending,
            failed_fields=row.failed_fields | message.fields,
            last_error=message.error,
            confirmed_seq=row.confirmed_seq,
        )
        return _replace_row(state, message.transaction_id, new_row)

    raise TypeError(f"Unknown ledger message: {type(message).__name__}")


def find_divergence(
    state: LedgerState,
    remote: list[Transaction],
    issued_at: Optional[int] = None,
) -> tuple[str, ...]:
    """
    Ids of cached rows that the backend no longer agrees with.

    Only rows without writes in flight are compared: a row with a
    pending patch is expected to differ. Rows confirmed after the
    snapshot was requested are newer than it and are skipped too.
    """
    issued_at = _issued_at(state, issued_at)
    remote_by_id = {transaction.id: transaction for transaction in remote}
    diverged = []
    for transaction_id in state.order:
        row = state.rows[transaction_id]
        if row.pending or row.confirmed_seq > issued_at:
            continue
        remote_copy = remote_by_id.get(transaction_id)
        if remote_copy is None or remote_copy != row.confirmed:
            diverged.append(transaction_id)
    return tuple(diverged)
