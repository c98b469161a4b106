"""Transaction store package."""

from ledgerview.store.state import (
    LedgerSlice,
    LedgerState,
    PendingWrite,
    RowState,
    SliceStatus,
    WriteStatus,
    find_divergence,
    reduce,
)
from ledgerview.store.transaction_store import (
    CancellationScope,
    CreateFailedError,
    InvalidDraftError,
    StoreError,
    TagCreationError,
    TransactionNotFoundError,
    TransactionStore,
    UpdateFailedError,
)

__all__ = [
    # State
    "LedgerSlice",
    "LedgerState",
    "PendingWrite",
    "RowState",
    "SliceStatus",
    "WriteStatus",
    "find_divergence",
    "reduce",
    # Store
    "CancellationScope",
    "TransactionStore",
    # Errors
    "CreateFailedError",
    "InvalidDraftError",
    "StoreError",
    "TagCreationError",
    "TransactionNotFoundError",
    "UpdateFailedError",
]
