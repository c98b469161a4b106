"""Services package."""

from ledgerview.services.remote import (
    BackendConnectionError,
    GuardedBackend,
    InMemoryLedgerBackend,
    LedgerBackendInterface,
    NotFoundError,
    RemoteError,
    RemoteTimeoutError,
)

__all__ = [
    "BackendConnectionError",
    "GuardedBackend",
    "InMemoryLedgerBackend",
    "LedgerBackendInterface",
    "NotFoundError",
    "RemoteError",
    "RemoteTimeoutError",
]
