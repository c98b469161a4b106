"""
Remote Backend Package

Provides the typed backend interface, its error types, the timeout/retry
wrapper and an in-process implementation.
"""

from ledgerview.services.remote.interface import (
    BackendConnectionError,
    LedgerBackendInterface,
    NotFoundError,
    RemoteError,
    RemoteTimeoutError,
)
from ledgerview.services.remote.guarded import GuardedBackend
from ledgerview.services.remote.memory import InMemoryLedgerBackend

__all__ = [
    # Interface
    "LedgerBackendInterface",
    # Exceptions
    "BackendConnectionError",
    "NotFoundError",
    "RemoteError",
    "RemoteTimeoutError",
    # Implementations
    "GuardedBackend",
    "InMemoryLedgerBackend",
]
