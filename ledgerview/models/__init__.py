"""
Data Models Package

This package contains all Pydantic models used in the Ledger Viewer.
All data crossing the backend boundary must conform to these schemas.
"""

from ledgerview.models.ledger import (
    PATCHABLE_FIELDS,
    Account,
    BackendSettings,
    BalanceBreakdown,
    BudgetCategory,
    CategoryBalance,
    CategoryShare,
    Operation,
    Period,
    Tag,
    Theme,
    Transaction,
    TransactionDraft,
    TransactionPatch,
)
from ledgerview.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "PATCHABLE_FIELDS",
    "Account",
    "BackendSettings",
    "BalanceBreakdown",
    "BudgetCategory",
    "CategoryBalance",
    "CategoryShare",
    "Operation",
    "Period",
    "Tag",
    "Theme",
    "Transaction",
    "TransactionDraft",
    "TransactionPatch",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
