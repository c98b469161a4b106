"""
Audit Models for Ledger Viewer

Every remote call outcome and every state reconciliation in the store
produces an audit event. This provides:
1. Traceability of optimistic writes (applied, confirmed, reverted)
2. Debugging information when the cache and the backend disagree
3. One structured record per failure, next to the user notification

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Loading
    SLICE_LOADED = "slice_loaded"
    SLICE_LOAD_FAILED = "slice_load_failed"
    STALE_RESPONSE_DISCARDED = "stale_response_discarded"
    DIVERGENCE_DETECTED = "divergence_detected"

    # Writes
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    UPDATE_REVERTED = "update_reverted"
    TAGS_CREATED = "tags_created"

    # Local validation
    VALIDATION_FAILED = "validation_failed"

    # System events
    REMOTE_CALL_FAILED = "remote_call_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what is this about?
    account_id: Optional[str] = Field(
        default=None,
        description="Account the store was bound to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'tag', 'slice')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user edit?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "account_id": self.account_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created(account_id, transaction_id, amount)
        event = AuditEventBuilder.update_reverted(account_id, transaction_id, fields, error)
    """

    @staticmethod
    def slice_loaded(
        account_id: str,
        slice_name: str,
        item_count: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SLICE_LOADED,
            severity=AuditSeverity.DEBUG,
            account_id=account_id,
            entity_type="slice",
            entity_id=slice_name,
            description=f"Loaded {slice_name}",
            details={"item_count": item_count} if item_count is not None else {},
        )

    @staticmethod
    def slice_load_failed(
        account_id: str,
        slice_name: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SLICE_LOAD_FAILED,
            severity=AuditSeverity.ERROR,
            account_id=account_id,
            entity_type="slice",
            entity_id=slice_name,
            description=f"Failed to load {slice_name}",
            error_message=error_message,
        )

    @staticmethod
    def stale_response_discarded(
        account_id: str,
        operation: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_RESPONSE_DISCARDED,
            severity=AuditSeverity.DEBUG,
            account_id=account_id,
            description=f"Discarded {operation} response for a closed view",
            details={"operation": operation},
        )

    @staticmethod
    def divergence_detected(
        account_id: str,
        entity_ids: list[str],
        source: str,
        entity_type: str = "transaction",
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DIVERGENCE_DETECTED,
            severity=AuditSeverity.WARNING,
            account_id=account_id,
            entity_type=entity_type,
            description=f"Local ledger diverged from backend ({source})",
            details={
                "entity_ids": entity_ids,
                "source": source,
            },
        )

    @staticmethod
    def transaction_created(
        account_id: str,
        transaction_id: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            account_id=account_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction created: {amount}",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        account_id: str,
        transaction_id: str,
        fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            account_id=account_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction updated: {', '.join(fields)}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def update_reverted(
        account_id: str,
        transaction_id: str,
        fields: list[str],
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPDATE_REVERTED,
            severity=AuditSeverity.WARNING,
            account_id=account_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Optimistic edit reverted after backend failure",
            details={"fields": fields},
            error_message=error_message,
        )

    @staticmethod
    def tags_created(
        labels: list[str],
        tag_ids: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TAGS_CREATED,
            entity_type="tag",
            description=f"Created {len(labels)} tag(s)",
            details={
                "labels": labels,
                "tag_ids": tag_ids,
            },
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        field: str,
        value: str,
        message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.INFO,
            entity_type="field",
            entity_id=field,
            description=message,
            details={"value": value},
            is_user_action=True,
        )

    @staticmethod
    def remote_call_failed(
        operation: str,
        error_message: str,
        account_id: Optional[str] = None,
        entity_id: Optional[str] = None,
        error_code: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_CALL_FAILED,
            severity=AuditSeverity.ERROR,
            account_id=account_id,
            entity_id=entity_id,
            description=f"Backend call failed: {operation}",
            details={"operation": operation},
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
