"""
Audit Logger

DESIGN DECISION: Every remote call outcome and every reconciliation of
the ledger cache is logged. This provides:
1. Traceability of optimistic writes
2. Debugging capability when the cache and backend disagree
3. A bounded in-memory history the UI can inspect

The audit logger:
- Is async so it can sit in the store's call paths without blocking them
- Never raises into the caller
- Tags every event with the account the store was bound to
"""

import logging
from collections import deque
from typing import Optional

import structlog

from ledgerview.config import get_settings
from ledgerview.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


def configure_logging() -> None:
    """Configure structlog on top of stdlib logging."""
    app_settings = get_settings().app

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, app_settings.effective_log_level),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if app_settings.log_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(environment=app_settings.app_environment)


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. A bounded in-memory history (for the UI and tests)
    """

    def __init__(self, history_size: Optional[int] = None):
        """
        Initialize audit logger.

        Args:
            history_size: How many events to keep in memory.
                          Defaults to the `audit_history` setting.
        """
        size = history_size or get_settings().app.audit_history
        self._history: deque[AuditEvent] = deque(maxlen=size)
        self._logger = structlog.get_logger("ledgerview.audit")

    async def log(self, event: AuditEvent) -> None:
        """Log an audit event locally and remember it."""
        self._history.append(event)
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    def recent_events(
        self,
        limit: int = 100,
        event_type: Optional[AuditEventType] = None,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        events = [
            event for event in reversed(self._history)
            if event_type is None or event.event_type == event_type
        ]
        return events[:limit]

    async def log_slice_loaded(
        self,
        account_id: str,
        slice_name: str,
        item_count: Optional[int] = None,
    ) -> None:
        await self.log(AuditEventBuilder.slice_loaded(account_id, slice_name, item_count))

    async def log_slice_load_failed(
        self,
        account_id: str,
        slice_name: str,
        error_message: str,
    ) -> None:
        await self.log(AuditEventBuilder.slice_load_failed(account_id, slice_name, error_message))

    async def log_stale_response(
        self,
        account_id: str,
        operation: str,
    ) -> None:
        await self.log(AuditEventBuilder.stale_response_discarded(account_id, operation))

    async def log_divergence(
        self,
        account_id: str,
        entity_ids: list[str],
        source: str,
        entity_type: str = "transaction",
    ) -> None:
        await self.log(
            AuditEventBuilder.divergence_detected(account_id, entity_ids, source, entity_type)
        )

    async def log_transaction_created(
        self,
        account_id: str,
        transaction_id: str,
        amount: str,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_created(account_id, transaction_id, amount))

    async def log_transaction_updated(
        self,
        account_id: str,
        transaction_id: str,
        fields: list[str],
    ) -> None:
        await self.log(AuditEventBuilder.transaction_updated(account_id, transaction_id, fields))

    async def log_update_reverted(
        self,
        account_id: str,
        transaction_id: str,
        fields: list[str],
        error_message: str,
    ) -> None:
        event = AuditEventBuilder.update_reverted(
            account_id=account_id,
            transaction_id=transaction_id,
            fields=fields,
            error_message=error_message,
        )
        await self.log(event)

    async def log_tags_created(
        self,
        labels: list[str],
        tag_ids: list[str],
    ) -> None:
        await self.log(AuditEventBuilder.tags_created(labels, tag_ids))

    async def log_validation_failed(
        self,
        field: str,
        value: str,
        message: str,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(field, value, message))

    async def log_remote_call_failed(
        self,
        operation: str,
        error_message: str,
        account_id: Optional[str] = None,
        entity_id: Optional[str] = None,
        error_code: Optional[str] = None,
    ) -> None:
        event = AuditEventBuilder.remote_call_failed(
            operation=operation,
            error_message=error_message,
            account_id=account_id,
            entity_id=entity_id,
            error_code=error_code,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(error_type, error_message, details))
