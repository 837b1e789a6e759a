"""
Audit Logger

Every write and every degraded read is logged. This provides:
1. Traceability of what changed a user's records
2. A record of when the dashboard showed stale data
3. A record of when the assistant fell back to static answers

The audit logger:
- Is async so flows can await it alongside storage calls
- Never raises when persistence fails (a failed audit write must not
  fail the user's action)
- Supports correlation IDs to trace related events
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from foretrack.config import get_settings
from foretrack.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from foretrack.services.storage import AuditStorageInterface


def configure_logging(level: Optional[str] = None) -> None:
    """Configure structlog on top of the stdlib logging level."""
    level_name = (level or get_settings().app.log_level).upper()
    logging.basicConfig(format="%(message)s", level=getattr(logging, level_name, logging.INFO))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(default=str),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Writes audit events to the structured log and, when configured, to
    the audit worksheet.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("foretrack.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        The local log line is always written, at the event's severity.

        Returns False only when a configured storage rejected the event.
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_record_written(
        self,
        entity_type: str,
        action: str,
        entity_id: UUID,
        user_id: str,
        amount: Optional[Decimal] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a transaction, budget, category or preferences write."""
        details = {"amount": str(amount)} if amount is not None else None
        event = AuditEventBuilder.record_written(
            entity_type=entity_type,
            action=action,
            entity_id=entity_id,
            user_id=user_id,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_fetch_failed(
        self,
        user_id: str,
        resource: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.fetch_failed(
            user_id=user_id,
            resource=resource,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_stale_discarded(
        self,
        user_id: str,
        key: str,
        generation: int,
        latest_generation: int,
    ) -> None:
        event = AuditEventBuilder.stale_result_discarded(
            user_id=user_id,
            key=key,
            generation=generation,
            latest_generation=latest_generation,
        )
        await self.log(event)

    async def log_insights_generated(
        self,
        user_id: str,
        insight_count: int,
        expense_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.insights_generated(
            user_id=user_id,
            insight_count=insight_count,
            expense_count=expense_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_categorized(
        self,
        user_id: str,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.expense_categorized(
            user_id=user_id,
            category=category,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_chat_answered(
        self,
        user_id: str,
        message_length: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.chat_answered(
            user_id=user_id,
            message_length=message_length,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_ai_fallback(
        self,
        operation: str,
        reason: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log that an assistant operation returned its static fallback."""
        event = AuditEventBuilder.ai_fallback_used(
            operation=operation,
            reason=reason,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    New id tying together the events of one user action.

    Use this at the start of a user action (saving an expense, asking
    the assistant) and pass it through all subsequent operations.
    """
    return uuid4()
