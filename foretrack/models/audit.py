"""
Audit Models for Foretrack

Every write, every degraded read and every AI call leaves an audit event.
This provides:
1. Traceability of changes to a user's records
2. Debugging information when an external service misbehaves
3. A record of when the user was shown a fallback instead of real data

Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Record writes
    TRANSACTION_SAVED = "transaction_saved"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    BUDGET_SAVED = "budget_saved"
    BUDGET_UPDATED = "budget_updated"
    BUDGET_DELETED = "budget_deleted"
    CATEGORY_SAVED = "category_saved"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"
    PREFERENCES_SAVED = "preferences_saved"

    # Reads
    DATA_FETCH_FAILED = "data_fetch_failed"
    STALE_RESULT_DISCARDED = "stale_result_discarded"

    # AI assistant
    INSIGHTS_GENERATED = "insights_generated"
    EXPENSE_CATEGORIZED = "expense_categorized"
    CHAT_ANSWERED = "chat_answered"
    AI_FALLBACK_USED = "ai_fallback_used"

    # System events
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

    One entry in the audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Who and what
    user_id: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'budget', 'category')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one analytics refresh)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Flat dict for structlog; ids and timestamps as strings.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        One audit worksheet row.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


_WRITE_EVENTS = {
    ("transaction", "saved"): AuditEventType.TRANSACTION_SAVED,
    ("transaction", "updated"): AuditEventType.TRANSACTION_UPDATED,
    ("transaction", "deleted"): AuditEventType.TRANSACTION_DELETED,
    ("budget", "saved"): AuditEventType.BUDGET_SAVED,
    ("budget", "updated"): AuditEventType.BUDGET_UPDATED,
    ("budget", "deleted"): AuditEventType.BUDGET_DELETED,
    ("category", "saved"): AuditEventType.CATEGORY_SAVED,
    ("category", "updated"): AuditEventType.CATEGORY_UPDATED,
    ("category", "deleted"): AuditEventType.CATEGORY_DELETED,
    ("preferences", "saved"): AuditEventType.PREFERENCES_SAVED,
}


class AuditEventBuilder:
    """
    Factory methods for the events the flows emit.

    Usage:
        event = AuditEventBuilder.record_written("budget", "saved", budget.id, user_id)
        event = AuditEventBuilder.fetch_failed(user_id, "transactions", str(e))
    """

    @staticmethod
    def record_written(
        entity_type: str,
        action: str,
        entity_id: UUID,
        user_id: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event_type = _WRITE_EVENTS[(entity_type, action)]
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} {action}",
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def fetch_failed(
        user_id: str,
        resource: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_FETCH_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Could not load {resource}; showing last known data",
            error_message=error_message,
            details={"resource": resource},
        )

    @staticmethod
    def stale_result_discarded(
        user_id: str,
        key: str,
        generation: int,
        latest_generation: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_RESULT_DISCARDED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            description=f"Discarded result {generation} for {key}; newer request {latest_generation} pending",
            details={
                "key": key,
                "generation": generation,
                "latest_generation": latest_generation,
            },
        )

    @staticmethod
    def insights_generated(
        user_id: str,
        insight_count: int,
        expense_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHTS_GENERATED,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Generated {insight_count} insights from {expense_count} expenses",
            details={
                "insight_count": insight_count,
                "expense_count": expense_count,
            },
        )

    @staticmethod
    def expense_categorized(
        user_id: str,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CATEGORIZED,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Suggested category: {category}",
            details={"category": category},
        )

    @staticmethod
    def chat_answered(
        user_id: str,
        message_length: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHAT_ANSWERED,
            user_id=user_id,
            correlation_id=correlation_id,
            description="Assistant answered a chat message",
            details={"message_length": message_length},
            is_user_action=True,
        )

    @staticmethod
    def ai_fallback_used(
        operation: str,
        reason: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AI_FALLBACK_USED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Static fallback used for {operation}",
            error_message=reason,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
