"""
Audit Models for Subscription Tracker

Every write to the record store and every dashboard computation is logged.
This provides:
1. Traceability of changes to subscriptions and rates
2. Debugging information when a projection fails on corrupt data

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from subtrack.models.subscription import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Subscription records
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_DEACTIVATED = "subscription_deactivated"
    VALIDATION_FAILED = "validation_failed"

    # Exchange rates
    EXCHANGE_RATE_UPDATED = "exchange_rate_updated"

    # Billing views
    DASHBOARD_COMPUTED = "dashboard_computed"
    PROJECTION_FAILED = "projection_failed"

    # System events
    STORAGE_ERROR = "storage_error"


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

    Every significant action creates one of these.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'subscription', 'exchange_rate')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity (UUID or currency code)"
    )

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.subscription_created(subscription_id, name, correlation_id)
    """

    @staticmethod
    def subscription_created(
        subscription_id: UUID,
        service_name: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_CREATED,
            entity_type="subscription",
            entity_id=str(subscription_id),
            correlation_id=correlation_id,
            description=f"Subscription created: {service_name}",
            details={"service_name": service_name},
            is_user_action=True,
        )

    @staticmethod
    def subscription_updated(
        subscription_id: UUID,
        service_name: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_UPDATED,
            entity_type="subscription",
            entity_id=str(subscription_id),
            correlation_id=correlation_id,
            description=f"Subscription updated: {service_name}",
            details={"service_name": service_name},
            is_user_action=True,
        )

    @staticmethod
    def subscription_deactivated(
        subscription_id: UUID,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_DEACTIVATED,
            entity_type="subscription",
            entity_id=str(subscription_id),
            correlation_id=correlation_id,
            description="Subscription deactivated",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="subscription",
            correlation_id=correlation_id,
            description=f"Subscription input rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def exchange_rate_updated(
        currency_code: str,
        rate_to_base: float,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXCHANGE_RATE_UPDATED,
            entity_type="exchange_rate",
            entity_id=currency_code,
            correlation_id=correlation_id,
            description=f"Exchange rate updated: 1 {currency_code} = {rate_to_base}",
            details={"rate_to_base": rate_to_base},
            is_user_action=True,
        )

    @staticmethod
    def dashboard_computed(
        as_of: str,
        subscription_count: int,
        monthly_total: float,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DASHBOARD_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="dashboard",
            correlation_id=correlation_id,
            description=f"Dashboard computed for {as_of} over {subscription_count} subscriptions",
            details={
                "as_of": as_of,
                "subscription_count": subscription_count,
                "monthly_total": monthly_total,
            },
        )

    @staticmethod
    def projection_failed(
        error_type: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECTION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="dashboard",
            correlation_id=correlation_id,
            description=f"Billing projection failed: {error_type}",
            error_message=error_message,
            details={"error_type": error_type},
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Record store error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
