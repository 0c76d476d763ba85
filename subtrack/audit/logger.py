"""
Audit Logger

DESIGN DECISION: Every write to the record store and every dashboard
computation is logged. The billing core itself never logs; failures it
raises are recorded here by the flows that call it.

The audit logger:
- Is async to match the record store
- Gracefully handles storage failures (logging never crashes the app)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from subtrack.config import AppSettings
from subtrack.models.audit import AuditEvent, AuditEventBuilder
from subtrack.services.storage import AuditStorageInterface


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
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log
    2. Audit storage, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
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

    async def log_subscription_created(
        self,
        subscription_id: UUID,
        service_name: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.subscription_created(
            subscription_id=subscription_id,
            service_name=service_name,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_subscription_updated(
        self,
        subscription_id: UUID,
        service_name: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.subscription_updated(
            subscription_id=subscription_id,
            service_name=service_name,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_subscription_deactivated(
        self,
        subscription_id: UUID,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.subscription_deactivated(
            subscription_id=subscription_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.validation_failed(
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_exchange_rate_updated(
        self,
        currency_code: str,
        rate_to_base: float,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.exchange_rate_updated(
            currency_code=currency_code,
            rate_to_base=rate_to_base,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_dashboard_computed(
        self,
        as_of: str,
        subscription_count: int,
        monthly_total: float,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.dashboard_computed(
            as_of=as_of,
            subscription_count=subscription_count,
            monthly_total=monthly_total,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_projection_failed(
        self,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.projection_failed(
            error_type=error_type,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., saving a subscription)
    and pass it through all subsequent operations.
    """
    return uuid4()


def configure_logging(app_settings: AppSettings) -> int:
    """
    Set the log level from debug_mode and tag every log line with the
    application environment.

    Returns the stdlib level applied to the "subtrack" logger.
    """
    level = logging.DEBUG if app_settings.debug_mode else logging.INFO
    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger("subtrack").setLevel(level)
    structlog.contextvars.bind_contextvars(environment=app_settings.app_environment)
    return level
