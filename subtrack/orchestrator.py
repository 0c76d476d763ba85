"""
Main Orchestrator for Subscription Tracker

This module ties the components together and defines the flows the
presentation layer calls:
1. Subscription editing (draft → validate → save/update/deactivate)
2. Exchange-rate editing
3. Dashboard (read snapshots → compute every billing view)

DESIGN DECISION: The billing core is pure and never touches storage.
The flows here own all I/O: they read snapshots from the record store,
retry transient storage failures, hand the snapshots to the core and
audit the outcome. Recomputation happens on every call; nothing is cached
between calls.
"""

from datetime import date
from typing import Optional
from uuid import UUID

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from subtrack.audit import AuditLogger, configure_logging, create_correlation_id
from subtrack.billing import (
    ProjectionError,
    build_rate_map,
    cost_per_use_ranking,
    monthly_breakdown,
    monthly_total,
    next_payments,
    normalized_monthly_total,
    remaining_this_month_total,
)
from subtrack.config import AppSettings, StorageSettings, get_settings
from subtrack.models.subscription import (
    DashboardSummary,
    ExchangeRate,
    MonthlyBreakdownItem,
    Subscription,
    SubscriptionDraft,
    UsageFrequency,
    ValidationResult,
)
from subtrack.services.storage import (
    ExchangeRateStorageInterface,
    InMemoryAuditStorage,
    InMemoryExchangeRateStorage,
    InMemorySubscriptionStorage,
    NotFoundError,
    StorageConnectionError,
    SubscriptionStorageInterface,
)
from subtrack.validation import SubscriptionValidator


logger = structlog.get_logger(__name__)


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        "snapshot_read_retry",
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
    )


class SubscriptionFlow:
    """
    Orchestrates writes to the record store.

    Every write is validated first and audited afterwards.
    Deleting a subscription is a soft delete: it stops appearing in
    every billing view but stays retrievable by ID.
    """

    def __init__(
        self,
        subscription_storage: SubscriptionStorageInterface,
        rate_storage: ExchangeRateStorageInterface,
        validator: Optional[SubscriptionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._subscription_storage = subscription_storage
        self._rate_storage = rate_storage
        self._validator = validator or SubscriptionValidator()
        self._audit_logger = audit_logger

    async def _reject(self, result: ValidationResult, correlation_id: UUID) -> None:
        if self._audit_logger:
            issues = [
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in result.issues
                if i.severity == "error"
            ]
            await self._audit_logger.log_validation_failed(
                issues=issues,
                correlation_id=correlation_id,
            )

    async def create_subscription(
        self,
        draft: SubscriptionDraft,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Optional[Subscription], ValidationResult]:
        """
        Validate a draft and save it as a new subscription.

        Returns:
            (subscription, validation_result)

        subscription is None when validation failed.
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self._validator.validate(draft, today=today)
        if not result.is_valid:
            await self._reject(result, correlation_id)
            return None, result

        subscription = self._validator.build_subscription(draft)
        stored = await self._subscription_storage.save_subscription(subscription)

        if self._audit_logger:
            await self._audit_logger.log_subscription_created(
                subscription_id=stored.id,
                service_name=stored.service_name,
                correlation_id=correlation_id,
            )

        return stored, result

    async def update_subscription(
        self,
        subscription_id: UUID,
        draft: SubscriptionDraft,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Optional[Subscription], ValidationResult]:
        """
        Validate a draft and replace an existing subscription with it.

        Raises:
            NotFoundError: if no subscription has this ID
        """
        correlation_id = correlation_id or create_correlation_id()

        existing = await self._subscription_storage.get_subscription_by_id(subscription_id)
        if existing is None:
            raise NotFoundError(f"Subscription {subscription_id} not found")

        result = self._validator.validate(draft, today=today)
        if not result.is_valid:
            await self._reject(result, correlation_id)
            return None, result

        subscription = self._validator.build_subscription(draft, subscription_id=subscription_id)
        subscription = subscription.model_copy(update={"is_active": existing.is_active})
        stored = await self._subscription_storage.update_subscription(subscription)

        if self._audit_logger:
            await self._audit_logger.log_subscription_updated(
                subscription_id=stored.id,
                service_name=stored.service_name,
                correlation_id=correlation_id,
            )

        return stored, result

    async def deactivate_subscription(
        self,
        subscription_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Soft-delete a subscription."""
        correlation_id = correlation_id or create_correlation_id()

        await self._subscription_storage.deactivate_subscription(subscription_id)

        if self._audit_logger:
            await self._audit_logger.log_subscription_deactivated(
                subscription_id=subscription_id,
                correlation_id=correlation_id,
            )

    async def get_subscription(self, subscription_id: UUID) -> Optional[Subscription]:
        return await self._subscription_storage.get_subscription_by_id(subscription_id)

    @staticmethod
    def to_draft(subscription: Subscription) -> SubscriptionDraft:
        """Load a stored subscription back into the edit form."""
        return SubscriptionDraft(
            service_name=subscription.service_name,
            amount=str(subscription.amount),
            currency_code=subscription.currency_code,
            cycle=subscription.cycle,
            first_payment_date=subscription.first_payment_date.isoformat(),
            frequency=UsageFrequency.from_int(subscription.usage_frequency),
            note=subscription.note or "",
            icon_url=subscription.icon_url,
        )

    async def update_rate(
        self,
        currency_code: str,
        rate_to_base: float,
        correlation_id: Optional[UUID] = None,
    ) -> ExchangeRate:
        """
        Insert or replace the exchange rate of one currency.

        The freshness timestamp is set to now.
        """
        correlation_id = correlation_id or create_correlation_id()

        rate = ExchangeRate(currency_code=currency_code, rate_to_base=rate_to_base)
        stored = await self._rate_storage.upsert_rate(rate)

        if self._audit_logger:
            await self._audit_logger.log_exchange_rate_updated(
                currency_code=stored.currency_code,
                rate_to_base=stored.rate_to_base,
                correlation_id=correlation_id,
            )

        return stored

    async def list_rates(self) -> list[ExchangeRate]:
        return await self._rate_storage.list_rates()


class DashboardFlow:
    """
    Computes billing views from fresh record-store snapshots.

    FLOW:
    1. Read active subscriptions and exchange rates (retried on
       StorageConnectionError)
    2. Run the billing views for the requested day or month
    3. Audit the result, or the projection failure

    A projection failure on any subscription fails the whole call.
    """

    def __init__(
        self,
        subscription_storage: SubscriptionStorageInterface,
        rate_storage: ExchangeRateStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        app_settings: Optional[AppSettings] = None,
        storage_settings: Optional[StorageSettings] = None,
    ):
        self._subscription_storage = subscription_storage
        self._rate_storage = rate_storage
        self._audit_logger = audit_logger
        self._app_settings = app_settings or get_settings().app
        self._storage_settings = storage_settings or get_settings().storage

    async def _read_snapshot(
        self,
        correlation_id: UUID,
    ) -> tuple[list[Subscription], dict[str, float]]:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._storage_settings.retry_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self._storage_settings.retry_wait_min,
                max=self._storage_settings.retry_wait_max,
            ),
            retry=retry_if_exception_type(StorageConnectionError),
            before_sleep=_log_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    subscriptions = await self._subscription_storage.list_active_subscriptions(
                        sort_by_first_payment=True,
                    )
                    rates = await self._rate_storage.list_rates()
        except StorageConnectionError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="read_snapshot",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        return subscriptions, build_rate_map(rates)

    async def _projection_failed(self, error: ProjectionError, correlation_id: UUID) -> None:
        if self._audit_logger:
            await self._audit_logger.log_projection_failed(
                error_type=type(error).__name__,
                error_message=str(error),
                correlation_id=correlation_id,
            )

    async def compute(
        self,
        today: date,
        correlation_id: Optional[UUID] = None,
    ) -> DashboardSummary:
        """
        Compute every dashboard view for today's month.

        Raises:
            ProjectionError: if any subscription cannot be projected
            StorageConnectionError: if the record store stays unreachable
        """
        correlation_id = correlation_id or create_correlation_id()
        subscriptions, rates = await self._read_snapshot(correlation_id)

        try:
            payments = next_payments(subscriptions, today)
            summary = DashboardSummary(
                as_of=today,
                year=today.year,
                month=today.month,
                base_currency_code=self._app_settings.base_currency_code,
                subscriptions=payments,
                next_payment=payments[0] if payments else None,
                monthly_total=monthly_total(subscriptions, rates, today.year, today.month),
                normalized_monthly_total=normalized_monthly_total(subscriptions, rates),
                remaining_this_month_total=remaining_this_month_total(subscriptions, rates, today),
                cost_per_use_top=cost_per_use_ranking(
                    subscriptions, rates, limit=self._app_settings.cost_per_use_limit
                ),
                monthly_breakdown=monthly_breakdown(subscriptions, rates, today.year, today.month),
            )
        except ProjectionError as e:
            await self._projection_failed(e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_dashboard_computed(
                as_of=today.isoformat(),
                subscription_count=len(subscriptions),
                monthly_total=summary.monthly_total,
                correlation_id=correlation_id,
            )

        return summary

    async def monthly_total(
        self,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> float:
        """Total actually billed in an arbitrary month, in base currency."""
        correlation_id = correlation_id or create_correlation_id()
        subscriptions, rates = await self._read_snapshot(correlation_id)
        try:
            return monthly_total(subscriptions, rates, year, month)
        except ProjectionError as e:
            await self._projection_failed(e, correlation_id)
            raise

    async def monthly_breakdown(
        self,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> list[MonthlyBreakdownItem]:
        """Per-service charges of an arbitrary month, largest first."""
        correlation_id = correlation_id or create_correlation_id()
        subscriptions, rates = await self._read_snapshot(correlation_id)
        try:
            return monthly_breakdown(subscriptions, rates, year, month)
        except ProjectionError as e:
            await self._projection_failed(e, correlation_id)
            raise


def create_app_components(
    subscriptions: Optional[list[Subscription]] = None,
    rates: Optional[list[ExchangeRate]] = None,
) -> tuple[SubscriptionFlow, DashboardFlow, AuditLogger]:
    """
    Factory function to create all application components.

    Wires in-memory record stores. Pass initial records to start from a
    known state; the rate store is seeded with the default rates when
    no rates are given and STORAGE_SEED_DEFAULT_RATES is on.

    Returns:
        (subscription_flow, dashboard_flow, audit_logger)
    """
    settings = get_settings()
    app_settings = settings.app
    configure_logging(app_settings)

    subscription_storage = InMemorySubscriptionStorage(subscriptions)
    rate_storage = InMemoryExchangeRateStorage(
        rates,
        seed_defaults=settings.storage.seed_default_rates,
        base_currency_code=app_settings.base_currency_code,
    )
    audit_logger = AuditLogger(InMemoryAuditStorage())

    subscription_flow = SubscriptionFlow(
        subscription_storage=subscription_storage,
        rate_storage=rate_storage,
        audit_logger=audit_logger,
    )
    dashboard_flow = DashboardFlow(
        subscription_storage=subscription_storage,
        rate_storage=rate_storage,
        audit_logger=audit_logger,
    )

    return subscription_flow, dashboard_flow, audit_logger
