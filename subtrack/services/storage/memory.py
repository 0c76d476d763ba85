"""
In-Memory Storage Implementation

Keeps records in dictionaries for the lifetime of the process.
Used by the test suite and as the default record store when no
database is wired in.

Records are copied on the way in and on the way out, so callers
always work with snapshots and can never mutate stored state.
"""

from typing import Optional
from uuid import UUID

from subtrack.models.audit import AuditEvent
from subtrack.models.subscription import (
    ExchangeRate,
    Subscription,
    default_exchange_rates,
    utcnow,
)
from subtrack.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExchangeRateStorageInterface,
    NotFoundError,
    SubscriptionStorageInterface,
)


class InMemorySubscriptionStorage(SubscriptionStorageInterface):
    """Subscription store backed by a dict keyed on subscription ID."""

    def __init__(self, subscriptions: Optional[list[Subscription]] = None):
        self._subscriptions: dict[UUID, Subscription] = {}
        for subscription in subscriptions or []:
            self._subscriptions[subscription.id] = subscription.model_copy()

    async def save_subscription(self, subscription: Subscription) -> Subscription:
        if subscription.id in self._subscriptions:
            raise DuplicateError(f"Subscription {subscription.id} already exists")

        now = utcnow()
        stored = subscription.model_copy(update={"created_at": now, "updated_at": now})
        self._subscriptions[stored.id] = stored
        return stored.model_copy()

    async def get_subscription_by_id(self, subscription_id: UUID) -> Optional[Subscription]:
        subscription = self._subscriptions.get(subscription_id)
        return subscription.model_copy() if subscription else None

    async def update_subscription(self, subscription: Subscription) -> Subscription:
        existing = self._subscriptions.get(subscription.id)
        if existing is None:
            raise NotFoundError(f"Subscription {subscription.id} not found")

        stored = subscription.model_copy(
            update={"created_at": existing.created_at, "updated_at": utcnow()}
        )
        self._subscriptions[stored.id] = stored
        return stored.model_copy()

    async def deactivate_subscription(self, subscription_id: UUID) -> bool:
        existing = self._subscriptions.get(subscription_id)
        if existing is None:
            raise NotFoundError(f"Subscription {subscription_id} not found")

        self._subscriptions[subscription_id] = existing.model_copy(
            update={"is_active": False, "updated_at": utcnow()}
        )
        return True

    async def list_active_subscriptions(
        self,
        sort_by_first_payment: bool = False,
    ) -> list[Subscription]:
        active = [s.model_copy() for s in self._subscriptions.values() if s.is_active]
        if sort_by_first_payment:
            active.sort(key=lambda s: s.first_payment_date)
        return active


class InMemoryExchangeRateStorage(ExchangeRateStorageInterface):
    """Exchange-rate store backed by a dict keyed on currency code."""

    def __init__(
        self,
        rates: Optional[list[ExchangeRate]] = None,
        seed_defaults: bool = True,
        base_currency_code: str = "JPY",
    ):
        self._rates: dict[str, ExchangeRate] = {}
        if rates is None and seed_defaults:
            rates = default_exchange_rates(base_currency_code)
        for rate in rates or []:
            self._rates[rate.currency_code] = rate.model_copy()

    async def list_rates(self) -> list[ExchangeRate]:
        return [rate.model_copy() for rate in self._rates.values()]

    async def get_rate(self, currency_code: str) -> Optional[ExchangeRate]:
        rate = self._rates.get(currency_code.upper())
        return rate.model_copy() if rate else None

    async def upsert_rate(self, rate: ExchangeRate) -> ExchangeRate:
        self._rates[rate.currency_code] = rate.model_copy()
        return rate.model_copy()


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
