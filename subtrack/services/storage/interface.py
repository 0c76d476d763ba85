"""
Abstract Storage Interface

DESIGN DECISION: The record store is a collaborator, not part of the
billing core. We define an abstract interface for it so that:
1. Any database can back the application
2. In-memory storage can be used for testing
3. Business logic stays decoupled from storage implementation

Only the operations the application needs are defined here.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from subtrack.models.audit import AuditEvent
from subtrack.models.subscription import ExchangeRate, Subscription


class SubscriptionStorageInterface(ABC):
    """
    Abstract interface for subscription storage operations.
    """

    @abstractmethod
    async def save_subscription(self, subscription: Subscription) -> Subscription:
        """
        Insert a new subscription.

        Args:
            subscription: The subscription to save

        Returns:
            The stored subscription (with created_at/updated_at set)

        Raises:
            DuplicateError: If a subscription with the same ID exists
        """
        pass

    @abstractmethod
    async def get_subscription_by_id(self, subscription_id: UUID) -> Optional[Subscription]:
        """
        Retrieve a subscription by its ID, active or not.

        Returns:
            The subscription if found, None otherwise
        """
        pass

    @abstractmethod
    async def update_subscription(self, subscription: Subscription) -> Subscription:
        """
        Replace an existing subscription.

        Returns:
            The stored subscription (with updated_at bumped)

        Raises:
            NotFoundError: If the subscription doesn't exist
        """
        pass

    @abstractmethod
    async def deactivate_subscription(self, subscription_id: UUID) -> bool:
        """
        Soft-delete a subscription (is_active = False).

        Returns:
            True if a subscription was deactivated

        Raises:
            NotFoundError: If the subscription doesn't exist
        """
        pass

    @abstractmethod
    async def list_active_subscriptions(
        self,
        sort_by_first_payment: bool = False,
    ) -> list[Subscription]:
        """
        List active subscriptions.

        Args:
            sort_by_first_payment: Order by first_payment_date ascending

        Returns:
            Snapshot of active subscriptions
        """
        pass


class ExchangeRateStorageInterface(ABC):
    """
    Abstract interface for exchange-rate storage.

    One row per currency code.
    """

    @abstractmethod
    async def list_rates(self) -> list[ExchangeRate]:
        """Snapshot of every stored rate."""
        pass

    @abstractmethod
    async def get_rate(self, currency_code: str) -> Optional[ExchangeRate]:
        """The rate for one currency code, or None."""
        pass

    @abstractmethod
    async def upsert_rate(self, rate: ExchangeRate) -> ExchangeRate:
        """Insert or replace the rate for rate.currency_code."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not reach the storage backend. Safe to retry."""
    pass
