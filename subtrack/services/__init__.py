"""Services package."""

from subtrack.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    ExchangeRateStorageInterface,
    InMemoryAuditStorage,
    InMemoryExchangeRateStorage,
    InMemorySubscriptionStorage,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    SubscriptionStorageInterface,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "DuplicateError",
    "ExchangeRateStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryExchangeRateStorage",
    "InMemorySubscriptionStorage",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    "SubscriptionStorageInterface",
]
