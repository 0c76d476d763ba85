"""
Storage Services Package

Provides abstract interfaces for the record store and an in-memory
implementation. Any database can be plugged in behind the interfaces.
"""

from subtrack.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExchangeRateStorageInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    SubscriptionStorageInterface,
)
from subtrack.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryExchangeRateStorage,
    InMemorySubscriptionStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ExchangeRateStorageInterface",
    "SubscriptionStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryExchangeRateStorage",
    "InMemorySubscriptionStorage",
]
