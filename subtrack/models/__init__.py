"""
Data Models Package

This package contains all Pydantic models used in Subscription Tracker.
All data flowing through the system must conform to these schemas.
"""

from subtrack.models.subscription import (
    CostPerUse,
    DashboardSummary,
    ExchangeRate,
    MonthlyBreakdownItem,
    PaymentCycle,
    Subscription,
    SubscriptionDraft,
    SubscriptionWithPayment,
    UsageFrequency,
    ValidationIssue,
    ValidationResult,
    default_exchange_rates,
)
from subtrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Subscription models
    "CostPerUse",
    "DashboardSummary",
    "ExchangeRate",
    "MonthlyBreakdownItem",
    "PaymentCycle",
    "Subscription",
    "SubscriptionDraft",
    "SubscriptionWithPayment",
    "UsageFrequency",
    "ValidationIssue",
    "ValidationResult",
    "default_exchange_rates",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
