"""Subscription input validation package."""

from subtrack.validation.validator import SubscriptionValidator

__all__ = ["SubscriptionValidator"]
