"""
Core Data Models for Subscription Tracker

These models define the schemas for everything flowing through the system:
the subscription and exchange-rate records supplied by the record store,
and the value objects returned by the billing views.

DESIGN DECISION: Records are validated when they enter the system.
The billing engine receives already-valid snapshots and never mutates them.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from subtrack.config import get_settings


SERVICE_NAME_MAX_LENGTH = 200
NOTE_MAX_LENGTH = 1000

# Units of JPY per unit of currency; rescaled to the configured base currency
_SEED_RATES_IN_JPY = {
    "USD": 150.0,
    "JPY": 1.0,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class PaymentCycle(str, Enum):
    """
    Billing interval of a subscription.

    This is a closed set. There are no custom intervals.
    """
    MONTHLY = "MONTHLY"
    BIANNUALLY = "BIANNUALLY"  # every 6 months
    YEARLY = "YEARLY"


class UsageFrequency(int, Enum):
    """
    Usage presets offered when entering a subscription.

    The value is the expected number of uses per month.
    """
    DAILY = 30
    WEEKDAY = 22
    WEEKLY_2_3 = 10
    WEEKLY = 4
    MONTHLY = 1
    RARELY = 0

    @classmethod
    def from_int(cls, value: int) -> "UsageFrequency":
        """Map a stored usage count back to its preset (MONTHLY if unknown)."""
        try:
            return cls(value)
        except ValueError:
            return cls.MONTHLY


# =============================================================================
# RECORDS
# =============================================================================

class Subscription(BaseModel):
    """
    One recurring obligation.

    The first payment date is the anchor for every projection.
    Inactive subscriptions are filtered out by the record store
    before they reach the billing views.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique subscription ID"
    )
    service_name: str = Field(
        ...,
        min_length=1,
        max_length=SERVICE_NAME_MAX_LENGTH,
        description="Display label of the service"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount charged per cycle, in currency_code"
    )
    currency_code: str = Field(
        ...,
        min_length=3,
        max_length=3,
        description="ISO-like 3-letter currency code"
    )
    cycle: PaymentCycle = Field(
        ...,
        description="Billing interval"
    )
    first_payment_date: date = Field(
        ...,
        description="First ever payment date (projection anchor)"
    )
    usage_frequency: int = Field(
        default=UsageFrequency.MONTHLY.value,
        ge=0,
        description="Expected uses per month (0 is valid)"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=NOTE_MAX_LENGTH,
    )
    icon_url: Optional[str] = None
    is_active: bool = True

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator('currency_code')
    @classmethod
    def normalize_currency_code(cls, v: str) -> str:
        """Currency codes are compared by exact match, so store them upper-cased."""
        if not v.isalpha():
            raise ValueError(f"Invalid currency code: {v}")
        return v.upper()


class ExchangeRate(BaseModel):
    """
    Conversion rate of one currency into the base currency.

    rate_to_base is the number of base-currency units per 1 unit
    of currency_code.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    currency_code: str = Field(
        ...,
        min_length=3,
        max_length=3,
    )
    rate_to_base: float = Field(
        ...,
        gt=0,
        description="Units of base currency per 1 unit of this currency"
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        description="When the rate was last refreshed"
    )

    @field_validator('currency_code')
    @classmethod
    def normalize_currency_code(cls, v: str) -> str:
        return v.upper()


def default_exchange_rates(base_currency_code: str = "JPY") -> list[ExchangeRate]:
    """
    Rates a fresh rate store starts with, expressed in base_currency_code.

    The seed table is quoted in JPY (1 USD = 150 JPY) and rescaled to the
    base currency. A base currency outside the table only gets its own
    rate of 1.0; every other rate has to be entered by the user.
    """
    base = base_currency_code.upper()
    base_in_jpy = _SEED_RATES_IN_JPY.get(base)
    if base_in_jpy is None:
        return [ExchangeRate(currency_code=base, rate_to_base=1.0)]
    return [
        ExchangeRate(currency_code=code, rate_to_base=in_jpy / base_in_jpy)
        for code, in_jpy in _SEED_RATES_IN_JPY.items()
    ]


# =============================================================================
# VIEW MODELS - returned by the billing engine
# =============================================================================

class SubscriptionWithPayment(BaseModel):
    """A subscription paired with its next projected payment."""

    subscription: Subscription
    next_payment_date: date
    days_until_payment: int = Field(ge=1)


class CostPerUse(BaseModel):
    """
    Monthly cost of one use of a subscription, in base currency.

    Infinite when the subscription is never used.
    """

    service_name: str
    cost_per_use: float


class MonthlyBreakdownItem(BaseModel):
    """One service's charge inside a given month, in base currency."""

    service_name: str
    amount: float


class DashboardSummary(BaseModel):
    """
    Every billing view computed from one snapshot for one day.

    This is what the presentation layer renders.
    """

    as_of: date
    year: int
    month: int = Field(ge=1, le=12)
    base_currency_code: str

    subscriptions: list[SubscriptionWithPayment] = Field(default_factory=list)
    next_payment: Optional[SubscriptionWithPayment] = None

    monthly_total: float = 0.0
    normalized_monthly_total: float = 0.0
    remaining_this_month_total: float = 0.0
    cost_per_use_top: list[CostPerUse] = Field(default_factory=list)
    monthly_breakdown: list[MonthlyBreakdownItem] = Field(default_factory=list)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class SubscriptionDraft(BaseModel):
    """
    Raw subscription input as typed into the edit form.

    Amount and date are kept as strings; the validator decides
    whether they can be turned into a Subscription.
    The currency starts as the configured default currency.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    service_name: str = ""
    amount: str = ""
    currency_code: str = Field(
        default_factory=lambda: get_settings().app.default_currency_code
    )
    cycle: PaymentCycle = PaymentCycle.MONTHLY
    first_payment_date: str = ""
    frequency: UsageFrequency = UsageFrequency.MONTHLY
    note: str = ""
    icon_url: Optional[str] = None


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating a subscription draft."""

    validated_at: datetime = Field(
        default_factory=utcnow
    )
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    def errors_by_field(self) -> dict[str, str]:
        """First error message per field, as shown next to form inputs."""
        errors: dict[str, str] = {}
        for issue in self.issues:
            if issue.severity == "error" and issue.field not in errors:
                errors[issue.field] = issue.message
        return errors
