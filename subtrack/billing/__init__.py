"""
Billing core: payment date projection and currency-normalized aggregation.

Everything in this package is a pure function of its arguments.
"""

from subtrack.billing.projector import (
    MAX_PROJECTION_STEPS,
    InvalidCycleError,
    InvalidDateError,
    ProjectionError,
    ProjectionLimitExceeded,
    advance_once,
    clamp_to_month_end,
    coerce_cycle,
    days_until,
    month_bounds,
    next_after,
    occurrence_in_month,
    parse_date,
)
from subtrack.billing.aggregation import (
    DEFAULT_COST_PER_USE_LIMIT,
    DEFAULT_RATE,
    amount_in_base,
    breakdown_percentages,
    build_rate_map,
    cost_per_use_ranking,
    monthly_base,
    monthly_breakdown,
    monthly_factor,
    monthly_total,
    next_payments,
    normalized_monthly_total,
    rate_for,
    remaining_this_month_total,
)

__all__ = [
    # Projector - Constants
    "MAX_PROJECTION_STEPS",
    # Projector - Exceptions
    "InvalidCycleError",
    "InvalidDateError",
    "ProjectionError",
    "ProjectionLimitExceeded",
    # Projector - Functions
    "advance_once",
    "clamp_to_month_end",
    "coerce_cycle",
    "days_until",
    "month_bounds",
    "next_after",
    "occurrence_in_month",
    "parse_date",
    # Aggregation - Constants
    "DEFAULT_COST_PER_USE_LIMIT",
    "DEFAULT_RATE",
    # Aggregation - Functions
    "amount_in_base",
    "breakdown_percentages",
    "build_rate_map",
    "cost_per_use_ranking",
    "monthly_base",
    "monthly_breakdown",
    "monthly_factor",
    "monthly_total",
    "next_payments",
    "normalized_monthly_total",
    "rate_for",
    "remaining_this_month_total",
]
