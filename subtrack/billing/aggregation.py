"""
Aggregation Engine

Derives the billing views from a snapshot of active subscriptions and a
snapshot of exchange rates.

DESIGN DECISION: Each view is its own pure function over the same inputs.
They differ in which occurrence they count:
- normalized views use the cycle-agnostic monthly equivalent
- month views use the actual installment billed inside that month
- the remaining-this-month view uses each subscription's next payment

Currencies missing from the rate snapshot are treated as already being in
the base currency (rate 1.0). That is never an error.

Projection errors for any single subscription propagate out of the view.
No partial aggregate is returned.
"""

from datetime import date
from typing import Final, Iterable, Mapping

from subtrack.billing.projector import (
    CycleLike,
    coerce_cycle,
    days_until,
    month_bounds,
    next_after,
    occurrence_in_month,
)
from subtrack.models.subscription import (
    CostPerUse,
    ExchangeRate,
    MonthlyBreakdownItem,
    PaymentCycle,
    Subscription,
    SubscriptionWithPayment,
)


DEFAULT_RATE: Final[float] = 1.0
DEFAULT_COST_PER_USE_LIMIT: Final[int] = 3

_MONTHLY_FACTORS: Final[dict[PaymentCycle, float]] = {
    PaymentCycle.MONTHLY: 1.0,
    PaymentCycle.BIANNUALLY: 1.0 / 6.0,
    PaymentCycle.YEARLY: 1.0 / 12.0,
}

RateMap = Mapping[str, float]


# =============================================================================
# SHARED CONVERSIONS
# =============================================================================

def monthly_factor(cycle: CycleLike) -> float:
    """Fraction of one cycle's amount that falls on an average month."""
    return _MONTHLY_FACTORS[coerce_cycle(cycle)]


def rate_for(currency_code: str, rates: RateMap) -> float:
    """Base-currency units per unit of currency_code (1.0 when unknown)."""
    return float(rates.get(currency_code, DEFAULT_RATE))


def build_rate_map(rates: Iterable[ExchangeRate]) -> dict[str, float]:
    """Index exchange-rate records by currency code."""
    return {rate.currency_code: rate.rate_to_base for rate in rates}


def amount_in_base(subscription: Subscription, rates: RateMap) -> float:
    """One installment converted to the base currency."""
    return float(subscription.amount) * rate_for(subscription.currency_code, rates)


def monthly_base(subscription: Subscription, rates: RateMap) -> float:
    """Monthly equivalent of a subscription in the base currency."""
    return amount_in_base(subscription, rates) * monthly_factor(subscription.cycle)


# =============================================================================
# VIEWS
# =============================================================================

def next_payments(
    subscriptions: Iterable[Subscription],
    today: date,
) -> list[SubscriptionWithPayment]:
    """
    Every subscription with its next payment after today, soonest first.
    """
    items = []
    for subscription in subscriptions:
        projected = next_after(subscription.first_payment_date, subscription.cycle, today)
        items.append(
            SubscriptionWithPayment(
                subscription=subscription,
                next_payment_date=projected,
                days_until_payment=days_until(today, projected),
            )
        )
    return sorted(items, key=lambda item: item.next_payment_date)


def cost_per_use_ranking(
    subscriptions: Iterable[Subscription],
    rates: RateMap,
    limit: int = DEFAULT_COST_PER_USE_LIMIT,
) -> list[CostPerUse]:
    """
    The least cost-effective subscriptions, most expensive per use first.

    A subscription that is never used (usage_frequency == 0) costs
    infinitely much per use and ranks ahead of every finite value.
    """
    if limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit}")

    ranking = []
    for subscription in subscriptions:
        monthly = monthly_base(subscription, rates)
        if subscription.usage_frequency > 0:
            cost = monthly / subscription.usage_frequency
        else:
            cost = float("inf")
        ranking.append(CostPerUse(service_name=subscription.service_name, cost_per_use=cost))

    ranking.sort(key=lambda item: item.cost_per_use, reverse=True)
    return ranking[:limit]


def normalized_monthly_total(
    subscriptions: Iterable[Subscription],
    rates: RateMap,
) -> float:
    """Average monthly burn: yearly amounts / 12, biannual amounts / 6."""
    return sum(monthly_base(subscription, rates) for subscription in subscriptions)


def _charges_in_month(
    subscriptions: Iterable[Subscription],
    rates: RateMap,
    year: int,
    month: int,
) -> list[MonthlyBreakdownItem]:
    month_start, month_end = month_bounds(year, month)
    charges = []
    for subscription in subscriptions:
        occurrence = occurrence_in_month(
            subscription.first_payment_date,
            subscription.cycle,
            month_start,
            month_end,
        )
        if occurrence is not None:
            charges.append(
                MonthlyBreakdownItem(
                    service_name=subscription.service_name,
                    amount=amount_in_base(subscription, rates),
                )
            )
    return charges


def monthly_total(
    subscriptions: Iterable[Subscription],
    rates: RateMap,
    year: int,
    month: int,
) -> float:
    """
    Sum of the installments actually billed in the given month.

    A yearly subscription contributes its full amount in its billing
    month and nothing in the other eleven.
    """
    return sum(charge.amount for charge in _charges_in_month(subscriptions, rates, year, month))


def remaining_this_month_total(
    subscriptions: Iterable[Subscription],
    rates: RateMap,
    today: date,
) -> float:
    """Sum of payments still due between today and the end of today's month."""
    _, month_end = month_bounds(today.year, today.month)
    total = 0.0
    for item in next_payments(subscriptions, today):
        if today <= item.next_payment_date <= month_end:
            total += amount_in_base(item.subscription, rates)
    return total


def monthly_breakdown(
    subscriptions: Iterable[Subscription],
    rates: RateMap,
    year: int,
    month: int,
) -> list[MonthlyBreakdownItem]:
    """Per-service charges of the given month, largest first."""
    charges = _charges_in_month(subscriptions, rates, year, month)
    return sorted(charges, key=lambda item: item.amount, reverse=True)


def breakdown_percentages(items: Iterable[MonthlyBreakdownItem]) -> list[tuple[str, float]]:
    """
    Share of each service in a month's total, in percent.

    Every share is 0.0 when the month has no charges.
    """
    items = list(items)
    total = sum(item.amount for item in items)
    if total <= 0:
        return [(item.service_name, 0.0) for item in items]
    return [(item.service_name, item.amount / total * 100.0) for item in items]
