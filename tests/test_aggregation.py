"""
Tests for the aggregation engine.

Every view is computed from explicit snapshots and an explicit "today",
so expected values are exact.
"""

import math

import pytest
from datetime import date
from decimal import Decimal

from subtrack.billing.aggregation import (
    DEFAULT_COST_PER_USE_LIMIT,
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
from subtrack.billing.projector import InvalidCycleError, ProjectionLimitExceeded
from subtrack.models.subscription import (
    ExchangeRate,
    MonthlyBreakdownItem,
    PaymentCycle,
    Subscription,
)


RATES = {"USD": 150.0, "JPY": 1.0}


def make_subscription(**overrides) -> Subscription:
    fields = dict(
        service_name="Streaming",
        amount=Decimal("1000"),
        currency_code="JPY",
        cycle=PaymentCycle.MONTHLY,
        first_payment_date=date(2024, 1, 15),
        usage_frequency=4,
    )
    fields.update(overrides)
    return Subscription(**fields)


def corrupt_subscription() -> Subscription:
    """A record whose cycle slipped past validation."""
    return Subscription.model_construct(
        service_name="Broken",
        amount=Decimal("100"),
        currency_code="JPY",
        cycle="WEEKLY",
        first_payment_date=date(2024, 1, 1),
        usage_frequency=1,
    )


class TestSharedConversions:
    """Tests for monthly factors and rate lookup."""

    def test_monthly_factors(self):
        """1, 1/6 and 1/12 for the three cycles."""
        assert monthly_factor(PaymentCycle.MONTHLY) == 1.0
        assert monthly_factor(PaymentCycle.BIANNUALLY) == pytest.approx(1 / 6)
        assert monthly_factor(PaymentCycle.YEARLY) == pytest.approx(1 / 12)

    def test_unknown_currency_defaults_to_one(self):
        """A currency without a rate is treated as base currency."""
        assert rate_for("EUR", RATES) == 1.0

    def test_build_rate_map(self):
        """Rate records are indexed by currency code."""
        rates = [
            ExchangeRate(currency_code="usd", rate_to_base=150.0),
            ExchangeRate(currency_code="JPY", rate_to_base=1.0),
        ]
        assert build_rate_map(rates) == {"USD": 150.0, "JPY": 1.0}

    def test_yearly_usd_monthly_contribution(self):
        """1000 USD yearly at 150 contributes 12500 per month."""
        sub = make_subscription(amount=Decimal("1000"), currency_code="USD", cycle=PaymentCycle.YEARLY)
        assert monthly_base(sub, RATES) == pytest.approx(12500.0)


class TestNextPayments:
    """Tests for the next-payment list."""

    def test_sorted_by_next_payment(self):
        """Soonest payment first, with days until payment."""
        today = date(2024, 6, 10)
        subs = [
            make_subscription(service_name="Yearly", cycle=PaymentCycle.YEARLY, first_payment_date=date(2024, 1, 1)),
            make_subscription(service_name="Soon", first_payment_date=date(2024, 1, 12)),
            make_subscription(service_name="Later", first_payment_date=date(2024, 1, 25)),
        ]

        items = next_payments(subs, today)

        assert [i.subscription.service_name for i in items] == ["Soon", "Later", "Yearly"]
        assert items[0].next_payment_date == date(2024, 6, 12)
        assert items[0].days_until_payment == 2
        assert items[2].next_payment_date == date(2025, 1, 1)

    def test_empty_snapshot(self):
        """No subscriptions, no payments."""
        assert next_payments([], date(2024, 6, 10)) == []

    def test_corrupt_record_fails_whole_view(self):
        """One bad cycle fails the view instead of being skipped."""
        subs = [make_subscription(), corrupt_subscription()]
        with pytest.raises(InvalidCycleError):
            next_payments(subs, date(2024, 6, 10))

    def test_limit_exceeded_propagates(self):
        """A projection needing more than 1000 steps fails the view."""
        subs = [make_subscription(first_payment_date=date(1900, 1, 1))]
        with pytest.raises(ProjectionLimitExceeded):
            next_payments(subs, date(2024, 6, 10))


class TestCostPerUseRanking:
    """Tests for the cost-per-use ranking."""

    def test_zero_usage_ranks_first(self):
        """A never-used subscription is the worst value regardless of amount."""
        subs = [
            make_subscription(service_name="Expensive", amount=Decimal("50000"), usage_frequency=1),
            make_subscription(service_name="Unused", amount=Decimal("1"), usage_frequency=0),
        ]

        ranking = cost_per_use_ranking(subs, RATES)

        assert ranking[0].service_name == "Unused"
        assert math.isinf(ranking[0].cost_per_use)
        assert ranking[1].cost_per_use == pytest.approx(50000.0)

    def test_sorted_descending_and_limited(self):
        """Most expensive per use first, default limit of 3."""
        subs = [
            make_subscription(service_name="A", amount=Decimal("3000"), usage_frequency=30),  # 100
            make_subscription(service_name="B", amount=Decimal("2000"), usage_frequency=4),   # 500
            make_subscription(service_name="C", amount=Decimal("10"), currency_code="USD", usage_frequency=1),  # 1500
            make_subscription(service_name="D", amount=Decimal("1200"), cycle=PaymentCycle.YEARLY, usage_frequency=1),  # 100
            make_subscription(service_name="E", amount=Decimal("600"), usage_frequency=2),    # 300
        ]

        ranking = cost_per_use_ranking(subs, RATES)

        assert DEFAULT_COST_PER_USE_LIMIT == 3
        assert [c.service_name for c in ranking] == ["C", "B", "E"]
        assert ranking[0].cost_per_use == pytest.approx(1500.0)

    def test_custom_limit(self):
        """Limit controls how many entries are returned."""
        subs = [make_subscription(service_name=str(i)) for i in range(5)]
        assert len(cost_per_use_ranking(subs, RATES, limit=1)) == 1
        assert len(cost_per_use_ranking(subs, RATES, limit=10)) == 5
        assert cost_per_use_ranking(subs, RATES, limit=0) == []

    def test_negative_limit_rejected(self):
        """A negative limit is a caller error."""
        with pytest.raises(ValueError):
            cost_per_use_ranking([make_subscription()], RATES, limit=-1)


class TestNormalizedMonthlyTotal:
    """Tests for the cycle-agnostic monthly burn."""

    def test_mixed_cycles(self):
        """Monthly, biannual and yearly amounts are averaged per month."""
        subs = [
            make_subscription(amount=Decimal("1000")),
            make_subscription(amount=Decimal("6000"), cycle=PaymentCycle.BIANNUALLY),
            make_subscription(amount=Decimal("1000"), currency_code="USD", cycle=PaymentCycle.YEARLY),
        ]
        assert normalized_monthly_total(subs, RATES) == pytest.approx(1000 + 1000 + 12500)

    def test_missing_rate_is_not_an_error(self):
        """An unknown currency counts at rate 1.0."""
        subs = [make_subscription(amount=Decimal("20"), currency_code="EUR")]
        assert normalized_monthly_total(subs, RATES) == pytest.approx(20.0)

    def test_empty_snapshot(self):
        """No subscriptions sum to zero."""
        assert normalized_monthly_total([], RATES) == 0


class TestMonthlyTotal:
    """Tests for the total actually billed in a month."""

    def test_yearly_outside_billing_month_contributes_nothing(self):
        """A yearly subscription adds 0 outside its billing month."""
        subs = [make_subscription(amount=Decimal("1000"), currency_code="USD", cycle=PaymentCycle.YEARLY,
                                  first_payment_date=date(2024, 1, 31))]
        assert monthly_total(subs, RATES, 2025, 6) == 0

    def test_yearly_inside_billing_month_contributes_full_amount(self):
        """A yearly subscription adds its whole installment in its billing month."""
        subs = [make_subscription(amount=Decimal("1000"), currency_code="USD", cycle=PaymentCycle.YEARLY,
                                  first_payment_date=date(2024, 1, 31))]
        assert monthly_total(subs, RATES, 2025, 1) == pytest.approx(150000.0)

    def test_before_first_payment(self):
        """Months before the first payment have no charges."""
        subs = [make_subscription(first_payment_date=date(2024, 5, 1))]
        assert monthly_total(subs, RATES, 2024, 4) == 0

    def test_mixed_subscriptions(self):
        """Only subscriptions billing in the month are counted."""
        subs = [
            make_subscription(amount=Decimal("980")),
            make_subscription(amount=Decimal("6000"), cycle=PaymentCycle.BIANNUALLY,
                              first_payment_date=date(2024, 3, 10)),
            make_subscription(amount=Decimal("12"), currency_code="USD"),
        ]
        assert monthly_total(subs, RATES, 2024, 9) == pytest.approx(980 + 6000 + 1800)
        assert monthly_total(subs, RATES, 2024, 10) == pytest.approx(980 + 1800)

    def test_corrupt_record_fails_atomically(self):
        """No partial total is returned when a record is corrupt."""
        subs = [make_subscription(), corrupt_subscription()]
        with pytest.raises(InvalidCycleError):
            monthly_total(subs, RATES, 2024, 6)


class TestRemainingThisMonth:
    """Tests for the payments still due this month."""

    def test_only_payments_up_to_month_end(self):
        """Next payments after today and on or before the month end are summed."""
        today = date(2024, 6, 10)
        subs = [
            make_subscription(service_name="Later this month", amount=Decimal("500"),
                              first_payment_date=date(2024, 1, 20)),
            make_subscription(service_name="Next month", amount=Decimal("700"),
                              first_payment_date=date(2024, 1, 5)),
            make_subscription(service_name="Month end", amount=Decimal("10"), currency_code="USD",
                              cycle=PaymentCycle.YEARLY, first_payment_date=date(2023, 6, 30)),
        ]
        assert remaining_this_month_total(subs, RATES, today) == pytest.approx(500 + 1500)

    def test_due_today_is_not_remaining(self):
        """A payment due today projects to next month and is not counted."""
        today = date(2024, 6, 10)
        subs = [make_subscription(first_payment_date=date(2024, 1, 10))]
        assert remaining_this_month_total(subs, RATES, today) == 0

    def test_last_day_of_month(self):
        """On the last day of a month nothing remains."""
        subs = [make_subscription(first_payment_date=date(2024, 1, 15))]
        assert remaining_this_month_total(subs, RATES, date(2024, 6, 30)) == 0


class TestMonthlyBreakdown:
    """Tests for the per-service breakdown."""

    def test_sorted_descending(self):
        """Largest charge first, amounts converted to base currency."""
        subs = [
            make_subscription(service_name="Music", amount=Decimal("980")),
            make_subscription(service_name="Cloud", amount=Decimal("10"), currency_code="USD"),
            make_subscription(service_name="News", amount=Decimal("12000"), cycle=PaymentCycle.YEARLY,
                              first_payment_date=date(2023, 2, 1)),
        ]

        items = monthly_breakdown(subs, RATES, 2024, 6)

        assert [i.service_name for i in items] == ["Cloud", "Music"]
        assert items[0].amount == pytest.approx(1500.0)

    def test_breakdown_matches_monthly_total(self):
        """The breakdown sums to the month's total."""
        subs = [
            make_subscription(service_name="Music", amount=Decimal("980")),
            make_subscription(service_name="News", amount=Decimal("12000"), cycle=PaymentCycle.YEARLY,
                              first_payment_date=date(2023, 2, 1)),
        ]
        items = monthly_breakdown(subs, RATES, 2024, 2)
        assert sum(i.amount for i in items) == pytest.approx(monthly_total(subs, RATES, 2024, 2))

    def test_percentages(self):
        """Shares are percent of the month's total."""
        items = [
            MonthlyBreakdownItem(service_name="A", amount=750.0),
            MonthlyBreakdownItem(service_name="B", amount=250.0),
        ]
        assert breakdown_percentages(items) == [("A", 75.0), ("B", 25.0)]

    def test_percentages_of_free_month(self):
        """A month totalling zero gives zero shares."""
        items = [MonthlyBreakdownItem(service_name="Free", amount=0.0)]
        assert breakdown_percentages(items) == [("Free", 0.0)]


class TestIdempotence:
    """Views are pure functions of their inputs."""

    def test_views_repeatable(self):
        """Computing any view twice from the same snapshot gives the same result."""
        today = date(2024, 6, 10)
        subs = [
            make_subscription(service_name="A", first_payment_date=date(2024, 1, 31)),
            make_subscription(service_name="B", cycle=PaymentCycle.BIANNUALLY, usage_frequency=0),
        ]

        assert next_payments(subs, today) == next_payments(subs, today)
        assert cost_per_use_ranking(subs, RATES) == cost_per_use_ranking(subs, RATES)
        assert normalized_monthly_total(subs, RATES) == normalized_monthly_total(subs, RATES)
        assert monthly_total(subs, RATES, 2024, 6) == monthly_total(subs, RATES, 2024, 6)
        assert remaining_this_month_total(subs, RATES, today) == remaining_this_month_total(subs, RATES, today)
        assert monthly_breakdown(subs, RATES, 2024, 6) == monthly_breakdown(subs, RATES, 2024, 6)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
