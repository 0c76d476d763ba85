"""
Payment Date Projector

Advances a subscription's first payment date in whole billing cycles.

CALENDAR RULES:
1. A cycle adds 1 month (MONTHLY), 6 months (BIANNUALLY) or 1 year (YEARLY).
2. After every single step the day-of-month is clamped to the length of the
   resulting month (Jan 31 -> Feb 29 in a leap year, Feb 28 otherwise).
3. The next step starts from the clamped date, never from the original
   day-of-month (Jan 31 -> Feb 29 -> Mar 29).

GUARANTEES:
- Pure functions of their arguments. "Today" is always passed in.
- next_after() terminates after at most MAX_PROJECTION_STEPS increments.
- A payment due exactly on the reference date is projected to the next cycle.
"""

import calendar
from datetime import date, datetime
from functools import lru_cache
from typing import Final, Optional, Union

from dateutil.relativedelta import relativedelta

from subtrack.models.subscription import PaymentCycle


# Hard ceiling on cycle increments in next_after(). Not configurable.
MAX_PROJECTION_STEPS: Final[int] = 1000

DATE_FORMAT: Final[str] = "%Y-%m-%d"

_CYCLE_STEPS: Final[dict[PaymentCycle, relativedelta]] = {
    PaymentCycle.MONTHLY: relativedelta(months=1),
    PaymentCycle.BIANNUALLY: relativedelta(months=6),
    PaymentCycle.YEARLY: relativedelta(years=1),
}

DateLike = Union[date, str]
CycleLike = Union[PaymentCycle, str]


# =============================================================================
# EXCEPTIONS
# =============================================================================

class ProjectionError(Exception):
    """Base class for deterministic projection failures. Never retried."""
    pass


class InvalidDateError(ProjectionError, ValueError):
    """A date could not be parsed or is not a calendar date."""
    pass


class InvalidCycleError(ProjectionError, ValueError):
    """A cycle value is outside MONTHLY / BIANNUALLY / YEARLY."""
    pass


class ProjectionLimitExceeded(ProjectionError):
    """
    next_after() needed more than MAX_PROJECTION_STEPS increments.

    Treated as corrupt or misconfigured data, not a transient fault.
    """
    pass


# =============================================================================
# INPUT NORMALIZATION
# =============================================================================

def parse_date(value: DateLike) -> date:
    """
    Return value as a date.

    Accepts date objects and ISO strings (YYYY-MM-DD). Datetimes are
    truncated to their date.

    Raises:
        InvalidDateError: if the value is not a valid calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), DATE_FORMAT).date()
        except ValueError as e:
            raise InvalidDateError(f"Invalid date: {value!r}") from e
    raise InvalidDateError(f"Invalid date: {value!r}")


def coerce_cycle(value: CycleLike) -> PaymentCycle:
    """
    Return value as a PaymentCycle.

    Raises:
        InvalidCycleError: for anything outside the closed set
    """
    if isinstance(value, PaymentCycle):
        return value
    try:
        return PaymentCycle(value)
    except ValueError as e:
        raise InvalidCycleError(f"Invalid payment cycle: {value!r}") from e


def clamp_to_month_end(year: int, month: int, day: int) -> date:
    """Build a date, capping day at the last day of the month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """
    First and last day of a calendar month.

    Raises:
        InvalidDateError: if year/month do not name a calendar month
    """
    try:
        start = date(year, month, 1)
    except (TypeError, ValueError) as e:
        raise InvalidDateError(f"Invalid month: {year}-{month}") from e
    return start, clamp_to_month_end(year, month, 31)


# =============================================================================
# PROJECTION
# =============================================================================

def _advance(current: date, cycle: PaymentCycle) -> date:
    try:
        target = current.replace(day=1) + _CYCLE_STEPS[cycle]
    except (ValueError, OverflowError) as e:
        raise InvalidDateError(
            f"{cycle.value} cycle from {current.isoformat()} passes {date.max.isoformat()}"
        ) from e
    return clamp_to_month_end(target.year, target.month, current.day)


def advance_once(value: DateLike, cycle: CycleLike) -> date:
    """
    Move a date forward by one billing cycle, clamped to the month end.

    Examples:
        >>> advance_once(date(2024, 1, 31), PaymentCycle.MONTHLY)
        datetime.date(2024, 2, 29)
        >>> advance_once(date(2023, 1, 31), PaymentCycle.MONTHLY)
        datetime.date(2023, 2, 28)
        >>> advance_once(date(2024, 2, 29), PaymentCycle.YEARLY)
        datetime.date(2025, 2, 28)
    """
    return _advance(parse_date(value), coerce_cycle(cycle))


@lru_cache(maxsize=4096)
def _next_after(anchor: date, cycle: PaymentCycle, reference: date) -> date:
    current = anchor
    steps = 0
    while current <= reference:
        if steps >= MAX_PROJECTION_STEPS:
            raise ProjectionLimitExceeded(
                f"Next payment after {reference.isoformat()} not reached within "
                f"{MAX_PROJECTION_STEPS} {cycle.value} cycles from {anchor.isoformat()}"
            )
        current = _advance(current, cycle)
        steps += 1
    return current


def next_after(anchor: DateLike, cycle: CycleLike, reference: DateLike) -> date:
    """
    First payment date strictly after the reference date.

    The anchor itself is returned when it already lies after the reference.

    Raises:
        InvalidDateError: unparsable anchor or reference
        InvalidCycleError: cycle outside the closed set
        ProjectionLimitExceeded: more than MAX_PROJECTION_STEPS increments needed
    """
    return _next_after(parse_date(anchor), coerce_cycle(cycle), parse_date(reference))


def days_until(reference: DateLike, projected: DateLike) -> int:
    """Calendar days from reference to projected (>= 1 after next_after)."""
    return (parse_date(projected) - parse_date(reference)).days


@lru_cache(maxsize=4096)
def _occurrence_in_month(
    anchor: date,
    cycle: PaymentCycle,
    month_start: date,
    month_end: date,
) -> Optional[date]:
    if anchor > month_end:
        return None

    current = anchor
    while current < month_start:
        current = _advance(current, cycle)

    if month_start <= current <= month_end:
        return current
    return None


def occurrence_in_month(
    anchor: DateLike,
    cycle: CycleLike,
    month_start: DateLike,
    month_end: DateLike,
) -> Optional[date]:
    """
    The payment date falling inside [month_start, month_end], if any.

    Non-monthly cycles skip most months, so None is a normal answer.
    The cycle is checked up front: an unknown cycle raises InvalidCycleError
    even when no advancing would be needed.
    """
    start = parse_date(month_start)
    end = parse_date(month_end)
    if start > end:
        raise InvalidDateError(
            f"Month window ends before it starts: {start.isoformat()} > {end.isoformat()}"
        )
    return _occurrence_in_month(parse_date(anchor), coerce_cycle(cycle), start, end)
