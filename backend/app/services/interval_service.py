"""
Interval service - parsing and validation of check-in / check-out instants

Date-only check-in values normalize to the start of the day and date-only
check-out values to the end of the day, so "2025-01-01" to "2025-01-01" is a
one-day interval rather than an empty one.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Optional, Union

from app.config import settings
from app.models.ontology import ResourceKind
from app.services.errors import DateFormatError, InvalidDateError

Instant = Union[str, date, datetime]


def parse_instant(value: Instant, field_name: str, end_of_day: bool = False) -> datetime:
    """
    Parse an ISO date or datetime into a naive datetime.

    Raises:
        DateFormatError: the value is missing or not a date
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone().replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.max if end_of_day else time.min)
    if not isinstance(value, str) or not value.strip():
        raise DateFormatError(field_name, value)

    text = value.strip()
    try:
        if len(text) == 10:
            return parse_instant(date.fromisoformat(text), field_name, end_of_day)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return parse_instant(datetime.fromisoformat(text), field_name, end_of_day)
    except ValueError:
        raise DateFormatError(field_name, value) from None


def effective_end(check_out: datetime) -> datetime:
    """An end-of-day check-out counts as the following midnight for length rules"""
    if check_out.time() == time.max:
        return check_out + timedelta(microseconds=1)
    return check_out


class IntervalIssue(str, Enum):
    """Reason an interval was rejected"""
    CHECKOUT_NOT_AFTER_CHECKIN = "CHECKOUT_NOT_AFTER_CHECKIN"
    CHECKIN_IN_PAST = "CHECKIN_IN_PAST"
    BELOW_MINIMUM_STAY = "BELOW_MINIMUM_STAY"
    ABOVE_MAXIMUM_STAY = "ABOVE_MAXIMUM_STAY"


@dataclass(frozen=True)
class IntervalCheck:
    valid: bool
    issue: Optional[IntervalIssue] = None
    reason: str = ""


def minimum_stay(kind: ResourceKind) -> timedelta:
    if kind == ResourceKind.HALL:
        return timedelta(hours=settings.MIN_STAY_HOURS_HALL)
    return timedelta(hours=settings.MIN_STAY_HOURS_ROOM)


def validate_interval(
    check_in: datetime,
    check_out: datetime,
    kind: ResourceKind = ResourceKind.ROOM,
    now: Optional[datetime] = None,
    allow_past: bool = False,
) -> IntervalCheck:
    """
    Check an interval against the business rules.

    Args:
        check_in: Start instant
        check_out: End instant (exclusive)
        kind: Resource kind, selects the minimum stay
        now: Reference instant; check-in may not precede the start of its day
        allow_past: Skip the past check-in rule (edits of started reservations)

    Returns:
        IntervalCheck with the first violated rule, or valid=True
    """
    if check_out <= check_in:
        return IntervalCheck(False, IntervalIssue.CHECKOUT_NOT_AFTER_CHECKIN, "Check-out must be after check-in")

    now = now or datetime.now()
    start_of_today = datetime.combine(now.date(), time.min)
    if not allow_past and check_in < start_of_today:
        return IntervalCheck(False, IntervalIssue.CHECKIN_IN_PAST, "Check-in date cannot be in the past")

    length = effective_end(check_out) - check_in
    min_stay = minimum_stay(kind)
    if length < min_stay:
        hours = int(min_stay.total_seconds() // 3600)
        return IntervalCheck(
            False,
            IntervalIssue.BELOW_MINIMUM_STAY,
            f"Minimum stay for a {kind.value.lower()} is {hours} hours",
        )

    if length > timedelta(days=settings.MAX_STAY_DAYS):
        return IntervalCheck(
            False,
            IntervalIssue.ABOVE_MAXIMUM_STAY,
            f"Maximum stay is {settings.MAX_STAY_DAYS} days",
        )

    return IntervalCheck(True)


def ensure_valid_interval(
    check_in: datetime,
    check_out: datetime,
    kind: ResourceKind = ResourceKind.ROOM,
    now: Optional[datetime] = None,
    allow_past: bool = False,
) -> None:
    """validate_interval, raising InvalidDateError on failure"""
    result = validate_interval(check_in, check_out, kind, now=now, allow_past=allow_past)
    if not result.valid:
        raise InvalidDateError(result.reason, {
            "issue": result.issue.value,
            "check_in": check_in.isoformat(),
            "check_out": check_out.isoformat(),
        })


def parse_interval(check_in: Any, check_out: Any) -> tuple:
    """Parse a (check_in, check_out) pair with the date-only normalization rules"""
    return (
        parse_instant(check_in, "check_in"),
        parse_instant(check_out, "check_out", end_of_day=True),
    )
