"""
Interval parsing and validation tests
"""
import pytest
from datetime import date, datetime, time, timedelta

from app.models.ontology import ResourceKind
from app.services.errors import DateFormatError, ErrorCode, InvalidDateError
from app.services.interval_service import (
    IntervalIssue, ensure_valid_interval, parse_instant, parse_interval, validate_interval,
)

NOW = datetime(2025, 1, 10, 12, 0)


class TestParseInstant:

    def test_date_only_check_in_is_start_of_day(self):
        assert parse_instant("2025-01-11", "check_in") == datetime(2025, 1, 11, 0, 0)

    def test_date_only_check_out_is_end_of_day(self):
        assert parse_instant("2025-01-11", "check_out", end_of_day=True) == datetime.combine(
            date(2025, 1, 11), time.max
        )

    def test_datetime_string(self):
        assert parse_instant("2025-01-11T14:30:00", "check_in") == datetime(2025, 1, 11, 14, 30)

    def test_utc_suffix_accepted(self):
        parsed = parse_instant("2025-01-11T14:30:00Z", "check_in")
        assert parsed.tzinfo is None

    def test_datetime_passes_through(self):
        value = datetime(2025, 1, 11, 9, 0)
        assert parse_instant(value, "check_in") is value

    def test_date_object(self):
        assert parse_instant(date(2025, 1, 11), "check_in") == datetime(2025, 1, 11)

    @pytest.mark.parametrize("value", ["not-a-date", "2025-13-01", "", "   ", None, 42])
    def test_unparseable_values(self, value):
        with pytest.raises(DateFormatError) as exc_info:
            parse_instant(value, "check_in")

        assert exc_info.value.code == ErrorCode.INVALID_DATE_FORMAT
        assert exc_info.value.context["field"] == "check_in"

    def test_format_error_is_an_invalid_date(self):
        with pytest.raises(InvalidDateError):
            parse_instant("garbage", "check_out")

    def test_same_date_interval_is_not_empty(self):
        check_in, check_out = parse_interval("2025-01-11", "2025-01-11")
        assert check_out > check_in


class TestValidateInterval:

    def test_valid_room_interval(self):
        result = validate_interval(datetime(2025, 1, 11, 14), datetime(2025, 1, 12, 11), ResourceKind.ROOM, now=NOW)
        assert result.valid
        assert result.issue is None

    def test_check_out_must_follow_check_in(self):
        result = validate_interval(datetime(2025, 1, 12), datetime(2025, 1, 11), now=NOW)

        assert not result.valid
        assert result.issue == IntervalIssue.CHECKOUT_NOT_AFTER_CHECKIN

    def test_zero_length_interval_rejected(self):
        instant = datetime(2025, 1, 12)
        result = validate_interval(instant, instant, now=NOW)
        assert result.issue == IntervalIssue.CHECKOUT_NOT_AFTER_CHECKIN

    def test_past_check_in_rejected(self):
        result = validate_interval(datetime(2025, 1, 9), datetime(2025, 1, 11), now=NOW)

        assert not result.valid
        assert result.issue == IntervalIssue.CHECKIN_IN_PAST

    def test_earlier_today_is_not_past(self):
        result = validate_interval(datetime(2025, 1, 10, 8), datetime(2025, 1, 11, 8), now=NOW)
        assert result.valid

    def test_allow_past_skips_rule(self):
        result = validate_interval(datetime(2025, 1, 9), datetime(2025, 1, 11), now=NOW, allow_past=True)
        assert result.valid

    def test_room_minimum_stay(self):
        start = datetime(2025, 1, 11, 10)
        assert validate_interval(start, start + timedelta(hours=11), ResourceKind.ROOM, now=NOW).issue == \
            IntervalIssue.BELOW_MINIMUM_STAY
        assert validate_interval(start, start + timedelta(hours=12), ResourceKind.ROOM, now=NOW).valid

    def test_hall_minimum_stay(self):
        start = datetime(2025, 1, 11, 8)
        result = validate_interval(start, start + timedelta(hours=20), ResourceKind.HALL, now=NOW)

        assert result.issue == IntervalIssue.BELOW_MINIMUM_STAY
        assert "24 hours" in result.reason

    def test_single_date_hall_booking_meets_minimum(self):
        check_in, check_out = parse_interval("2025-01-11", "2025-01-11")
        assert validate_interval(check_in, check_out, ResourceKind.HALL, now=NOW).valid

    def test_maximum_stay(self):
        start = datetime(2025, 1, 11)
        assert validate_interval(start, start + timedelta(days=30), now=NOW).valid
        result = validate_interval(start, start + timedelta(days=31), now=NOW)
        assert result.issue == IntervalIssue.ABOVE_MAXIMUM_STAY


class TestEnsureValidInterval:

    def test_raises_invalid_date_with_context(self):
        with pytest.raises(InvalidDateError) as exc_info:
            ensure_valid_interval(datetime(2025, 1, 12), datetime(2025, 1, 11), now=NOW)

        error = exc_info.value
        assert error.code == ErrorCode.INVALID_DATE
        assert error.context["issue"] == IntervalIssue.CHECKOUT_NOT_AFTER_CHECKIN.value
        assert "after check-in" in error.message

    def test_valid_interval_passes(self):
        ensure_valid_interval(datetime(2025, 1, 11, 14), datetime(2025, 1, 13, 11), now=NOW)
