"""Tests for rule normalization (loose dict -> RecurrenceRule) and rule events"""
import pytest
from datetime import date, datetime, timezone
from types import SimpleNamespace

from cadence.domain.recurrence import (
    AdjustDirection,
    DayOfWeek,
    RecurrenceRuleValidationError,
    RecurrenceUnit,
    WeekOfMonth,
)
from cadence.domain.recurrence_rule import (
    RecurrenceRuleEvents,
    parse_day,
    parse_int,
    parse_when,
    rule_from_dict,
    rule_from_row,
    rule_to_dict,
)


class TestUnit:
    def test_missing_unit_disables(self):
        assert rule_from_dict({"interval": 2}) is None

    def test_unknown_unit_disables(self):
        assert rule_from_dict({"unit": "fortnight"}) is None

    def test_empty_input(self):
        assert rule_from_dict(None) is None
        assert rule_from_dict({}) is None

    @pytest.mark.parametrize("raw", ["halfyear", "half_year", "halfYear", "HalfYear"])
    def test_halfyear_aliases(self, raw):
        assert rule_from_dict({"unit": raw}).unit == RecurrenceUnit.HALFYEAR

    def test_interval_defaults_to_one(self):
        assert rule_from_dict({"unit": "day"}).interval == 1

    def test_zero_interval_rejected(self):
        with pytest.raises(RecurrenceRuleValidationError):
            rule_from_dict({"unit": "day", "interval": 0})


class TestKeys:
    def test_camel_case(self):
        rule = rule_from_dict({
            "unit": "month",
            "monthlyPattern": {"weekOfMonth": "second", "dayOfWeek": "sunday"},
            "endDate": "2024-12-31",
            "maxOccurrences": 5,
        })
        assert rule.monthly.week_of_month == WeekOfMonth.SECOND
        assert rule.monthly.day_of_week == DayOfWeek.SUNDAY
        assert rule.end_date == date(2024, 12, 31)
        assert rule.max_occurrences == 5

    def test_snake_case(self):
        rule = rule_from_dict({"unit": "week", "days_of_week": ["mon", "fri"]})
        assert rule.days_of_week == (DayOfWeek.MONDAY, DayOfWeek.FRIDAY)

    def test_nested_pattern_object(self):
        rule = rule_from_dict({"unit": "year", "pattern": {"yearly": {"month": 11, "weekOfMonth": 4, "dayOfWeek": "thu"}}})
        assert rule.yearly.month == 11
        assert rule.yearly.week_of_month == WeekOfMonth.FOURTH

    def test_flat_legacy_day_of_month(self):
        rule = rule_from_dict({"unit": "month", "dayOfMonth": 31})
        assert rule.monthly.day_of_month == 31

    def test_positional_falls_back_to_days_of_week(self):
        rule = rule_from_dict({"unit": "month", "daysOfWeek": ["friday"], "weekOfMonth": "last"})
        assert rule.monthly.week_of_month == WeekOfMonth.LAST
        assert rule.monthly.day_of_week == DayOfWeek.FRIDAY

    def test_week_without_day_rejected(self):
        with pytest.raises(RecurrenceRuleValidationError):
            rule_from_dict({"unit": "month", "monthlyPattern": {"weekOfMonth": 2}})


class TestFieldParsers:
    @pytest.mark.parametrize("value,expected", [
        ("Sunday", DayOfWeek.SUNDAY),
        ("tue", DayOfWeek.TUESDAY),
        (0, DayOfWeek.SUNDAY),
        (6, DayOfWeek.SATURDAY),
        (DayOfWeek.MONDAY, DayOfWeek.MONDAY),
    ])
    def test_parse_day(self, value, expected):
        assert parse_day(value) == expected

    @pytest.mark.parametrize("value", [7, "funday", None, True])
    def test_parse_day_rejects(self, value):
        with pytest.raises(RecurrenceRuleValidationError):
            parse_day(value)

    def test_parse_when_date(self):
        assert parse_when("2024-01-05") == date(2024, 1, 5)

    def test_parse_when_utc_suffix(self):
        assert parse_when("2024-01-05T10:00:00Z") == datetime(2024, 1, 5, 10, 0, tzinfo=timezone.utc)

    def test_parse_when_invalid(self):
        with pytest.raises(RecurrenceRuleValidationError):
            parse_when("yesterday")

    @pytest.mark.parametrize("value", ["--3", "\u00b2", "3.5", ""])
    def test_parse_int_rejects(self, value):
        with pytest.raises(RecurrenceRuleValidationError):
            parse_int(value, "day_of_month")

    def test_parse_int_accepts_signed_text(self):
        assert parse_int(" -3 ", "day_of_month") == -3

    def test_nested_pattern_must_be_object(self):
        with pytest.raises(RecurrenceRuleValidationError):
            rule_from_dict({"unit": "month", "extendedPattern": {"monthly": [1]}})

    def test_scalar_where_list_expected(self):
        with pytest.raises(RecurrenceRuleValidationError):
            rule_from_dict({"unit": "month", "extendedPattern": {"monthly": {"daysOfMonth": 5}}})

    def test_adjustment_disabled(self):
        rule = rule_from_dict({"unit": "day", "adjustment": {"enabled": False, "toWeekday": "monday"}})
        assert rule.adjustment is None

    def test_adjustment_legacy_single_weekday(self):
        rule = rule_from_dict({
            "unit": "day",
            "adjustment": {"toWeekday": "friday", "thenAdjust": "previous", "ifWeekday": "saturday"},
        })
        assert rule.adjustment.if_weekdays == frozenset({DayOfWeek.SATURDAY})
        assert rule.adjustment.then_adjust == AdjustDirection.PREVIOUS

    def test_extended_pattern(self):
        rule = rule_from_dict({
            "unit": "quarter",
            "extendedPattern": {"quarterly": {"offsetMonths": [0, 2], "weeksOfQuarter": [{"week": 2, "dayOfWeek": "mon"}]}},
        })
        assert rule.extended.quarterly.offset_months == (0, 2)
        assert rule.extended.quarterly.weeks_of_period[0].day_of_week == DayOfWeek.MONDAY


class TestRoundTrip:
    def test_to_dict_is_json_safe_and_reversible(self):
        raw = {
            "unit": "month",
            "interval": 2,
            "monthlyPattern": {"dayOfMonth": 3, "fromEnd": True},
            "adjustment": {"toWeekday": "monday", "ifHoliday": True, "holidays": ["2024-12-25"]},
            "endDate": "2025-06-30T12:00:00",
            "maxOccurrences": 10,
        }
        rule = rule_from_dict(raw)
        data = rule_to_dict(rule)
        assert data["unit"] == "month"
        assert data["monthly_pattern"]["from_end"] is True
        assert data["adjustment"]["holidays"] == ["2024-12-25"]
        assert data["end_date"] == "2025-06-30T12:00:00"
        assert rule_from_dict(data) == rule

    def test_from_row(self):
        row = SimpleNamespace(
            rule_id=7,
            unit="week",
            interval=1,
            days_of_week="wednesday,friday",
            end_date="2024-03-01",
            max_occurrences=None,
            patterns_json=None,
        )
        rule = rule_from_row(row)
        assert rule.id == "7"
        assert rule.days_of_week == (DayOfWeek.WEDNESDAY, DayOfWeek.FRIDAY)
        assert rule.end_date == date(2024, 3, 1)


class TestRecurrenceRuleEvents:
    def test_create_payload(self):
        rule = rule_from_dict({"unit": "week", "daysOfWeek": ["monday"]})
        payload = RecurrenceRuleEvents.create(account_id=1, rule_id=3, rule=rule)
        assert payload["rule_id"] == 3
        assert payload["account_id"] == 1
        assert payload["days_of_week"] == ["monday"]
        assert "id" not in payload
        assert "created_at" in payload

    def test_update_payload_is_sparse(self):
        rule = rule_from_dict({"unit": "day", "interval": 3})
        payload = RecurrenceRuleEvents.update(rule_id=3, rule=rule, changed=("interval",))
        assert payload["interval"] == 3
        assert "unit" not in payload
        assert "updated_at" in payload

    def test_delete_payload(self):
        assert RecurrenceRuleEvents.delete(3)["rule_id"] == 3
