"""Tests for extended (multi-day) recurrence patterns"""
from datetime import date

from cadence.domain.recurrence import (
    DayOfWeek,
    MonthlyPattern,
    RecurrenceRule,
    RecurrenceUnit,
    calculate_next,
    generate_sequence,
)
from cadence.domain.recurrence_extended import (
    ExtendedMonthly,
    ExtendedPattern,
    ExtendedPeriod,
    ExtendedWeekly,
    ExtendedYearly,
    ExtendedYearlyMonth,
    WeekdayInPeriod,
    normalize_numbers,
)


def extended_rule(unit, pattern: ExtendedPattern, **kwargs) -> RecurrenceRule:
    return RecurrenceRule(unit=RecurrenceUnit(unit), extended=pattern, **kwargs)


class TestNormalizeNumbers:
    def test_drops_out_of_range_and_duplicates(self):
        assert normalize_numbers([15, 1, 15, 40, 0, True], 1, 31) == [1, 15]

    def test_empty(self):
        assert normalize_numbers(None, 1, 31) == []


class TestExtendedWeekly:
    def test_monday_and_thursday_every_two_weeks(self):
        r = extended_rule(
            "week",
            ExtendedPattern(weekly=ExtendedWeekly(days_of_week=(DayOfWeek.MONDAY, DayOfWeek.THURSDAY))),
            interval=2,
        )
        assert generate_sequence(date(2024, 1, 1), r, 3) == [
            date(2024, 1, 4), date(2024, 1, 15), date(2024, 1, 18),
        ]

    def test_empty_days_disable_rule(self):
        r = extended_rule("week", ExtendedPattern(weekly=ExtendedWeekly()))
        assert calculate_next(date(2024, 1, 1), r) is None


class TestExtendedMonthly:
    def pattern(self):
        return ExtendedPattern(monthly=ExtendedMonthly(
            days_of_month=(1, 15),
            weeks_of_month=(WeekdayInPeriod(week=5, day_of_week=DayOfWeek.FRIDAY),),
        ))

    def test_earliest_candidate_after_base(self):
        r = extended_rule("month", self.pattern())
        assert calculate_next(date(2024, 1, 10), r) == date(2024, 1, 15)
        assert calculate_next(date(2024, 1, 15), r) == date(2024, 1, 26)

    def test_moves_to_next_month(self):
        r = extended_rule("month", self.pattern())
        assert calculate_next(date(2024, 1, 26), r) == date(2024, 2, 1)

    def test_day_clamped_to_month_end(self):
        r = extended_rule("month", ExtendedPattern(monthly=ExtendedMonthly(days_of_month=(31,))))
        assert calculate_next(date(2024, 2, 10), r) == date(2024, 2, 29)

    def test_overrides_plain_monthly_pattern(self):
        r = extended_rule(
            "month",
            ExtendedPattern(monthly=ExtendedMonthly(days_of_month=(20,))),
            monthly=MonthlyPattern(day_of_month=5),
        )
        assert calculate_next(date(2024, 1, 10), r) == date(2024, 1, 20)

    def test_pattern_for_other_unit_is_ignored(self):
        r = extended_rule(
            "month",
            ExtendedPattern(weekly=ExtendedWeekly(days_of_week=(DayOfWeek.MONDAY,))),
            monthly=MonthlyPattern(day_of_month=5),
        )
        assert calculate_next(date(2024, 1, 10), r) == date(2024, 2, 5)

    def test_empty_pattern_yields_none(self):
        r = extended_rule("month", ExtendedPattern(monthly=ExtendedMonthly()))
        assert calculate_next(date(2024, 1, 10), r) is None

    def test_end_date_still_applies(self):
        r = extended_rule("month", self.pattern(), end_date=date(2024, 1, 20))
        assert calculate_next(date(2024, 1, 15), r) is None


class TestExtendedPeriods:
    def test_quarter_offsets(self):
        r = extended_rule("quarter", ExtendedPattern(quarterly=ExtendedPeriod(offset_months=(0, 2), days_of_month=(10,))))
        assert calculate_next(date(2024, 1, 10), r) == date(2024, 3, 10)
        assert calculate_next(date(2024, 3, 10), r) == date(2024, 5, 10)

    def test_quarter_week_from_period_start(self):
        r = extended_rule("quarter", ExtendedPattern(quarterly=ExtendedPeriod(
            weeks_of_period=(WeekdayInPeriod(week=2, day_of_week=DayOfWeek.MONDAY),),
        )))
        assert calculate_next(date(2024, 1, 1), r) == date(2024, 1, 8)
        assert calculate_next(date(2024, 1, 8), r) == date(2024, 4, 8)

    def test_halfyear_offset(self):
        r = extended_rule("halfyear", ExtendedPattern(halfyear=ExtendedPeriod(offset_months=(5,), days_of_month=(1,))))
        assert calculate_next(date(2024, 1, 15), r) == date(2024, 6, 1)


class TestExtendedYearly:
    def pattern(self):
        return ExtendedPattern(yearly=ExtendedYearly(months=(
            ExtendedYearlyMonth(month=3, days_of_month=(15,)),
            ExtendedYearlyMonth(month=11, weeks_of_month=(WeekdayInPeriod(week=4, day_of_week=DayOfWeek.THURSDAY),)),
        )))

    def test_later_this_year(self):
        r = extended_rule("year", self.pattern())
        assert calculate_next(date(2024, 4, 1), r) == date(2024, 11, 28)

    def test_next_year(self):
        r = extended_rule("year", self.pattern())
        assert calculate_next(date(2024, 11, 28), r) == date(2025, 3, 15)
