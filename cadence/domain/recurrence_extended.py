"""
Extended recurrence patterns - several candidate days per period.

Examples:
- WEEK: monday + thursday every 2 weeks
- MONTH: the 1st, the 15th and the last friday
- QUARTER / HALFYEAR: day 10 of the 1st and 3rd month of the period,
  or the 2nd monday counted from the period start
- YEAR: March 15 and the 4th thursday of November

Periods are anchored at the month of the base date, so offsets move with
the base: from March 10 a quarter runs March..May. Each cycle builds all
candidates of one period and returns the earliest strictly after base.
"""
from dataclasses import dataclass
from datetime import date, timedelta

from cadence.domain.recurrence import (
    DateLike,
    DayOfWeek,
    RecurrenceRule,
    RecurrenceUnit,
    add_months,
    last_day_of_month,
    on_day,
    to_day,
    weekday_number,
    weekday_of_month,
    weekly_next,
)

MAX_LOOKAHEAD_CYCLES = 48


@dataclass(frozen=True)
class WeekdayInPeriod:
    week: int  # 1-based; for months 5 means "last"
    day_of_week: DayOfWeek

    def __post_init__(self):
        object.__setattr__(self, "day_of_week", to_day(self.day_of_week))


@dataclass(frozen=True)
class ExtendedWeekly:
    days_of_week: tuple[DayOfWeek, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "days_of_week", tuple(to_day(d) for d in self.days_of_week))


@dataclass(frozen=True)
class ExtendedMonthly:
    days_of_month: tuple[int, ...] = ()
    weeks_of_month: tuple[WeekdayInPeriod, ...] = ()


@dataclass(frozen=True)
class ExtendedPeriod:
    """Quarter or half-year: offset_months selects months within the period."""
    offset_months: tuple[int, ...] = ()
    days_of_month: tuple[int, ...] = ()
    weeks_of_period: tuple[WeekdayInPeriod, ...] = ()


@dataclass(frozen=True)
class ExtendedYearlyMonth:
    month: int
    days_of_month: tuple[int, ...] = ()
    weeks_of_month: tuple[WeekdayInPeriod, ...] = ()


@dataclass(frozen=True)
class ExtendedYearly:
    months: tuple[ExtendedYearlyMonth, ...] = ()


@dataclass(frozen=True)
class ExtendedPattern:
    weekly: ExtendedWeekly | None = None
    monthly: ExtendedMonthly | None = None
    quarterly: ExtendedPeriod | None = None
    halfyear: ExtendedPeriod | None = None
    yearly: ExtendedYearly | None = None

    def for_unit(self, unit):
        return {
            RecurrenceUnit.WEEK: self.weekly,
            RecurrenceUnit.MONTH: self.monthly,
            RecurrenceUnit.QUARTER: self.quarterly,
            RecurrenceUnit.HALFYEAR: self.halfyear,
            RecurrenceUnit.YEAR: self.yearly,
        }.get(unit)

    def applies_to(self, unit) -> bool:
        return self.for_unit(unit) is not None


def normalize_numbers(values, low: int, high: int) -> list[int]:
    """Unique sorted integers within [low, high]; anything else is dropped."""
    return sorted({
        v for v in values or ()
        if isinstance(v, int) and not isinstance(v, bool) and low <= v <= high
    })


def _month_day(base: DateLike, year: int, month: int, day: int) -> DateLike:
    return on_day(base, date(year, month, min(day, last_day_of_month(year, month))))


def _month_week(base: DateLike, year: int, month: int, entry: WeekdayInPeriod) -> DateLike | None:
    if not 1 <= entry.week <= 5:
        return None
    day = weekday_of_month(year, month, entry.week, entry.day_of_week)
    return on_day(base, day) if day is not None else None


def _period_week(period_start: date, length: int, entry: WeekdayInPeriod) -> date | None:
    if entry.week < 1:
        return None
    week_start = period_start + timedelta(days=(entry.week - 1) * 7)
    candidate = week_start + timedelta(days=(entry.day_of_week.number - weekday_number(week_start) + 7) % 7)
    return candidate if candidate < add_months(period_start, length) else None


def _pick_next(base: DateLike, candidates: list) -> DateLike | None:
    future = [c for c in candidates if c is not None and c > base]
    return min(future) if future else None


def _monthly_next(base: DateLike, interval: int, pattern: ExtendedMonthly) -> DateLike | None:
    days = normalize_numbers(pattern.days_of_month, 1, 31)
    weeks = [w for w in pattern.weeks_of_month if 1 <= w.week <= 5]
    if not days and not weeks:
        return None

    first = base.replace(day=1)
    for cycle in range(MAX_LOOKAHEAD_CYCLES):
        month_start = add_months(first, cycle * interval)
        year, month = month_start.year, month_start.month
        candidates = [_month_day(base, year, month, d) for d in days]
        candidates += [_month_week(base, year, month, w) for w in weeks]
        nxt = _pick_next(base, candidates)
        if nxt is not None:
            return nxt
    return None


def _period_next(base: DateLike, interval_months: int, length: int, pattern: ExtendedPeriod) -> DateLike | None:
    offsets = normalize_numbers(pattern.offset_months, 0, length - 1) or [0]
    days = normalize_numbers(pattern.days_of_month, 1, 31)
    weeks = [w for w in pattern.weeks_of_period if w.week >= 1]
    if not days and not weeks:
        return None

    first = base.replace(day=1)
    for cycle in range(MAX_LOOKAHEAD_CYCLES):
        period_start = add_months(first, cycle * interval_months)
        candidates = []
        for offset in offsets:
            month_start = add_months(period_start, offset)
            candidates += [_month_day(base, month_start.year, month_start.month, d) for d in days]
        for entry in weeks:
            day = _period_week(period_start, length, entry)
            if day is not None:
                candidates.append(on_day(base, day))
        nxt = _pick_next(base, candidates)
        if nxt is not None:
            return nxt
    return None


def _yearly_next(base: DateLike, interval: int, pattern: ExtendedYearly) -> DateLike | None:
    months = [m for m in pattern.months if 1 <= m.month <= 12]
    if not months:
        return None

    for cycle in range(MAX_LOOKAHEAD_CYCLES):
        year = base.year + cycle * interval
        candidates = []
        for entry in months:
            candidates += [
                _month_day(base, year, entry.month, d)
                for d in normalize_numbers(entry.days_of_month, 1, 31)
            ]
            candidates += [_month_week(base, year, entry.month, w) for w in entry.weeks_of_month]
        nxt = _pick_next(base, candidates)
        if nxt is not None:
            return nxt
    return None


def calculate_extended_next(base: DateLike, rule: RecurrenceRule) -> DateLike | None:
    """Earliest extended-pattern candidate after base, None when nothing matches."""
    if rule.extended is None:
        return None
    pattern = rule.extended.for_unit(rule.unit)
    if pattern is None:
        return None

    if rule.unit == RecurrenceUnit.WEEK:
        if not pattern.days_of_week:
            return None
        return weekly_next(base, rule.interval, pattern.days_of_week)
    if rule.unit == RecurrenceUnit.MONTH:
        return _monthly_next(base, rule.interval, pattern)
    if rule.unit == RecurrenceUnit.QUARTER:
        return _period_next(base, rule.interval * 3, 3, pattern)
    if rule.unit == RecurrenceUnit.HALFYEAR:
        return _period_next(base, rule.interval * 6, 6, pattern)
    if rule.unit == RecurrenceUnit.YEAR:
        return _yearly_next(base, rule.interval, pattern)
    return None
