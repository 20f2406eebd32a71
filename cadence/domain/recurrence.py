"""
Deterministic recurrence calculator.

Works on date or datetime (naive or aware); results keep the input type.
Pure functions only: no I/O, no state between calls.

Units:
- MINUTE / HOUR / DAY: every N units
- WEEK: every N weeks, optionally restricted to weekdays
- MONTH / QUARTER / HALFYEAR: every N (x3, x6) months, optional day of month
  or "Nth weekday of the month" pattern
- YEAR: every N years, optional month + day or "Nth weekday" pattern

Month arithmetic clamps to the last day of the target month
(Jan 31 + 1 month = Feb 29 in 2024, Feb 29 + 1 year = Feb 28).
"""
import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from cadence.domain.recurrence_extended import ExtendedPattern


DateLike = Union[date, datetime]


class RecurrenceRuleValidationError(ValueError):
    pass


class RecurrenceUnit(str, Enum):
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    HALFYEAR = "halfyear"
    YEAR = "year"


class DayOfWeek(str, Enum):
    # Declaration order is the canonical numbering: SUNDAY = 0 .. SATURDAY = 6
    SUNDAY = "sunday"
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"

    @property
    def number(self) -> int:
        return DAY_NUMBERS[self]

    @classmethod
    def from_number(cls, number: int) -> "DayOfWeek":
        return DAYS_BY_NUMBER[number % 7]


DAYS_BY_NUMBER = tuple(DayOfWeek)
DAY_NUMBERS = {day: i for i, day in enumerate(DAYS_BY_NUMBER)}


class WeekOfMonth(IntEnum):
    FIRST = 1
    SECOND = 2
    THIRD = 3
    FOURTH = 4
    LAST = 5  # final occurrence of the weekday, not "fifth week"


class AdjustDirection(str, Enum):
    NEXT = "next"
    PREVIOUS = "previous"


def _check_day_of_month(value: int | None) -> None:
    if value is not None and not 1 <= value <= 31:
        raise RecurrenceRuleValidationError(f"day_of_month must be 1..31, got {value}")


def to_day(value) -> DayOfWeek:
    try:
        return DayOfWeek(value)
    except ValueError:
        raise RecurrenceRuleValidationError(f"unknown day of week: {value!r}") from None


def _check_positional(pattern) -> None:
    week, day = pattern.week_of_month, pattern.day_of_week
    if week is None and day is None:
        return
    if week is None or day is None:
        raise RecurrenceRuleValidationError("week_of_month and day_of_week must be set together")
    if not 1 <= week <= 5:
        raise RecurrenceRuleValidationError(f"week_of_month must be 1..5, got {week}")
    object.__setattr__(pattern, "week_of_month", WeekOfMonth(week))
    object.__setattr__(pattern, "day_of_week", to_day(day))


@dataclass(frozen=True)
class MonthlyPattern:
    """Either a fixed day (clamped to month end) or "Nth weekday of the month".

    from_end counts day_of_month backwards from the last day (1 = last day).
    """
    day_of_month: int | None = None
    week_of_month: WeekOfMonth | None = None
    day_of_week: DayOfWeek | None = None
    from_end: bool = False

    def __post_init__(self):
        _check_day_of_month(self.day_of_month)
        _check_positional(self)
        if self.day_of_month is not None and self.week_of_month is not None:
            raise RecurrenceRuleValidationError("monthly pattern: day_of_month and week_of_month are exclusive")

    @property
    def is_positional(self) -> bool:
        return self.week_of_month is not None

    @property
    def is_empty(self) -> bool:
        return self.day_of_month is None and self.week_of_month is None and not self.from_end


@dataclass(frozen=True)
class YearlyPattern:
    month: int
    day_of_month: int | None = None
    week_of_month: WeekOfMonth | None = None
    day_of_week: DayOfWeek | None = None

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise RecurrenceRuleValidationError(f"month must be 1..12, got {self.month}")
        _check_day_of_month(self.day_of_month)
        _check_positional(self)
        if self.day_of_month is not None and self.week_of_month is not None:
            raise RecurrenceRuleValidationError("yearly pattern: day_of_month and week_of_month are exclusive")


@dataclass(frozen=True)
class DateAdjustment:
    """Shift a computed date that lands on an unwanted day.

    Triggers when the date falls on one of if_weekdays, or (if_holiday) on a
    weekend or one of the explicit holidays. The date then moves to the
    next/previous to_weekday; a same-weekday hit moves a full week.
    """
    to_weekday: DayOfWeek
    then_adjust: AdjustDirection = AdjustDirection.NEXT
    if_weekdays: frozenset[DayOfWeek] = frozenset()
    if_holiday: bool = False
    holidays: frozenset[date] = frozenset()

    def __post_init__(self):
        try:
            direction = AdjustDirection(self.then_adjust)
        except ValueError:
            raise RecurrenceRuleValidationError(f"then_adjust must be next/previous, got {self.then_adjust!r}") from None
        object.__setattr__(self, "then_adjust", direction)
        object.__setattr__(self, "to_weekday", to_day(self.to_weekday))
        object.__setattr__(self, "if_weekdays", frozenset(to_day(d) for d in self.if_weekdays))
        object.__setattr__(self, "holidays", frozenset(self.holidays))


@dataclass(frozen=True)
class RecurrenceRule:
    unit: RecurrenceUnit
    interval: int = 1
    days_of_week: tuple[DayOfWeek, ...] = ()
    monthly: MonthlyPattern | None = None
    yearly: YearlyPattern | None = None
    extended: "ExtendedPattern | None" = None
    adjustment: DateAdjustment | None = None
    end_date: DateLike | None = None
    max_occurrences: int | None = None
    id: str | None = None

    def __post_init__(self):
        # Unknown units are kept as-is: the calculator treats them as disabled
        try:
            object.__setattr__(self, "unit", RecurrenceUnit(self.unit))
        except ValueError:
            pass
        object.__setattr__(self, "days_of_week", tuple(to_day(d) for d in self.days_of_week))
        if isinstance(self.interval, bool) or not isinstance(self.interval, int) or self.interval < 1:
            raise RecurrenceRuleValidationError(f"interval must be an integer >= 1, got {self.interval!r}")
        if self.max_occurrences is not None and self.max_occurrences < 1:
            raise RecurrenceRuleValidationError("max_occurrences must be >= 1 when set")


# --- Calendar helpers ---

def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(d: DateLike, n: int) -> DateLike:
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    day = min(d.day, last_day_of_month(year, month))
    return d.replace(year=year, month=month, day=day)


def weekday_number(d: DateLike) -> int:
    """Sunday-based weekday number (sunday = 0)."""
    return (d.weekday() + 1) % 7


def nth_weekday_of_month(year: int, month: int, week: int, day: DayOfWeek) -> date | None:
    """Nth (1..4) occurrence of a weekday; None when it falls outside the month."""
    first = date(year, month, 1)
    offset = (day.number - weekday_number(first) + 7) % 7 + (week - 1) * 7
    if offset >= last_day_of_month(year, month):
        return None
    return first + timedelta(days=offset)


def last_weekday_of_month(year: int, month: int, day: DayOfWeek) -> date:
    last = date(year, month, last_day_of_month(year, month))
    return last - timedelta(days=(weekday_number(last) - day.number + 7) % 7)


def weekday_of_month(year: int, month: int, week: int, day: DayOfWeek) -> date | None:
    if week == WeekOfMonth.LAST:
        return last_weekday_of_month(year, month, day)
    return nth_weekday_of_month(year, month, week, day)


def on_day(base: DateLike, day: date) -> DateLike:
    """Move base to another calendar day, keeping time and tzinfo."""
    return base.replace(year=day.year, month=day.month, day=day.day)


def calendar_day(d: DateLike) -> date:
    return d.date() if isinstance(d, datetime) else d


def _as_datetime(d: DateLike) -> datetime:
    if isinstance(d, datetime):
        return d
    return datetime(d.year, d.month, d.day)


def is_holiday(d: DateLike, holidays: frozenset[date] = frozenset()) -> bool:
    return weekday_number(d) in (0, 6) or calendar_day(d) in holidays


def apply_adjustment(candidate: DateLike, adjustment: DateAdjustment) -> DateLike:
    current = weekday_number(candidate)
    triggered = any(day.number == current for day in adjustment.if_weekdays)
    if adjustment.if_holiday and is_holiday(candidate, adjustment.holidays):
        triggered = True
    if not triggered:
        return candidate

    target = adjustment.to_weekday.number
    if adjustment.then_adjust == AdjustDirection.PREVIOUS:
        return candidate - timedelta(days=(current - target + 7) % 7 or 7)
    return candidate + timedelta(days=(target - current + 7) % 7 or 7)


# --- Unit calculators ---

_FIXED_STEPS = {
    RecurrenceUnit.MINUTE: "minutes",
    RecurrenceUnit.HOUR: "hours",
    RecurrenceUnit.DAY: "days",
}

MAX_ADJUSTMENT_STEPS = 8

_MONTHS_PER_UNIT = {
    RecurrenceUnit.MONTH: 1,
    RecurrenceUnit.QUARTER: 3,
    RecurrenceUnit.HALFYEAR: 6,
}


def _fixed_step(base: DateLike, unit: RecurrenceUnit, interval: int) -> DateLike:
    step = timedelta(**{_FIXED_STEPS[unit]: interval})
    if unit == RecurrenceUnit.DAY:
        return base + step
    return _as_datetime(base) + step


def weekly_next(base: DateLike, interval: int, days_of_week) -> DateLike:
    if not days_of_week:
        return base + timedelta(weeks=interval)

    targets = sorted({day.number for day in days_of_week})
    current = weekday_number(base)
    # Nearest matching day in the rest of the current (sunday-based) week
    for step in range(1, 7 - current):
        if (current + step) in targets:
            return base + timedelta(days=step)
    # Otherwise the first matching day of the next applicable week
    return base + timedelta(days=interval * 7 + targets[0] - current)


def _monthly(base: DateLike, months: int, pattern: MonthlyPattern | None) -> DateLike | None:
    if pattern is None or pattern.is_empty:
        return add_months(base, months)

    target = add_months(base.replace(day=1), months)
    year, month = target.year, target.month
    if pattern.is_positional:
        day = weekday_of_month(year, month, pattern.week_of_month, pattern.day_of_week)
        return on_day(base, day) if day is not None else None

    last = last_day_of_month(year, month)
    if pattern.from_end:
        day_number = max(1, last - (pattern.day_of_month or 1) + 1)
    else:
        day_number = min(pattern.day_of_month, last)
    return on_day(base, date(year, month, day_number))


def _yearly_candidate(base: DateLike, year: int, pattern: YearlyPattern) -> DateLike | None:
    if pattern.week_of_month is not None:
        day = weekday_of_month(year, pattern.month, pattern.week_of_month, pattern.day_of_week)
        return on_day(base, day) if day is not None else None
    day_number = min(pattern.day_of_month or base.day, last_day_of_month(year, pattern.month))
    return on_day(base, date(year, pattern.month, day_number))


def _yearly(base: DateLike, interval: int, pattern: YearlyPattern | None) -> DateLike | None:
    if pattern is None:
        return add_months(base, 12 * interval)
    this_year = _yearly_candidate(base, base.year, pattern)
    if this_year is not None and this_year > base:
        return this_year
    return _yearly_candidate(base, base.year + interval, pattern)


def _candidate(base: DateLike, rule: RecurrenceRule) -> DateLike | None:
    unit = rule.unit
    if not isinstance(unit, RecurrenceUnit):
        return None
    if rule.extended is not None and rule.extended.applies_to(unit):
        from cadence.domain.recurrence_extended import calculate_extended_next
        return calculate_extended_next(base, rule)

    if unit in _FIXED_STEPS:
        return _fixed_step(base, unit, rule.interval)
    if unit == RecurrenceUnit.WEEK:
        return weekly_next(base, rule.interval, rule.days_of_week)
    if unit in _MONTHS_PER_UNIT:
        return _monthly(base, rule.interval * _MONTHS_PER_UNIT[unit], rule.monthly)
    if unit == RecurrenceUnit.YEAR:
        return _yearly(base, rule.interval, rule.yearly)
    return None


# --- Termination ---

def _is_after(candidate: DateLike, end: DateLike) -> bool:
    if isinstance(candidate, datetime) and isinstance(end, datetime):
        if (candidate.tzinfo is None) != (end.tzinfo is None):
            return candidate.replace(tzinfo=None) > end.replace(tzinfo=None)
        return candidate > end
    return calendar_day(candidate) > calendar_day(end)


def should_end(candidate: DateLike, rule: RecurrenceRule, occurrence_count: int | None = None) -> bool:
    """True when candidate must not be scheduled.

    occurrence_count is the number of occurrences already produced (the base
    occurrence included). max_occurrences is only enforced when it is given.
    """
    if rule.end_date is not None and _is_after(candidate, rule.end_date):
        return True
    if rule.max_occurrences is not None and occurrence_count is not None:
        return occurrence_count >= rule.max_occurrences
    return False


def _strictly_after(candidate: DateLike, base: DateLike) -> bool:
    if isinstance(candidate, datetime) or isinstance(base, datetime):
        return _is_after(_as_datetime(candidate), _as_datetime(base))
    return candidate > base


def _adjusted_after(base: DateLike, candidate: DateLike, rule: RecurrenceRule) -> DateLike | None:
    """Adjusted candidate strictly after base.

    A "previous" move can land on or before base; the rule is then stepped
    again from the unadjusted candidate.
    """
    for _ in range(MAX_ADJUSTMENT_STEPS):
        adjusted = apply_adjustment(candidate, rule.adjustment)
        if _strictly_after(adjusted, base):
            return adjusted
        candidate = _candidate(candidate, rule)
        if candidate is None:
            return None
    return None


# --- Public API ---

def calculate_next(
    base: DateLike,
    rule: RecurrenceRule | None,
    occurrence_count: int | None = None,
) -> DateLike | None:
    """Next occurrence after base, or None when the recurrence stops here."""
    if rule is None:
        return None
    candidate = _candidate(base, rule)
    if candidate is None:
        return None
    if rule.adjustment is not None:
        candidate = _adjusted_after(base, candidate, rule)
        if candidate is None:
            return None
    if should_end(candidate, rule, occurrence_count):
        return None
    return candidate


def generate_sequence(
    start: DateLike,
    rule: RecurrenceRule | None,
    count: int,
    occurrence_count: int | None = None,
) -> list[DateLike]:
    """Up to count occurrences after start; shorter when the recurrence ends."""
    out: list[DateLike] = []
    current = start
    while len(out) < count:
        nxt = calculate_next(current, rule, occurrence_count)
        if nxt is None:
            break
        out.append(nxt)
        current = nxt
        if occurrence_count is not None:
            occurrence_count += 1
    return out
