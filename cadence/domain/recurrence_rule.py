"""
RecurrenceRule boundary: loose input -> strict RecurrenceRule, plus event payloads.

Rules arrive from several representations (API bodies, stored events,
older clients). Everything passes through rule_from_dict before it reaches
the calculator:

- camelCase and snake_case keys are both accepted
- "half_year" / "halfYear" are aliases of "halfyear"
- week_of_month may be 1..5 or first/second/third/fourth/last
- a legacy monthly positional pattern without day_of_week takes the
  first entry of days_of_week
- a missing or unknown unit means "recurrence disabled" -> None
"""
from datetime import date, datetime
from typing import Any, Dict, Mapping

from cadence.domain.recurrence import (
    DateAdjustment,
    DayOfWeek,
    MonthlyPattern,
    RecurrenceRule,
    RecurrenceRuleValidationError,
    RecurrenceUnit,
    YearlyPattern,
)
from cadence.domain.recurrence_extended import (
    ExtendedMonthly,
    ExtendedPattern,
    ExtendedPeriod,
    ExtendedWeekly,
    ExtendedYearly,
    ExtendedYearlyMonth,
    WeekdayInPeriod,
)


UNIT_ALIASES = {"half_year": "halfyear", "halfyear": "halfyear", "half-year": "halfyear"}
WEEK_WORDS = {"first": 1, "second": 2, "third": 3, "fourth": 4, "last": 5}
DAY_ABBREVIATIONS = {
    "su": DayOfWeek.SUNDAY, "sun": DayOfWeek.SUNDAY,
    "mo": DayOfWeek.MONDAY, "mon": DayOfWeek.MONDAY,
    "tu": DayOfWeek.TUESDAY, "tue": DayOfWeek.TUESDAY,
    "we": DayOfWeek.WEDNESDAY, "wed": DayOfWeek.WEDNESDAY,
    "th": DayOfWeek.THURSDAY, "thu": DayOfWeek.THURSDAY,
    "fr": DayOfWeek.FRIDAY, "fri": DayOfWeek.FRIDAY,
    "sa": DayOfWeek.SATURDAY, "sat": DayOfWeek.SATURDAY,
}
RULE_FIELDS = (
    "unit", "interval", "days_of_week", "monthly_pattern", "yearly_pattern",
    "extended_pattern", "adjustment", "end_date", "max_occurrences",
)


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


def _pick(raw: Mapping, key: str, default=None):
    """Value by snake_case key or its camelCase spelling."""
    if not isinstance(raw, Mapping):
        raise RecurrenceRuleValidationError(f"expected an object, got {raw!r}")
    if key in raw:
        return raw[key]
    return raw.get(_camel(key), default)


# --- Field parsers ---

def parse_unit(value) -> RecurrenceUnit | None:
    if value is None:
        return None
    if isinstance(value, RecurrenceUnit):
        return value
    key = str(value).strip().lower()
    key = UNIT_ALIASES.get(key, key)
    try:
        return RecurrenceUnit(key)
    except ValueError:
        return None


def parse_day(value) -> DayOfWeek:
    """Weekday from enum, name, abbreviation or number (sunday = 0)."""
    if isinstance(value, DayOfWeek):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        if 0 <= value <= 6:
            return DayOfWeek.from_number(value)
        raise RecurrenceRuleValidationError(f"day of week number must be 0..6, got {value}")
    if isinstance(value, str):
        key = value.strip().lower()
        if key in DAY_ABBREVIATIONS:
            return DAY_ABBREVIATIONS[key]
        try:
            return DayOfWeek(key)
        except ValueError:
            pass
    raise RecurrenceRuleValidationError(f"unknown day of week: {value!r}")


def parse_week(value) -> int:
    if isinstance(value, str):
        key = value.strip().lower()
        if key in WEEK_WORDS:
            return WEEK_WORDS[key]
        if key.isdigit():
            value = int(key)
    if isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= 5:
        return value
    raise RecurrenceRuleValidationError(f"week_of_month must be 1..5 or first..last, got {value!r}")


def parse_int(value, name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise RecurrenceRuleValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise RecurrenceRuleValidationError(f"{name} must be an integer, got {value!r}")


def _items(values, name: str) -> tuple:
    if not values:
        return ()
    if not isinstance(values, (list, tuple, set, frozenset)):
        raise RecurrenceRuleValidationError(f"{name} must be a list, got {values!r}")
    return tuple(values)


def _int_list(values, name: str) -> tuple[int, ...]:
    return tuple(parse_int(v, name) for v in _items(values, name))


def parse_when(value) -> date | datetime | None:
    """ISO-8601 date ("2024-01-05") or date-time ("2024-01-05T10:00:00Z")."""
    if value is None or value == "":
        return None
    if isinstance(value, (date, datetime)):
        return value
    if not isinstance(value, str):
        raise RecurrenceRuleValidationError(f"expected ISO-8601 date, got {value!r}")
    text = value.strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text)
    except ValueError:
        raise RecurrenceRuleValidationError(f"invalid ISO-8601 date: {value!r}") from None


def format_when(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# --- Pattern parsers ---

def _positional(raw: Mapping, fallback_days: tuple[DayOfWeek, ...]) -> tuple[int | None, DayOfWeek | None]:
    week = _pick(raw, "week_of_month")
    day = _pick(raw, "day_of_week")
    if week is None:
        if day is not None:
            raise RecurrenceRuleValidationError("day_of_week requires week_of_month")
        return None, None
    if day is None:
        if not fallback_days:
            raise RecurrenceRuleValidationError("week_of_month requires day_of_week")
        return parse_week(week), fallback_days[0]
    return parse_week(week), parse_day(day)


def parse_monthly(raw: Mapping | None, fallback_days=()) -> MonthlyPattern | None:
    if not raw:
        return None
    week, day = _positional(raw, fallback_days)
    return MonthlyPattern(
        day_of_month=parse_int(_pick(raw, "day_of_month"), "day_of_month"),
        week_of_month=week,
        day_of_week=day,
        from_end=bool(_pick(raw, "from_end", False)),
    )


def parse_yearly(raw: Mapping | None, fallback_days=()) -> YearlyPattern | None:
    if not raw:
        return None
    month = parse_int(_pick(raw, "month"), "month")
    if month is None:
        raise RecurrenceRuleValidationError("yearly pattern requires month")
    week, day = _positional(raw, fallback_days)
    return YearlyPattern(
        month=month,
        day_of_month=parse_int(_pick(raw, "day_of_month"), "day_of_month"),
        week_of_month=week,
        day_of_week=day,
    )


def _weeks(values) -> tuple[WeekdayInPeriod, ...]:
    out = []
    for entry in _items(values, "weeks"):
        week = parse_int(_pick(entry, "week"), "week")
        if week is None:
            raise RecurrenceRuleValidationError("week entry requires week")
        out.append(WeekdayInPeriod(week=week, day_of_week=parse_day(_pick(entry, "day_of_week"))))
    return tuple(out)


def _period(raw: Mapping | None, weeks_key: str) -> ExtendedPeriod | None:
    if raw is None:
        return None
    return ExtendedPeriod(
        offset_months=_int_list(_pick(raw, "offset_months"), "offset_months"),
        days_of_month=_int_list(_pick(raw, "days_of_month"), "days_of_month"),
        weeks_of_period=_weeks(_pick(raw, weeks_key) or _pick(raw, "weeks_of_period")),
    )


def parse_extended(raw: Mapping | None) -> ExtendedPattern | None:
    if not raw:
        return None
    weekly = _pick(raw, "weekly")
    monthly = _pick(raw, "monthly")
    yearly = _pick(raw, "yearly")
    return ExtendedPattern(
        weekly=ExtendedWeekly(
            days_of_week=tuple(parse_day(d) for d in _items(_pick(weekly, "days_of_week"), "days_of_week")),
        ) if weekly is not None else None,
        monthly=ExtendedMonthly(
            days_of_month=_int_list(_pick(monthly, "days_of_month"), "days_of_month"),
            weeks_of_month=_weeks(_pick(monthly, "weeks_of_month")),
        ) if monthly is not None else None,
        quarterly=_period(_pick(raw, "quarterly"), "weeks_of_quarter"),
        halfyear=_period(_pick(raw, "halfyear"), "weeks_of_halfyear"),
        yearly=ExtendedYearly(
            months=tuple(_yearly_month(m) for m in _items(_pick(yearly, "months"), "months")),
        ) if yearly is not None else None,
    )


def _yearly_month(raw: Mapping) -> ExtendedYearlyMonth:
    month = parse_int(_pick(raw, "month"), "month")
    if month is None:
        raise RecurrenceRuleValidationError("yearly month entry requires month")
    return ExtendedYearlyMonth(
        month=month,
        days_of_month=_int_list(_pick(raw, "days_of_month"), "days_of_month"),
        weeks_of_month=_weeks(_pick(raw, "weeks_of_month")),
    )


def parse_adjustment(raw: Mapping | None) -> DateAdjustment | None:
    if not raw or _pick(raw, "enabled", True) is False:
        return None
    to_weekday = _pick(raw, "to_weekday")
    if to_weekday is None:
        raise RecurrenceRuleValidationError("adjustment requires to_weekday")
    if_weekdays = _pick(raw, "if_weekdays")
    if if_weekdays is None and _pick(raw, "if_weekday") is not None:
        if_weekdays = [_pick(raw, "if_weekday")]
    return DateAdjustment(
        to_weekday=parse_day(to_weekday),
        then_adjust=_pick(raw, "then_adjust", "next"),
        if_weekdays=frozenset(parse_day(d) for d in _items(if_weekdays, "if_weekdays")),
        if_holiday=bool(_pick(raw, "if_holiday", False)),
        holidays=frozenset(parse_when(h) for h in _items(_pick(raw, "holidays"), "holidays")),
    )


# --- Whole rule ---

def rule_from_dict(raw: Mapping | None) -> RecurrenceRule | None:
    """Normalize a loosely shaped rule. None = no recurrence (missing/unknown unit).

    Raises RecurrenceRuleValidationError for malformed fields.
    """
    if not raw:
        return None
    unit = parse_unit(_pick(raw, "unit"))
    if unit is None:
        return None

    days = tuple(parse_day(d) for d in _items(_pick(raw, "days_of_week"), "days_of_week"))
    pattern = _pick(raw, "pattern") or {}

    monthly_raw = _pick(raw, "monthly_pattern") or _pick(pattern, "monthly")
    if monthly_raw is None and (_pick(raw, "day_of_month") is not None or _pick(raw, "week_of_month") is not None):
        # Flat legacy shape: day_of_month / week_of_month on the rule itself
        monthly_raw = {
            "day_of_month": _pick(raw, "day_of_month"),
            "week_of_month": _pick(raw, "week_of_month"),
        }

    interval = parse_int(_pick(raw, "interval"), "interval")
    return RecurrenceRule(
        unit=unit,
        interval=1 if interval is None else interval,
        days_of_week=days,
        monthly=parse_monthly(monthly_raw, days),
        yearly=parse_yearly(_pick(raw, "yearly_pattern") or _pick(pattern, "yearly"), days),
        extended=parse_extended(_pick(raw, "extended_pattern") or _pick(pattern, "extended")),
        adjustment=parse_adjustment(_pick(raw, "adjustment")),
        end_date=parse_when(_pick(raw, "end_date")),
        max_occurrences=parse_int(_pick(raw, "max_occurrences"), "max_occurrences"),
        id=str(raw["id"]) if raw.get("id") is not None else None,
    )


def _positional_dict(pattern) -> Dict[str, Any]:
    return {
        "week_of_month": int(pattern.week_of_month) if pattern.week_of_month is not None else None,
        "day_of_week": pattern.day_of_week.value if pattern.day_of_week is not None else None,
    }


def _weeks_list(weeks) -> list[dict]:
    return [{"week": w.week, "day_of_week": w.day_of_week.value} for w in weeks]


def _extended_dict(ext: ExtendedPattern) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if ext.weekly is not None:
        out["weekly"] = {"days_of_week": [d.value for d in ext.weekly.days_of_week]}
    if ext.monthly is not None:
        out["monthly"] = {
            "days_of_month": list(ext.monthly.days_of_month),
            "weeks_of_month": _weeks_list(ext.monthly.weeks_of_month),
        }
    for name, period, weeks_key in (
        ("quarterly", ext.quarterly, "weeks_of_quarter"),
        ("halfyear", ext.halfyear, "weeks_of_halfyear"),
    ):
        if period is not None:
            out[name] = {
                "offset_months": list(period.offset_months),
                "days_of_month": list(period.days_of_month),
                weeks_key: _weeks_list(period.weeks_of_period),
            }
    if ext.yearly is not None:
        out["yearly"] = {"months": [
            {
                "month": m.month,
                "days_of_month": list(m.days_of_month),
                "weeks_of_month": _weeks_list(m.weeks_of_month),
            }
            for m in ext.yearly.months
        ]}
    return out


def rule_to_dict(rule: RecurrenceRule) -> Dict[str, Any]:
    """JSON-safe snake_case dict; rule_from_dict(rule_to_dict(r)) == r."""
    monthly = yearly = adjustment = None
    if rule.monthly is not None:
        monthly = {
            "day_of_month": rule.monthly.day_of_month,
            **_positional_dict(rule.monthly),
            "from_end": rule.monthly.from_end,
        }
    if rule.yearly is not None:
        yearly = {
            "month": rule.yearly.month,
            "day_of_month": rule.yearly.day_of_month,
            **_positional_dict(rule.yearly),
        }
    if rule.adjustment is not None:
        adj = rule.adjustment
        adjustment = {
            "to_weekday": adj.to_weekday.value,
            "then_adjust": adj.then_adjust.value,
            "if_weekdays": sorted(d.value for d in adj.if_weekdays),
            "if_holiday": adj.if_holiday,
            "holidays": sorted(h.isoformat() for h in adj.holidays),
        }
    return {
        "id": rule.id,
        "unit": rule.unit.value,
        "interval": rule.interval,
        "days_of_week": [d.value for d in rule.days_of_week],
        "monthly_pattern": monthly,
        "yearly_pattern": yearly,
        "extended_pattern": _extended_dict(rule.extended) if rule.extended is not None else None,
        "adjustment": adjustment,
        "end_date": format_when(rule.end_date),
        "max_occurrences": rule.max_occurrences,
    }


def rule_from_row(row) -> RecurrenceRule | None:
    """Build RecurrenceRule from a RecurrenceRuleModel row (any object with matching attributes)."""
    patterns = row.patterns_json or {}
    return rule_from_dict({
        "id": row.rule_id,
        "unit": row.unit,
        "interval": row.interval,
        "days_of_week": [d for d in (row.days_of_week or "").split(",") if d],
        "monthly_pattern": patterns.get("monthly_pattern"),
        "yearly_pattern": patterns.get("yearly_pattern"),
        "extended_pattern": patterns.get("extended_pattern"),
        "adjustment": patterns.get("adjustment"),
        "end_date": row.end_date,
        "max_occurrences": row.max_occurrences,
    })


class RecurrenceRuleEvents:
    """Event payloads for recurrence rule operations."""

    @staticmethod
    def create(account_id: int, rule_id: int, rule: RecurrenceRule) -> Dict[str, Any]:
        payload = {k: v for k, v in rule_to_dict(rule).items() if k != "id"}
        payload.update({
            "rule_id": rule_id,
            "account_id": account_id,
            "created_at": datetime.utcnow().isoformat(),
        })
        return payload

    @staticmethod
    def update(rule_id: int, rule: RecurrenceRule, changed: tuple[str, ...]) -> Dict[str, Any]:
        """Sparse payload: only the changed fields, taken from the validated rule."""
        data = rule_to_dict(rule)
        payload: Dict[str, Any] = {"rule_id": rule_id, "updated_at": datetime.utcnow().isoformat()}
        for key in RULE_FIELDS:
            if key in changed:
                payload[key] = data[key]
        return payload

    @staticmethod
    def delete(rule_id: int) -> Dict[str, Any]:
        return {"rule_id": rule_id, "deleted_at": datetime.utcnow().isoformat()}
