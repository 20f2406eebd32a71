"""
Shared request models: the rule input contract
"""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RuleInputModel(BaseModel):
    # Clients send camelCase (daysOfWeek) or snake_case (days_of_week)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PositionalPatternIn(RuleInputModel):
    week_of_month: int | str | None = None  # 1..5 or first..last
    day_of_week: str | int | None = None


class MonthlyPatternIn(PositionalPatternIn):
    day_of_month: int | None = None
    from_end: bool = False


class YearlyPatternIn(PositionalPatternIn):
    month: int | None = None
    day_of_month: int | None = None


class RecurrenceRuleIn(RuleInputModel):
    unit: str | None = None  # unknown unit = recurrence disabled
    interval: int = 1
    days_of_week: list[str | int] = Field(default_factory=list)
    monthly_pattern: MonthlyPatternIn | None = None
    yearly_pattern: YearlyPatternIn | None = None
    extended_pattern: dict[str, Any] | None = None
    adjustment: dict[str, Any] | None = None
    end_date: str | None = None  # ISO-8601 date or date-time
    max_occurrences: int | None = None

    def to_rule_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
