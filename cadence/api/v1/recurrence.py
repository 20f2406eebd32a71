"""
Recurrence preview API - stateless next/sequence calculation
"""
from fastapi import APIRouter, HTTPException
from pydantic import Field

from cadence.api.v1.schemas import RecurrenceRuleIn, RuleInputModel
from cadence.application.recurrence_rules import preview_occurrences
from cadence.domain.recurrence import RecurrenceRuleValidationError, calculate_next
from cadence.domain.recurrence_rule import format_when, parse_when, rule_from_dict


router = APIRouter(prefix="/api/v1/recurrence", tags=["recurrence"])


# === Request/Response models ===

class NextRequest(RuleInputModel):
    base: str  # ISO-8601 date or date-time; the result keeps its shape
    rule: RecurrenceRuleIn | None = None
    occurrence_count: int | None = Field(default=None, ge=1)


class NextResponse(RuleInputModel):
    next: str | None


class SequenceRequest(RuleInputModel):
    start: str
    rule: RecurrenceRuleIn | None = None
    count: int = Field(default=10, ge=1)


class SequenceResponse(RuleInputModel):
    dates: list[str]


def _parse(req_base: str, rule_in: RecurrenceRuleIn | None):
    try:
        base = parse_when(req_base)
        rule = rule_from_dict(rule_in.to_rule_dict()) if rule_in is not None else None
    except RecurrenceRuleValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    if base is None:
        raise HTTPException(status_code=422, detail="Base date is required")
    return base, rule


# === Endpoints ===

@router.post("/next", response_model=NextResponse)
def next_occurrence(req: NextRequest):
    """Next occurrence after base; null when recurrence is disabled or ended"""
    base, rule = _parse(req.base, req.rule)
    return NextResponse(next=format_when(calculate_next(base, rule, req.occurrence_count)))


@router.post("/sequence", response_model=SequenceResponse)
def occurrence_sequence(req: SequenceRequest):
    """Up to count occurrences after start (capped by SEQUENCE_MAX_COUNT)"""
    start, rule = _parse(req.start, req.rule)
    return SequenceResponse(dates=[format_when(d) for d in preview_occurrences(rule, start, req.count)])
