"""
Recurrence rule API endpoints
"""
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from cadence.api.deps import get_db, get_current_account_id
from cadence.api.v1.schemas import RecurrenceRuleIn
from cadence.application.recurrence_rules import (
    CreateRecurrenceRuleUseCase,
    DeleteRecurrenceRuleUseCase,
    RecurrenceRuleNotFoundError,
    UpdateRecurrenceRuleUseCase,
    get_rule,
    preview_rule_occurrences,
)
from cadence.domain.recurrence import RecurrenceRuleValidationError
from cadence.domain.recurrence_rule import format_when, parse_when, rule_from_row, rule_to_dict
from cadence.infrastructure.db.models import RecurrenceRuleModel


router = APIRouter(prefix="/api/v1/recurrence-rules", tags=["recurrence-rules"])


# === Response models ===

class RuleResponse(BaseModel):
    rule_id: int
    unit: str
    interval: int
    days_of_week: list[str]
    monthly_pattern: dict[str, Any] | None = None
    yearly_pattern: dict[str, Any] | None = None
    extended_pattern: dict[str, Any] | None = None
    adjustment: dict[str, Any] | None = None
    end_date: str | None = None
    max_occurrences: int | None = None


class PreviewResponse(BaseModel):
    rule_id: int
    dates: list[str]


# === Helpers ===

def _to_response(row: RecurrenceRuleModel) -> RuleResponse:
    data = rule_to_dict(rule_from_row(row))
    data.pop("id")
    return RuleResponse(rule_id=row.rule_id, **data)


def _load(db: Session, account_id: int, rule_id: int) -> RecurrenceRuleModel:
    try:
        return get_rule(db, account_id, rule_id)
    except RecurrenceRuleNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


# === Endpoints ===

@router.post("/", response_model=RuleResponse, status_code=status.HTTP_201_CREATED)
def create_rule(
    req: RecurrenceRuleIn,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_current_account_id),
):
    """Create a recurrence rule"""
    try:
        rule_id = CreateRecurrenceRuleUseCase(db).execute(
            account_id=account_id,
            rule=req.to_rule_dict(),
            actor_user_id=account_id,
        )
    except RecurrenceRuleValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    return _to_response(_load(db, account_id, rule_id))


@router.get("/", response_model=list[RuleResponse])
def list_rules(
    db: Session = Depends(get_db),
    account_id: int = Depends(get_current_account_id),
):
    rows = db.query(RecurrenceRuleModel).filter(
        RecurrenceRuleModel.account_id == account_id
    ).order_by(RecurrenceRuleModel.rule_id).all()
    return [_to_response(row) for row in rows]


@router.get("/{rule_id}", response_model=RuleResponse)
def get_rule_endpoint(
    rule_id: int,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_current_account_id),
):
    return _to_response(_load(db, account_id, rule_id))


@router.patch("/{rule_id}", response_model=RuleResponse)
def update_rule(
    rule_id: int,
    req: RecurrenceRuleIn,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_current_account_id),
):
    """Partial update: only fields present in the body change"""
    _load(db, account_id, rule_id)
    try:
        UpdateRecurrenceRuleUseCase(db).execute(
            rule_id=rule_id,
            account_id=account_id,
            actor_user_id=account_id,
            **req.model_dump(exclude_unset=True),
        )
    except RecurrenceRuleValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    return _to_response(_load(db, account_id, rule_id))


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_current_account_id),
):
    """Delete a rule; tasks using it keep their current due date"""
    _load(db, account_id, rule_id)
    DeleteRecurrenceRuleUseCase(db).execute(rule_id=rule_id, account_id=account_id, actor_user_id=account_id)


@router.get("/{rule_id}/preview", response_model=PreviewResponse)
def preview_rule(
    rule_id: int,
    start: str = Query(..., description="ISO-8601 date or date-time of the first occurrence"),
    count: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    account_id: int = Depends(get_current_account_id),
):
    try:
        start_value = parse_when(start)
    except RecurrenceRuleValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    if start_value is None:
        raise HTTPException(status_code=422, detail="start is required")

    try:
        dates = preview_rule_occurrences(db, account_id, rule_id, start_value, count)
    except RecurrenceRuleNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return PreviewResponse(rule_id=rule_id, dates=[format_when(d) for d in dates])
