"""
Task API endpoints (create, recurrence attach/detach, complete)
"""
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from cadence.api.deps import get_db, get_current_account_id
from cadence.application.recurrence_rules import RecurrenceRuleNotFoundError
from cadence.application.tasks_usecases import (
    AttachRecurrenceUseCase,
    CompleteTaskUseCase,
    CreateTaskUseCase,
    DetachRecurrenceUseCase,
    TaskNotFoundError,
    TaskValidationError,
    get_task,
)
from cadence.infrastructure.db.models import TaskModel


router = APIRouter(prefix="/api/v1/tasks", tags=["tasks"])


# === Request/Response models ===

class CreateTaskRequest(BaseModel):
    title: str
    note: str | None = None
    due_date: str | None = None  # YYYY-MM-DD
    due_time: str | None = None  # HH:MM[:SS]
    recurrence_rule_id: int | None = None


class AttachRecurrenceRequest(BaseModel):
    rule_id: int


class TaskResponse(BaseModel):
    task_id: int
    title: str
    note: str | None
    due_date: str | None
    due_time: str | None
    status: str
    recurrence_rule_id: int | None
    occurrence_count: int


# === Helpers ===

def _to_response(task: TaskModel) -> TaskResponse:
    return TaskResponse(
        task_id=task.task_id,
        title=task.title,
        note=task.note,
        due_date=task.due_date.isoformat() if task.due_date else None,
        due_time=task.due_time.isoformat() if task.due_time else None,
        status=task.status,
        recurrence_rule_id=task.recurrence_rule_id,
        occurrence_count=task.occurrence_count,
    )


def _run(fn):
    """Map use case errors to HTTP errors"""
    try:
        return fn()
    except (TaskNotFoundError, RecurrenceRuleNotFoundError) as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except TaskValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def _load(db: Session, account_id: int, task_id: int) -> TaskResponse:
    return _to_response(_run(lambda: get_task(db, account_id, task_id)))


# === Endpoints ===

@router.post("/", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    req: CreateTaskRequest,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_current_account_id),
):
    """Create a task, optionally recurring"""
    task_id = _run(lambda: CreateTaskUseCase(db).execute(
        account_id=account_id,
        title=req.title,
        note=req.note,
        due_date=req.due_date,
        due_time=req.due_time,
        actor_user_id=account_id,
    ))
    if req.recurrence_rule_id is not None:
        _run(lambda: AttachRecurrenceUseCase(db).execute(
            task_id=task_id,
            rule_id=req.recurrence_rule_id,
            account_id=account_id,
            actor_user_id=account_id,
        ))
    return _load(db, account_id, task_id)


@router.get("/", response_model=list[TaskResponse])
def list_tasks(
    db: Session = Depends(get_db),
    account_id: int = Depends(get_current_account_id),
    status_filter: str | None = None,
):
    query = db.query(TaskModel).filter(TaskModel.account_id == account_id)
    if status_filter:
        query = query.filter(TaskModel.status == status_filter.upper())
    return [_to_response(t) for t in query.order_by(TaskModel.task_id).all()]


@router.get("/{task_id}", response_model=TaskResponse)
def get_task_endpoint(
    task_id: int,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_current_account_id),
):
    return _load(db, account_id, task_id)


@router.put("/{task_id}/recurrence", response_model=TaskResponse)
def attach_recurrence(
    task_id: int,
    req: AttachRecurrenceRequest,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_current_account_id),
):
    _run(lambda: AttachRecurrenceUseCase(db).execute(
        task_id=task_id, rule_id=req.rule_id, account_id=account_id, actor_user_id=account_id,
    ))
    return _load(db, account_id, task_id)


@router.delete("/{task_id}/recurrence", response_model=TaskResponse)
def detach_recurrence(
    task_id: int,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_current_account_id),
):
    _run(lambda: DetachRecurrenceUseCase(db).execute(
        task_id=task_id, account_id=account_id, actor_user_id=account_id,
    ))
    return _load(db, account_id, task_id)


@router.post("/{task_id}/complete", response_model=TaskResponse)
def complete_task(
    task_id: int,
    db: Session = Depends(get_db),
    account_id: int = Depends(get_current_account_id),
):
    """Complete a task; a recurring task moves to its next occurrence"""
    _run(lambda: CompleteTaskUseCase(db).execute(
        task_id=task_id, account_id=account_id, actor_user_id=account_id,
    ))
    return _load(db, account_id, task_id)
