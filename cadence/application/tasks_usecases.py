"""Task use cases - one-off and recurring tasks"""
import logging
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session
from sqlalchemy import func

from cadence.config import get_settings
from cadence.infrastructure.eventlog.repository import EventLogRepository
from cadence.infrastructure.db.models import RecurrenceRuleModel, TaskModel, EventLog
from cadence.domain.recurrence import calculate_next
from cadence.domain.recurrence_rule import rule_from_row
from cadence.domain.task import Task, combine_due
from cadence.application.recurrence_rules import get_rule
from cadence.readmodels.projectors.tasks import TasksProjector

logger = logging.getLogger(__name__)


class TaskValidationError(ValueError):
    pass


class TaskNotFoundError(LookupError):
    pass


def get_task(db: Session, account_id: int, task_id: int) -> TaskModel:
    task = db.query(TaskModel).filter(
        TaskModel.task_id == task_id,
        TaskModel.account_id == account_id,
    ).first()
    if not task:
        raise TaskNotFoundError(f"Task #{task_id} not found")
    return task


def today() -> date:
    """Today in the configured TIMEZONE"""
    return datetime.now(ZoneInfo(get_settings().TIMEZONE)).date()


def _check_due(due_date: str | None, due_time: str | None) -> None:
    if due_time and not due_date:
        raise TaskValidationError("due_time requires due_date")
    try:
        if due_date:
            date.fromisoformat(due_date)
        if due_time:
            time.fromisoformat(due_time)
    except ValueError as exc:
        raise TaskValidationError(f"Invalid due date/time: {exc}") from None


class CreateTaskUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(
        self,
        account_id: int,
        title: str,
        note: str | None = None,
        due_date: str | None = None,
        due_time: str | None = None,
        actor_user_id: int | None = None,
    ) -> int:
        title = title.strip()
        if not title:
            raise TaskValidationError("Task title must not be empty")
        _check_due(due_date, due_time)

        task_id = self._generate_id()
        payload = Task.create(account_id, task_id, title, note, due_date=due_date, due_time=due_time)

        self.event_repo.append_event(
            account_id=account_id,
            event_type="task_created",
            payload=payload,
            actor_user_id=actor_user_id,
        )
        self.db.commit()
        TasksProjector(self.db).run(account_id, event_types=["task_created"])
        return task_id

    def _generate_id(self) -> int:
        max_id = self.db.query(
            func.max(func.cast(EventLog.payload_json['task_id'], TaskModel.task_id.type))
        ).filter(EventLog.event_type == 'task_created').scalar() or 0
        return max_id + 1


class AttachRecurrenceUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(self, task_id: int, rule_id: int, account_id: int, actor_user_id: int | None = None) -> None:
        task = get_task(self.db, account_id, task_id)
        if task.status != "ACTIVE":
            raise TaskValidationError("Recurrence can only be attached to an active task")
        get_rule(self.db, account_id, rule_id)

        self.event_repo.append_event(
            account_id=account_id,
            event_type="task_recurrence_attached",
            payload=Task.attach_recurrence(task_id, rule_id),
            actor_user_id=actor_user_id,
        )
        self.db.commit()
        TasksProjector(self.db).run(account_id, event_types=["task_recurrence_attached"])


class DetachRecurrenceUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(self, task_id: int, account_id: int, actor_user_id: int | None = None) -> None:
        task = get_task(self.db, account_id, task_id)
        if task.recurrence_rule_id is None:
            raise TaskValidationError(f"Task #{task_id} has no recurrence")

        self.event_repo.append_event(
            account_id=account_id,
            event_type="task_recurrence_detached",
            payload=Task.detach_recurrence(task_id),
            actor_user_id=actor_user_id,
        )
        self.db.commit()
        TasksProjector(self.db).run(account_id, event_types=["task_recurrence_detached"])


class CompleteTaskUseCase:
    """
    Complete a task

    One-off task -> task_completed.
    Recurring task -> task_rescheduled with the next occurrence (task stays
    ACTIVE), or task_completed + task_recurrence_ended when the rule is
    exhausted.
    """

    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(self, task_id: int, account_id: int, actor_user_id: int | None = None) -> date | datetime | None:
        """
        Returns:
            New due date/time for a rescheduled task, None when the task is done
        """
        task = get_task(self.db, account_id, task_id)
        if task.status != "ACTIVE":
            raise TaskValidationError("Task is already completed")

        next_due = None
        rule_row = None
        if task.recurrence_rule_id is not None:
            rule_row = self.db.query(RecurrenceRuleModel).filter(
                RecurrenceRuleModel.rule_id == task.recurrence_rule_id
            ).first()
        if rule_row is not None:
            base = combine_due(task.due_date, task.due_time) or today()
            next_due = calculate_next(base, rule_from_row(rule_row), occurrence_count=task.occurrence_count)

        if next_due is not None:
            occurrence_count = task.occurrence_count + 1
            self.event_repo.append_event(
                account_id=account_id,
                event_type="task_rescheduled",
                payload=Task.reschedule(task_id, next_due, occurrence_count),
                actor_user_id=actor_user_id,
            )
            event_types = ["task_rescheduled"]
            logger.info("Task #%s rescheduled to %s (occurrence %d)", task_id, next_due.isoformat(), occurrence_count)
        else:
            self.event_repo.append_event(
                account_id=account_id,
                event_type="task_completed",
                payload=Task.complete(task_id),
                actor_user_id=actor_user_id,
            )
            event_types = ["task_completed"]
            if task.recurrence_rule_id is not None:
                self.event_repo.append_event(
                    account_id=account_id,
                    event_type="task_recurrence_ended",
                    payload=Task.end_recurrence(task_id, task.recurrence_rule_id),
                    actor_user_id=actor_user_id,
                )
                event_types.append("task_recurrence_ended")
                logger.info(
                    "Task #%s: recurrence rule #%s ended after %d occurrence(s)",
                    task_id, task.recurrence_rule_id, task.occurrence_count,
                )

        self.db.commit()
        TasksProjector(self.db).run(account_id, event_types=event_types)
        return next_due
