"""TasksProjector - builds tasks read model from events"""
from datetime import date, time, datetime
from cadence.readmodels.projectors.base import BaseProjector
from cadence.infrastructure.db.models import TaskModel, EventLog


def _date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _time(value: str | None) -> time | None:
    return time.fromisoformat(value) if value else None


class TasksProjector(BaseProjector):
    def __init__(self, db):
        super().__init__(db, projector_name="tasks")

    def handle_event(self, event: EventLog) -> None:
        handlers = {
            "task_created": self._handle_created,
            "task_recurrence_attached": self._handle_recurrence_attached,
            "task_recurrence_detached": self._handle_recurrence_detached,
            "task_completed": self._handle_completed,
            "task_rescheduled": self._handle_rescheduled,
            "task_recurrence_ended": self._handle_recurrence_ended,
        }
        handler = handlers.get(event.event_type)
        if handler:
            handler(event)

    def _get(self, payload: dict) -> TaskModel | None:
        return self.db.query(TaskModel).filter(
            TaskModel.task_id == payload["task_id"]
        ).first()

    def _handle_created(self, event: EventLog) -> None:
        payload = event.payload_json
        self.db.flush()
        if self._get(payload):
            return
        task = TaskModel(
            task_id=payload["task_id"],
            account_id=payload["account_id"],
            title=payload["title"],
            note=payload.get("note"),
            due_date=_date(payload.get("due_date")),
            due_time=_time(payload.get("due_time")),
            status="ACTIVE",
            occurrence_count=1,
            created_at=datetime.fromisoformat(payload["created_at"]),
        )
        self.db.add(task)
        self.db.flush()

    def _handle_recurrence_attached(self, event: EventLog) -> None:
        task = self._get(event.payload_json)
        if not task:
            return
        task.recurrence_rule_id = event.payload_json["rule_id"]
        # The current due date is the first occurrence of the new series
        task.occurrence_count = 1

    def _handle_recurrence_detached(self, event: EventLog) -> None:
        task = self._get(event.payload_json)
        if task:
            task.recurrence_rule_id = None

    def _handle_completed(self, event: EventLog) -> None:
        task = self._get(event.payload_json)
        if not task:
            return
        task.status = "DONE"
        task.completed_at = datetime.fromisoformat(event.payload_json["completed_at"])

    def _handle_rescheduled(self, event: EventLog) -> None:
        payload = event.payload_json
        task = self._get(payload)
        if not task:
            return
        task.due_date = _date(payload.get("due_date"))
        task.due_time = _time(payload.get("due_time"))
        task.occurrence_count = payload["occurrence_count"]
        task.status = "ACTIVE"
        task.completed_at = None

    def _handle_recurrence_ended(self, event: EventLog) -> None:
        task = self._get(event.payload_json)
        if task:
            task.recurrence_rule_id = None

    def reset(self, account_id: int) -> None:
        self.db.query(TaskModel).filter(TaskModel.account_id == account_id).delete()
        super().reset(account_id)
