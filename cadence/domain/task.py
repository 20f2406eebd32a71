"""Task domain entity - generates events for task and task recurrence operations"""
from datetime import date, datetime, time
from typing import Dict, Any


def split_due(value: date | datetime | None) -> tuple[str | None, str | None]:
    """(due_date, due_time) ISO strings; due_time is None for date-only values."""
    if value is None:
        return None, None
    if isinstance(value, datetime):
        return value.date().isoformat(), value.time().replace(tzinfo=None).isoformat()
    return value.isoformat(), None


def combine_due(due_date: date | None, due_time: time | None) -> date | datetime | None:
    if due_date is None:
        return None
    if due_time is None:
        return due_date
    return datetime.combine(due_date, due_time)


class Task:
    @staticmethod
    def create(
        account_id: int,
        task_id: int,
        title: str,
        note: str | None = None,
        due_date: str | None = None,
        due_time: str | None = None,
    ) -> Dict[str, Any]:
        return {
            "task_id": task_id,
            "account_id": account_id,
            "title": title,
            "note": note,
            "due_date": due_date,
            "due_time": due_time,
            "created_at": datetime.utcnow().isoformat(),
        }

    @staticmethod
    def attach_recurrence(task_id: int, rule_id: int) -> Dict[str, Any]:
        return {
            "task_id": task_id,
            "rule_id": rule_id,
            "attached_at": datetime.utcnow().isoformat(),
        }

    @staticmethod
    def detach_recurrence(task_id: int) -> Dict[str, Any]:
        return {"task_id": task_id, "detached_at": datetime.utcnow().isoformat()}

    @staticmethod
    def complete(task_id: int) -> Dict[str, Any]:
        return {"task_id": task_id, "completed_at": datetime.utcnow().isoformat()}

    @staticmethod
    def reschedule(task_id: int, next_due: date | datetime, occurrence_count: int) -> Dict[str, Any]:
        """Recurring task completed: stays active with the next due date."""
        due_date, due_time = split_due(next_due)
        return {
            "task_id": task_id,
            "due_date": due_date,
            "due_time": due_time,
            "occurrence_count": occurrence_count,
            "rescheduled_at": datetime.utcnow().isoformat(),
        }

    @staticmethod
    def end_recurrence(task_id: int, rule_id: int | None) -> Dict[str, Any]:
        return {
            "task_id": task_id,
            "rule_id": rule_id,
            "ended_at": datetime.utcnow().isoformat(),
        }
