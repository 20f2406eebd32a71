"""Recurrence Rule use cases"""
import logging
from datetime import date, datetime
from typing import Any, Mapping

from sqlalchemy.orm import Session
from sqlalchemy import func

from cadence.config import get_settings
from cadence.infrastructure.eventlog.repository import EventLogRepository
from cadence.infrastructure.db.models import RecurrenceRuleModel, TaskModel, EventLog
from cadence.domain.recurrence import RecurrenceRule, RecurrenceRuleValidationError, generate_sequence
from cadence.domain.recurrence_rule import (
    RULE_FIELDS,
    RecurrenceRuleEvents,
    rule_from_dict,
    rule_from_row,
    rule_to_dict,
)
from cadence.domain.task import Task
from cadence.readmodels.projectors.recurrence_rules import RecurrenceRulesProjector
from cadence.readmodels.projectors.tasks import TasksProjector

logger = logging.getLogger(__name__)


class RecurrenceRuleNotFoundError(LookupError):
    pass


def validate_rule(raw: Mapping[str, Any]) -> RecurrenceRule:
    """Strict variant of rule_from_dict for stored rules: a unit is required."""
    try:
        rule = rule_from_dict(raw)
        if rule is None:
            raise RecurrenceRuleValidationError(f"Unknown recurrence unit: {raw.get('unit')!r}")
    except RecurrenceRuleValidationError as exc:
        logger.info("Rejected recurrence rule %r: %s", dict(raw), exc)
        raise
    return rule


def get_rule(db: Session, account_id: int, rule_id: int) -> RecurrenceRuleModel:
    row = db.query(RecurrenceRuleModel).filter(
        RecurrenceRuleModel.rule_id == rule_id,
        RecurrenceRuleModel.account_id == account_id,
    ).first()
    if not row:
        raise RecurrenceRuleNotFoundError(f"Recurrence rule #{rule_id} not found")
    return row


def preview_occurrences(
    rule: RecurrenceRule | None,
    start: date | datetime,
    count: int,
) -> list[date | datetime]:
    """
    Upcoming occurrences for UI previews

    start counts as the first occurrence, so max_occurrences caps the preview
    the same way it caps completions. count is clipped to SEQUENCE_MAX_COUNT.
    """
    limit = min(max(count, 0), get_settings().SEQUENCE_MAX_COUNT)
    return generate_sequence(start, rule, limit, occurrence_count=1)


def preview_rule_occurrences(
    db: Session,
    account_id: int,
    rule_id: int,
    start: date | datetime,
    count: int,
) -> list[date | datetime]:
    row = get_rule(db, account_id, rule_id)
    return preview_occurrences(rule_from_row(row), start, count)


class CreateRecurrenceRuleUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(
        self,
        account_id: int,
        rule: Mapping[str, Any],
        actor_user_id: int | None = None,
    ) -> int:
        """
        Args:
            rule: Loose rule mapping (camelCase or snake_case keys)

        Returns:
            rule_id

        Raises:
            RecurrenceRuleValidationError: malformed rule or unknown unit
        """
        validated = validate_rule(rule)

        rule_id = self._generate_id()
        payload = RecurrenceRuleEvents.create(account_id, rule_id, validated)

        self.event_repo.append_event(
            account_id=account_id,
            event_type="recurrence_rule_created",
            payload=payload,
            actor_user_id=actor_user_id,
        )
        self.db.commit()

        RecurrenceRulesProjector(self.db).run(account_id, event_types=["recurrence_rule_created"])
        return rule_id

    def _generate_id(self) -> int:
        max_id = self.db.query(
            func.max(func.cast(EventLog.payload_json['rule_id'], RecurrenceRuleModel.rule_id.type))
        ).filter(EventLog.event_type == 'recurrence_rule_created').scalar() or 0
        return max_id + 1


class UpdateRecurrenceRuleUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(self, rule_id: int, account_id: int, actor_user_id: int | None = None, **changes) -> None:
        """
        Partial update; changes use snake_case field names from RULE_FIELDS.

        The merged rule (current values + changes) is validated as a whole.
        """
        row = get_rule(self.db, account_id, rule_id)

        unknown = set(changes) - set(RULE_FIELDS)
        if unknown:
            raise RecurrenceRuleValidationError(f"Unknown rule fields: {', '.join(sorted(unknown))}")
        if not changes:
            return

        merged = rule_to_dict(rule_from_row(row))
        merged.update(changes)
        validated = validate_rule(merged)

        payload = RecurrenceRuleEvents.update(rule_id, validated, tuple(changes))
        self.event_repo.append_event(
            account_id=account_id,
            event_type="recurrence_rule_updated",
            payload=payload,
            actor_user_id=actor_user_id,
        )
        self.db.commit()
        RecurrenceRulesProjector(self.db).run(account_id, event_types=["recurrence_rule_updated"])


class DeleteRecurrenceRuleUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventLogRepository(db)

    def execute(self, rule_id: int, account_id: int, actor_user_id: int | None = None) -> None:
        """Delete a rule; tasks using it become one-off tasks"""
        get_rule(self.db, account_id, rule_id)

        tasks = self.db.query(TaskModel).filter(
            TaskModel.account_id == account_id,
            TaskModel.recurrence_rule_id == rule_id,
        ).all()
        for task in tasks:
            self.event_repo.append_event(
                account_id=account_id,
                event_type="task_recurrence_detached",
                payload=Task.detach_recurrence(task.task_id),
                actor_user_id=actor_user_id,
            )

        self.event_repo.append_event(
            account_id=account_id,
            event_type="recurrence_rule_deleted",
            payload=RecurrenceRuleEvents.delete(rule_id),
            actor_user_id=actor_user_id,
        )
        self.db.commit()

        if tasks:
            TasksProjector(self.db).run(account_id, event_types=["task_recurrence_detached"])
        RecurrenceRulesProjector(self.db).run(account_id, event_types=["recurrence_rule_deleted"])
        logger.info("Recurrence rule #%s deleted, detached from %d task(s)", rule_id, len(tasks))
