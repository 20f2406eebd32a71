"""
Tests for recurrence rule use cases (create/update/delete + previews)
"""
import pytest
from datetime import date

from cadence.application.recurrence_rules import (
    CreateRecurrenceRuleUseCase,
    DeleteRecurrenceRuleUseCase,
    RecurrenceRuleNotFoundError,
    UpdateRecurrenceRuleUseCase,
    preview_occurrences,
    preview_rule_occurrences,
)
from cadence.application.tasks_usecases import AttachRecurrenceUseCase, CreateTaskUseCase
from cadence.config import get_settings
from cadence.domain.recurrence import RecurrenceRuleValidationError
from cadence.domain.recurrence_rule import rule_from_dict, rule_from_row
from cadence.infrastructure.db.models import EventLog, RecurrenceRuleModel, TaskModel


def _rule_row(db, rule_id) -> RecurrenceRuleModel:
    return db.query(RecurrenceRuleModel).filter(RecurrenceRuleModel.rule_id == rule_id).first()


class TestCreateRecurrenceRule:
    def test_creates_rule_and_read_model(self, db_session, sample_account_id):
        rule_id = CreateRecurrenceRuleUseCase(db_session).execute(
            account_id=sample_account_id,
            rule={"unit": "week", "interval": 2, "daysOfWeek": ["monday", "thursday"]},
        )
        row = _rule_row(db_session, rule_id)
        assert row is not None
        assert row.unit == "week"
        assert row.interval == 2
        assert row.days_of_week == "monday,thursday"
        assert row.patterns_json is None

    def test_patterns_stored(self, db_session, sample_account_id):
        rule_id = CreateRecurrenceRuleUseCase(db_session).execute(
            account_id=sample_account_id,
            rule={"unit": "month", "monthlyPattern": {"weekOfMonth": "last", "dayOfWeek": "friday"}},
        )
        row = _rule_row(db_session, rule_id)
        assert row.patterns_json["monthly_pattern"]["week_of_month"] == 5
        assert row.patterns_json["monthly_pattern"]["day_of_week"] == "friday"

    def test_ids_increment(self, db_session, sample_account_id):
        uc = CreateRecurrenceRuleUseCase(db_session)
        first = uc.execute(account_id=sample_account_id, rule={"unit": "day"})
        second = uc.execute(account_id=sample_account_id, rule={"unit": "day"})
        assert second == first + 1

    def test_event_appended(self, db_session, sample_account_id):
        CreateRecurrenceRuleUseCase(db_session).execute(account_id=sample_account_id, rule={"unit": "year"})
        events = db_session.query(EventLog).filter(EventLog.event_type == "recurrence_rule_created").all()
        assert len(events) == 1
        assert events[0].payload_json["unit"] == "year"

    def test_unknown_unit_rejected(self, db_session, sample_account_id):
        with pytest.raises(RecurrenceRuleValidationError, match="Unknown recurrence unit"):
            CreateRecurrenceRuleUseCase(db_session).execute(account_id=sample_account_id, rule={"unit": "fortnight"})

    def test_zero_interval_rejected(self, db_session, sample_account_id):
        with pytest.raises(RecurrenceRuleValidationError):
            CreateRecurrenceRuleUseCase(db_session).execute(
                account_id=sample_account_id, rule={"unit": "day", "interval": 0},
            )
        assert db_session.query(EventLog).count() == 0


class TestUpdateRecurrenceRule:
    def test_partial_update(self, db_session, sample_account_id):
        rule_id = CreateRecurrenceRuleUseCase(db_session).execute(
            account_id=sample_account_id, rule={"unit": "week", "daysOfWeek": ["monday"]},
        )
        UpdateRecurrenceRuleUseCase(db_session).execute(
            rule_id=rule_id, account_id=sample_account_id, interval=3,
        )
        row = _rule_row(db_session, rule_id)
        assert row.interval == 3
        assert row.days_of_week == "monday"

    def test_update_pattern_and_clear_it(self, db_session, sample_account_id):
        rule_id = CreateRecurrenceRuleUseCase(db_session).execute(
            account_id=sample_account_id, rule={"unit": "month"},
        )
        uc = UpdateRecurrenceRuleUseCase(db_session)
        uc.execute(rule_id=rule_id, account_id=sample_account_id, monthly_pattern={"day_of_month": 31})
        assert _rule_row(db_session, rule_id).patterns_json["monthly_pattern"]["day_of_month"] == 31

        uc.execute(rule_id=rule_id, account_id=sample_account_id, monthly_pattern=None)
        assert _rule_row(db_session, rule_id).patterns_json is None

    def test_merged_rule_validated(self, db_session, sample_account_id):
        rule_id = CreateRecurrenceRuleUseCase(db_session).execute(
            account_id=sample_account_id, rule={"unit": "day"},
        )
        with pytest.raises(RecurrenceRuleValidationError):
            UpdateRecurrenceRuleUseCase(db_session).execute(
                rule_id=rule_id, account_id=sample_account_id, interval=-2,
            )
        assert _rule_row(db_session, rule_id).interval == 1

    def test_unknown_field_rejected(self, db_session, sample_account_id):
        rule_id = CreateRecurrenceRuleUseCase(db_session).execute(
            account_id=sample_account_id, rule={"unit": "day"},
        )
        with pytest.raises(RecurrenceRuleValidationError, match="Unknown rule fields"):
            UpdateRecurrenceRuleUseCase(db_session).execute(
                rule_id=rule_id, account_id=sample_account_id, colour="red",
            )

    def test_other_account_cannot_update(self, db_session, sample_account_id):
        rule_id = CreateRecurrenceRuleUseCase(db_session).execute(
            account_id=sample_account_id, rule={"unit": "day"},
        )
        with pytest.raises(RecurrenceRuleNotFoundError):
            UpdateRecurrenceRuleUseCase(db_session).execute(rule_id=rule_id, account_id=999, interval=2)


class TestDeleteRecurrenceRule:
    def test_delete_detaches_tasks(self, db_session, sample_account_id):
        rule_id = CreateRecurrenceRuleUseCase(db_session).execute(
            account_id=sample_account_id, rule={"unit": "day"},
        )
        task_id = CreateTaskUseCase(db_session).execute(
            account_id=sample_account_id, title="Water plants", due_date="2024-01-01",
        )
        AttachRecurrenceUseCase(db_session).execute(task_id=task_id, rule_id=rule_id, account_id=sample_account_id)

        DeleteRecurrenceRuleUseCase(db_session).execute(rule_id=rule_id, account_id=sample_account_id)

        assert _rule_row(db_session, rule_id) is None
        task = db_session.query(TaskModel).filter(TaskModel.task_id == task_id).first()
        assert task.recurrence_rule_id is None
        assert task.status == "ACTIVE"

    def test_delete_missing_rule(self, db_session, sample_account_id):
        with pytest.raises(RecurrenceRuleNotFoundError):
            DeleteRecurrenceRuleUseCase(db_session).execute(rule_id=42, account_id=sample_account_id)


class TestPreview:
    def test_preview_occurrences(self):
        rule = rule_from_dict({"unit": "day", "interval": 7})
        assert preview_occurrences(rule, date(2024, 1, 1), 3) == [
            date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22),
        ]

    def test_preview_counts_start_as_first_occurrence(self):
        rule = rule_from_dict({"unit": "day", "maxOccurrences": 3})
        assert preview_occurrences(rule, date(2024, 1, 1), 10) == [date(2024, 1, 2), date(2024, 1, 3)]

    def test_preview_capped_by_settings(self):
        rule = rule_from_dict({"unit": "day"})
        limit = get_settings().SEQUENCE_MAX_COUNT
        assert len(preview_occurrences(rule, date(2024, 1, 1), limit + 50)) == limit

    def test_preview_stored_rule(self, db_session, sample_account_id):
        rule_id = CreateRecurrenceRuleUseCase(db_session).execute(
            account_id=sample_account_id,
            rule={"unit": "month", "monthlyPattern": {"weekOfMonth": 2, "dayOfWeek": "sunday"}},
        )
        dates = preview_rule_occurrences(db_session, sample_account_id, rule_id, date(2024, 1, 15), 2)
        assert dates == [date(2024, 2, 11), date(2024, 3, 10)]

    def test_stored_rule_matches_input(self, db_session, sample_account_id):
        raw = {"unit": "year", "yearlyPattern": {"month": 11, "weekOfMonth": 4, "dayOfWeek": "thursday"}}
        rule_id = CreateRecurrenceRuleUseCase(db_session).execute(account_id=sample_account_id, rule=raw)
        stored = rule_from_row(_rule_row(db_session, rule_id))
        assert stored.yearly == rule_from_dict(raw).yearly
