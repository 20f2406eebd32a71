"""RecurrenceRulesProjector - builds recurrence_rules read model from events"""
from datetime import datetime
from cadence.readmodels.projectors.base import BaseProjector
from cadence.infrastructure.db.models import RecurrenceRuleModel, EventLog

PATTERN_KEYS = ("monthly_pattern", "yearly_pattern", "extended_pattern", "adjustment")


def _days_column(days) -> str | None:
    return ",".join(days) if days else None


class RecurrenceRulesProjector(BaseProjector):
    def __init__(self, db):
        super().__init__(db, projector_name="recurrence_rules")

    def handle_event(self, event: EventLog) -> None:
        if event.event_type == "recurrence_rule_created":
            self._handle_created(event)
        elif event.event_type == "recurrence_rule_updated":
            self._handle_updated(event)
        elif event.event_type == "recurrence_rule_deleted":
            self._handle_deleted(event)

    def _handle_created(self, event: EventLog) -> None:
        payload = event.payload_json
        self.db.flush()
        existing = self.db.query(RecurrenceRuleModel).filter(
            RecurrenceRuleModel.rule_id == payload["rule_id"]
        ).first()
        if existing:
            return
        patterns = {key: payload.get(key) for key in PATTERN_KEYS if payload.get(key) is not None}
        rule = RecurrenceRuleModel(
            rule_id=payload["rule_id"],
            account_id=payload["account_id"],
            unit=payload["unit"],
            interval=payload.get("interval", 1),
            days_of_week=_days_column(payload.get("days_of_week")),
            end_date=payload.get("end_date"),
            max_occurrences=payload.get("max_occurrences"),
            patterns_json=patterns or None,
            created_at=datetime.fromisoformat(payload["created_at"]),
        )
        self.db.add(rule)
        self.db.flush()

    def _handle_updated(self, event: EventLog) -> None:
        payload = event.payload_json
        rule = self.db.query(RecurrenceRuleModel).filter(
            RecurrenceRuleModel.rule_id == payload["rule_id"]
        ).first()
        if not rule:
            return
        for key in ("unit", "interval", "end_date", "max_occurrences"):
            if key in payload:
                setattr(rule, key, payload[key])
        if "days_of_week" in payload:
            rule.days_of_week = _days_column(payload["days_of_week"])

        # JSON column: assign a new dict so the change is tracked
        patterns = dict(rule.patterns_json or {})
        for key in PATTERN_KEYS:
            if key in payload:
                if payload[key] is None:
                    patterns.pop(key, None)
                else:
                    patterns[key] = payload[key]
        rule.patterns_json = patterns or None

        if payload.get("updated_at"):
            rule.updated_at = datetime.fromisoformat(payload["updated_at"])

    def _handle_deleted(self, event: EventLog) -> None:
        self.db.query(RecurrenceRuleModel).filter(
            RecurrenceRuleModel.rule_id == event.payload_json["rule_id"]
        ).delete(synchronize_session=False)

    def reset(self, account_id: int) -> None:
        self.db.query(RecurrenceRuleModel).filter(RecurrenceRuleModel.account_id == account_id).delete()
        super().reset(account_id)
