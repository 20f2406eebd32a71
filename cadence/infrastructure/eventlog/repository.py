"""
Event Log Repository - append-only source of truth

Use cases append events here; projectors read them back in id order.
"""
from datetime import datetime
from typing import Optional, Dict, Any, List
from sqlalchemy.orm import Session

from cadence.infrastructure.db.models import EventLog


class EventLogRepository:

    def __init__(self, db: Session):
        self.db = db

    def append_event(
        self,
        account_id: int,
        event_type: str,
        payload: Dict[str, Any],
        occurred_at: Optional[datetime] = None,
        actor_user_id: Optional[int] = None,
        idempotency_key: Optional[str] = None,
    ) -> int:
        """
        Append an event to the log

        Args:
            account_id: Account the event belongs to
            event_type: Event type (e.g. "recurrence_rule_created")
            payload: Event data (stored as JSONB)
            occurred_at: When it happened (default: now)
            actor_user_id: Who did it (optional)
            idempotency_key: Deduplication key (optional)

        Returns:
            event_id of the new event

        Raises:
            IntegrityError: idempotency_key already used

        Example:
            >>> repo = EventLogRepository(db)
            >>> event_id = repo.append_event(
            ...     account_id=1,
            ...     event_type="task_rescheduled",
            ...     payload={"task_id": 7, "due_date": "2024-01-08", "due_time": None},
            ... )
        """
        if occurred_at is None:
            occurred_at = datetime.utcnow()

        event = EventLog(
            account_id=account_id,
            actor_user_id=actor_user_id,
            event_type=event_type,
            payload_json=payload,
            occurred_at=occurred_at,
            idempotency_key=idempotency_key,
        )

        self.db.add(event)
        self.db.flush()  # assigns the id without committing

        return event.id

    def list_events_since(
        self,
        account_id: int,
        after_id: int = 0,
        limit: int = 200,
        event_types: Optional[List[str]] = None,
    ) -> List[EventLog]:
        """
        Events with id > after_id, ascending (projector checkpoint reads)

        Args:
            account_id: Account filter
            after_id: Projector checkpoint
            limit: Batch size
            event_types: Optional event type filter
        """
        query = (
            self.db.query(EventLog)
            .filter(
                EventLog.account_id == account_id,
                EventLog.id > after_id
            )
        )

        if event_types:
            query = query.filter(EventLog.event_type.in_(event_types))

        return query.order_by(EventLog.id.asc()).limit(limit).all()
