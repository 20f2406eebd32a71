"""
Base Projector - read side of the event log

Projectors build read models from events. A per-account checkpoint makes
runs incremental and idempotent.
"""
from abc import ABC, abstractmethod
from typing import List, Optional
from sqlalchemy.orm import Session

from cadence.infrastructure.db.models import EventLog, ProjectorCheckpoint
from cadence.infrastructure.eventlog.repository import EventLogRepository


class BaseProjector(ABC):
    """
    Every projector:
    1. Reads events after its checkpoint
    2. Handles each event (handle_event)
    3. Updates its read model
    4. Saves the new checkpoint
    """

    def __init__(self, db: Session, projector_name: str):
        self.db = db
        self.projector_name = projector_name
        self.event_repo = EventLogRepository(db)

    @abstractmethod
    def handle_event(self, event: EventLog) -> None:
        """
        Apply one event to the read model.

        Must be idempotent: handling the same event twice leaves the same state.
        """

    def get_checkpoint(self, account_id: int) -> int:
        """Last processed event id (0 if the projector never ran)"""
        checkpoint = self.db.query(ProjectorCheckpoint).filter(
            ProjectorCheckpoint.projector_name == self.projector_name,
            ProjectorCheckpoint.account_id == account_id
        ).first()

        return checkpoint.last_event_id if checkpoint else 0

    def save_checkpoint(self, account_id: int, event_id: int) -> None:
        # Flush so the query below sees uncommitted rows
        self.db.flush()

        checkpoint = self.db.query(ProjectorCheckpoint).filter(
            ProjectorCheckpoint.projector_name == self.projector_name,
            ProjectorCheckpoint.account_id == account_id
        ).first()

        if checkpoint:
            checkpoint.last_event_id = event_id
        else:
            self.db.add(ProjectorCheckpoint(
                projector_name=self.projector_name,
                account_id=account_id,
                last_event_id=event_id
            ))

    def run(
        self,
        account_id: int,
        event_types: Optional[List[str]] = None,
        batch_size: int = 200
    ) -> int:
        """
        Process all new events for an account

        Args:
            account_id: Account id
            event_types: Event type filter (None = all events)
            batch_size: Events per batch

        Returns:
            Number of processed events

        Example:
            >>> count = TasksProjector(db).run(account_id=1)
        """
        checkpoint = self.get_checkpoint(account_id)
        processed_count = 0

        while True:
            events = self.event_repo.list_events_since(
                account_id=account_id,
                after_id=checkpoint,
                limit=batch_size,
                event_types=event_types
            )

            if not events:
                break

            for event in events:
                self.handle_event(event)
                checkpoint = event.id
                processed_count += 1

            self.save_checkpoint(account_id, checkpoint)
            self.db.commit()

            if len(events) < batch_size:
                break

        return processed_count

    def reset(self, account_id: int) -> None:
        """
        Rewind the checkpoint; subclasses also drop their read model rows.

        Warning:
            The next run rebuilds the read model from the whole log.
        """
        self.save_checkpoint(account_id, 0)


class ProjectorOrchestrator:
    """
    Runs registered projectors in registration order
    """

    def __init__(self, db: Session):
        self.db = db
        self.projectors: List[BaseProjector] = []

    def register(self, projector: BaseProjector) -> None:
        self.projectors.append(projector)

    def run_all(self, account_id: int) -> dict[str, int]:
        """
        Returns:
            {projector_name: processed_count}
        """
        results = {}

        for projector in self.projectors:
            results[projector.projector_name] = projector.run(account_id)

        return results

    def rebuild_all(self, account_id: int) -> dict[str, int]:
        """Reset every projector and replay the whole log"""
        for projector in self.projectors:
            projector.reset(account_id)
        self.db.commit()
        return self.run_all(account_id)
