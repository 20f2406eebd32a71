"""
SQLAlchemy ORM models (event log + read models)
"""
from datetime import date as date_type, time as time_type
from sqlalchemy import String, DateTime, Integer, Text, TIMESTAMP, Date, Time, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import JSONB

from cadence.infrastructure.db.session import Base


class EventLog(Base):
    """
    Event log - source of truth

    Every change is appended as an immutable event; read models are projections.
    """
    __tablename__ = "event_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    actor_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    event_type: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    payload_json: Mapped[dict] = mapped_column(JSONB, nullable=False)

    occurred_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        index=True
    )
    idempotency_key: Mapped[str | None] = mapped_column(
        String(255),
        unique=True,
        nullable=True
    )
    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )


# ============================================================================
# Read Models (projections built from events)
# ============================================================================


class ProjectorCheckpoint(Base):
    """
    Infrastructure: Track projector progress for idempotent event processing
    """
    __tablename__ = "projector_checkpoints"

    id: Mapped[int] = mapped_column(primary_key=True)
    projector_name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    last_event_id: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")

    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint('projector_name', 'account_id', name='uq_projector_account'),
    )


class RecurrenceRuleModel(Base):
    """Read model: Recurrence rules attached to tasks"""
    __tablename__ = "recurrence_rules"

    rule_id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    unit: Mapped[str] = mapped_column(String(16), nullable=False)  # minute/hour/day/week/month/quarter/halfyear/year
    interval: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    days_of_week: Mapped[str | None] = mapped_column(String(96), nullable=True)  # "monday,friday"
    # ISO date or date-time, kept as text so date-only end dates stay date-only
    end_date: Mapped[str | None] = mapped_column(String(40), nullable=True)
    max_occurrences: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # {"monthly_pattern": ..., "yearly_pattern": ..., "extended_pattern": ..., "adjustment": ...}
    patterns_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[DateTime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)


class TaskModel(Base):
    """Read model: Tasks (one-off or recurring via recurrence_rule_id)"""
    __tablename__ = "tasks"

    task_id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    due_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)
    due_time: Mapped[time_type | None] = mapped_column(Time, nullable=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False, server_default="ACTIVE")  # ACTIVE/DONE

    recurrence_rule_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)  # -> recurrence_rules
    # Occurrences produced so far under the attached rule (current one included)
    occurrence_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    completed_at: Mapped[DateTime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
