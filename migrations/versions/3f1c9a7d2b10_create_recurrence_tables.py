"""create event log, checkpoints, recurrence rules and tasks

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # 1. event_log
    op.create_table(
        'event_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(length=128), nullable=False),
        sa.Column('payload_json', JSONB, nullable=False),
        sa.Column('occurred_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('idempotency_key', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_event_log_account_id', 'event_log', ['account_id'])
    op.create_index('ix_event_log_event_type', 'event_log', ['event_type'])
    op.create_index('ix_event_log_occurred_at', 'event_log', ['occurred_at'])
    op.create_index('ix_event_log_idempotency_key', 'event_log', ['idempotency_key'], unique=True)

    # 2. projector_checkpoints
    op.create_table(
        'projector_checkpoints',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('projector_name', sa.String(length=128), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('last_event_id', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('projector_name', 'account_id', name='uq_projector_account')
    )
    op.create_index('ix_projector_checkpoints_projector_name', 'projector_checkpoints', ['projector_name'])
    op.create_index('ix_projector_checkpoints_account_id', 'projector_checkpoints', ['account_id'])

    # 3. recurrence_rules
    op.create_table(
        'recurrence_rules',
        sa.Column('rule_id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('interval', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('days_of_week', sa.String(length=96), nullable=True),
        sa.Column('end_date', sa.String(length=40), nullable=True),
        sa.Column('max_occurrences', sa.Integer(), nullable=True),
        sa.Column('patterns_json', JSONB, nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('rule_id')
    )
    op.create_index('ix_recurrence_rules_account_id', 'recurrence_rules', ['account_id'])

    # 4. tasks
    op.create_table(
        'tasks',
        sa.Column('task_id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('due_time', sa.Time(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='ACTIVE'),
        sa.Column('recurrence_rule_id', sa.Integer(), nullable=True),
        sa.Column('occurrence_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('task_id')
    )
    op.create_index('ix_tasks_account_id', 'tasks', ['account_id'])
    op.create_index('ix_tasks_recurrence_rule_id', 'tasks', ['recurrence_rule_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_tasks_recurrence_rule_id', table_name='tasks')
    op.drop_index('ix_tasks_account_id', table_name='tasks')
    op.drop_table('tasks')
    op.drop_index('ix_recurrence_rules_account_id', table_name='recurrence_rules')
    op.drop_table('recurrence_rules')
    op.drop_index('ix_projector_checkpoints_account_id', table_name='projector_checkpoints')
    op.drop_index('ix_projector_checkpoints_projector_name', table_name='projector_checkpoints')
    op.drop_table('projector_checkpoints')
    op.drop_index('ix_event_log_idempotency_key', table_name='event_log')
    op.drop_index('ix_event_log_occurred_at', table_name='event_log')
    op.drop_index('ix_event_log_event_type', table_name='event_log')
    op.drop_index('ix_event_log_account_id', table_name='event_log')
    op.drop_table('event_log')
