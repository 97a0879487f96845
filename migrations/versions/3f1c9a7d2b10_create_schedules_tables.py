"""Create schedules and schedule_runs

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'schedules',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('model', sa.String(), nullable=False),
        sa.Column('frequency_text', sa.String(), nullable=False),
        sa.Column('cron', sa.String(), nullable=False),
        sa.Column('timezone', sa.String(), nullable=True),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.Column('last_run_at', sa.DateTime(), nullable=True),
        sa.Column('next_run_at', sa.DateTime(), nullable=True),
        sa.Column('last_status', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_schedules_enabled', 'schedules', ['enabled'])

    op.create_table(
        'schedule_runs',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('schedule_id', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('finished_at', sa.DateTime(), nullable=True),
        sa.Column('output', sa.Text(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('conversation_id', sa.String(), nullable=True),
        sa.ForeignKeyConstraint(['schedule_id'], ['schedules.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_schedule_runs_schedule_id', 'schedule_runs', ['schedule_id'])
    op.create_index('ix_schedule_runs_status', 'schedule_runs', ['status'])
    op.create_index('ix_schedule_runs_schedule_started', 'schedule_runs', ['schedule_id', 'started_at'])


def downgrade() -> None:
    op.drop_index('ix_schedule_runs_schedule_started', table_name='schedule_runs')
    op.drop_index('ix_schedule_runs_status', table_name='schedule_runs')
    op.drop_index('ix_schedule_runs_schedule_id', table_name='schedule_runs')
    op.drop_table('schedule_runs')
    op.drop_index('ix_schedules_enabled', table_name='schedules')
    op.drop_table('schedules')
