"""add reminder_time to tasks

Revision ID: 8f2d4b6a1c35
Revises: 3a1c7e9d2b10
Create Date: 2025-01-14 21:05:37.918342

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8f2d4b6a1c35'
down_revision: Union[str, None] = '3a1c7e9d2b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.add_column('tasks', sa.Column('reminder_time', sa.DateTime(timezone=True), nullable=True))
    op.create_index('ix_tasks_reminder_due', 'tasks', ['status', 'reminder_time'])

def downgrade():
    op.drop_index('ix_tasks_reminder_due', table_name='tasks')
    op.drop_column('tasks', 'reminder_time')
