"""submission counters on notifications, SIA cases and schemes

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

COUNTERS = (
    ("land_notifications", "objection_count"),
    ("sia", "feedback_count"),
    ("schemes", "application_count"),
)


def upgrade() -> None:
    for table, column in COUNTERS:
        op.add_column(table, sa.Column(column, sa.Integer(), nullable=False, server_default="0"))


def downgrade() -> None:
    for table, column in COUNTERS:
        op.drop_column(table, column)
