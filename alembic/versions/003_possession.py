"""possession proceedings and site evidence

Revision ID: 003
Revises: 002
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '003'
down_revision: Union[str, None] = '002'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "possessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("parcel_id", sa.Integer(), sa.ForeignKey("parcels.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="scheduled"),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("certificate_ref", sa.String(1024), nullable=True),
        sa.Column("certificate_hash", sa.String(64), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_possessions_parcel_id", "possessions", ["parcel_id"])
    op.create_index("ix_possessions_status", "possessions", ["status"])

    op.create_table(
        "possession_evidence",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("possession_id", sa.Integer(), sa.ForeignKey("possessions.id", ondelete="CASCADE"),
                  nullable=False),
        sa.Column("photo_ref", sa.String(1024), nullable=False),
        sa.Column("lat", sa.Numeric(10, 7), nullable=False),
        sa.Column("lng", sa.Numeric(10, 7), nullable=False),
        sa.Column("sha256", sa.String(64), nullable=False),
        sa.Column("gps_source", sa.String(16), nullable=False, server_default="manual"),
        sa.Column("captured_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_possession_evidence_possession_id", "possession_evidence", ["possession_id"])


def downgrade() -> None:
    op.drop_table("possession_evidence")
    op.drop_table("possessions")
