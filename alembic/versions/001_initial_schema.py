"""initial land acquisition and allotment schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*names, nullable=True):
    return [sa.Column(name, sa.DateTime(timezone=True), nullable=nullable) for name in names]


def upgrade() -> None:
    op.create_table(
        "parcels",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("parcel_no", sa.String(64), nullable=False),
        sa.Column("village", sa.String(128), nullable=False),
        sa.Column("taluka", sa.String(128), nullable=False),
        sa.Column("district", sa.String(128), nullable=False),
        sa.Column("area_sq_m", sa.Numeric(15, 2), nullable=False),
        sa.Column("lat", sa.Numeric(10, 7), nullable=True),
        sa.Column("lng", sa.Numeric(10, 7), nullable=True),
        sa.Column("land_use", sa.String(64), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="unaffected"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        *_timestamps("updated_at"),
        sa.CheckConstraint("area_sq_m > 0", name="parcels_area_positive"),
        sa.CheckConstraint(
            "status IN ('unaffected', 'under_acq', 'awarded', 'possessed')",
            name="parcels_status_check",
        ),
    )
    op.create_index("ix_parcels_parcel_no", "parcels", ["parcel_no"], unique=True)
    op.create_index("ix_parcels_status", "parcels", ["status"])

    op.create_table(
        "owners",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("aadhaar", sa.String(16), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "parcel_owners",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("parcel_id", sa.Integer(), sa.ForeignKey("parcels.id", ondelete="CASCADE"), nullable=False),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("owners.id", ondelete="CASCADE"), nullable=False),
        sa.Column("share_pct", sa.Numeric(5, 2), nullable=False, server_default="100"),
        sa.UniqueConstraint("parcel_id", "owner_id", name="parcel_owners_unique"),
        sa.CheckConstraint("share_pct > 0 AND share_pct <= 100", name="parcel_owners_share_range"),
    )
    op.create_index("ix_parcel_owners_parcel_id", "parcel_owners", ["parcel_id"])
    op.create_index("ix_parcel_owners_owner_id", "parcel_owners", ["owner_id"])

    # SIA
    op.create_table(
        "sia",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("notice_no", sa.String(32), nullable=False, unique=True),
        sa.Column("title", sa.String(500), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="draft"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        *_timestamps("published_at", "closed_at"),
    )
    op.create_index("ix_sia_status", "sia", ["status"])

    op.create_table(
        "sia_hearings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sia_id", sa.Integer(), sa.ForeignKey("sia.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("venue", sa.String(500), nullable=False),
        sa.Column("agenda", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="scheduled"),
        sa.Column("minutes_ref", sa.String(1024), nullable=True),
        sa.Column("attendees", sa.JSON(), nullable=True),
        *_timestamps("completed_at"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_sia_hearings_sia_id", "sia_hearings", ["sia_id"])

    op.create_table(
        "sia_feedback",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sia_id", sa.Integer(), sa.ForeignKey("sia.id", ondelete="CASCADE"), nullable=False),
        sa.Column("citizen_name", sa.String(255), nullable=False),
        sa.Column("citizen_contact", sa.String(255), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("attachment_ref", sa.String(1024), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="received"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_sia_feedback_sia_id", "sia_feedback", ["sia_id"])

    op.create_table(
        "sia_reports",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sia_id", sa.Integer(), sa.ForeignKey("sia.id", ondelete="CASCADE"), nullable=False),
        sa.Column("summary", sa.JSON(), nullable=False),
        sa.Column("report_ref", sa.String(1024), nullable=True),
        sa.Column("generated_by", sa.String(255), nullable=True),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_sia_reports_sia_id", "sia_reports", ["sia_id"])

    # Notifications and objections
    op.create_table(
        "land_notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("type", sa.String(8), nullable=False),
        sa.Column("ref_no", sa.String(32), nullable=False, unique=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("body", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(32), nullable=False, server_default="draft"),
        sa.Column("sia_id", sa.Integer(), sa.ForeignKey("sia.id", ondelete="SET NULL"), nullable=True),
        *_timestamps("publish_date", "objection_window_opened_at", "objection_deadline", "closed_at"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_land_notifications_type", "land_notifications", ["type"])
    op.create_index("ix_land_notifications_status", "land_notifications", ["status"])

    op.create_table(
        "notification_parcels",
        sa.Column("notification_id", sa.Integer(),
                  sa.ForeignKey("land_notifications.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("parcel_id", sa.Integer(), sa.ForeignKey("parcels.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "objections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("notification_id", sa.Integer(),
                  sa.ForeignKey("land_notifications.id", ondelete="CASCADE"), nullable=False),
        sa.Column("parcel_id", sa.Integer(), sa.ForeignKey("parcels.id", ondelete="CASCADE"), nullable=False),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("owners.id", ondelete="SET NULL"), nullable=True),
        sa.Column("submitted_by_name", sa.String(255), nullable=False),
        sa.Column("submitted_by_phone", sa.String(32), nullable=False),
        sa.Column("submitted_by_email", sa.String(255), nullable=True),
        sa.Column("submitted_by_aadhaar", sa.String(16), nullable=True),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("attachments", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="submitted"),
        sa.Column("resolution_text", sa.Text(), nullable=True),
        sa.Column("resolved_by", sa.String(255), nullable=True),
        *_timestamps("resolved_at"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_objections_notification_id", "objections", ["notification_id"])
    op.create_index("ix_objections_parcel_id", "objections", ["parcel_id"])
    op.create_index("ix_objections_status", "objections", ["status"])

    # Compensation
    op.create_table(
        "valuations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("parcel_id", sa.Integer(), sa.ForeignKey("parcels.id", ondelete="CASCADE"), nullable=False),
        sa.Column("basis", sa.String(16), nullable=False),
        sa.Column("circle_rate", sa.Numeric(15, 2), nullable=False),
        sa.Column("area_sq_m", sa.Numeric(15, 2), nullable=False),
        sa.Column("multipliers", sa.JSON(), nullable=False),
        sa.Column("computed_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("justification_notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("circle_rate > 0", name="valuations_rate_positive"),
    )
    op.create_index("ix_valuations_parcel_id", "valuations", ["parcel_id"])
    op.create_index("ix_valuations_created_at", "valuations", ["created_at"])

    op.create_table(
        "awards",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("parcel_id", sa.Integer(), sa.ForeignKey("parcels.id", ondelete="CASCADE"), nullable=False),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("owners.id", ondelete="CASCADE"), nullable=False),
        sa.Column("valuation_id", sa.Integer(), sa.ForeignKey("valuations.id"), nullable=False),
        sa.Column("mode", sa.String(16), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("share_pct", sa.Numeric(5, 2), nullable=False, server_default="100"),
        sa.Column("award_no", sa.String(32), nullable=True, unique=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        sa.Column("payment_ref", sa.String(255), nullable=True),
        sa.Column("void_reason", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps("approved_at", "disbursed_at"),
    )
    op.create_index("ix_awards_parcel_id", "awards", ["parcel_id"])
    op.create_index("ix_awards_owner_id", "awards", ["owner_id"])
    op.create_index("ix_awards_status", "awards", ["status"])

    # Schemes and allotment
    op.create_table(
        "schemes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("eligibility", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        *_timestamps("application_deadline"),
        sa.Column("pool_revision", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        *_timestamps("published_at", "closed_at"),
    )
    op.create_index("ix_schemes_status", "schemes", ["status"])

    op.create_table(
        "parties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("party_type", sa.String(32), nullable=False, server_default="individual"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("annual_income", sa.Numeric(15, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "applications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("scheme_id", sa.Integer(), sa.ForeignKey("schemes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("party_id", sa.Integer(), sa.ForeignKey("parties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="submitted"),
        sa.Column("score", sa.Numeric(10, 2), nullable=True),
        sa.Column("draw_seq", sa.Integer(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("docs", sa.JSON(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        *_timestamps("verified_at"),
    )
    op.create_index("ix_applications_scheme_id", "applications", ["scheme_id"])
    op.create_index("ix_applications_party_id", "applications", ["party_id"])
    op.create_index("ix_applications_status", "applications", ["status"])

    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("property_no", sa.String(64), nullable=False, unique=True),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("area", sa.Numeric(15, 2), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="available"),
        sa.Column("allotted_scheme_id", sa.Integer(),
                  sa.ForeignKey("schemes.id", ondelete="SET NULL"), nullable=True),
        sa.Column("allotted_application_id", sa.Integer(),
                  sa.ForeignKey("applications.id", ondelete="SET NULL"), nullable=True),
        *_timestamps("allotted_at"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_properties_status", "properties", ["status"])

    op.create_table(
        "scheme_inventory",
        sa.Column("scheme_id", sa.Integer(), sa.ForeignKey("schemes.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("property_id", sa.Integer(),
                  sa.ForeignKey("properties.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "draws",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("scheme_id", sa.Integer(), sa.ForeignKey("schemes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("seed", sa.String(128), nullable=False),
        sa.Column("nonce", sa.String(64), nullable=False),
        sa.Column("input_digest", sa.String(64), nullable=False),
        sa.Column("application_ids", sa.JSON(), nullable=False),
        sa.Column("permutation", sa.JSON(), nullable=False),
        sa.Column("selected_count", sa.Integer(), nullable=False),
        sa.Column("audit_hash", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="completed"),
        sa.Column("conducted_by", sa.String(255), nullable=True),
        sa.Column("conducted_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps("voided_at"),
        sa.Column("void_reason", sa.Text(), nullable=True),
    )
    op.create_index("ix_draws_scheme_id", "draws", ["scheme_id"])

    op.create_table(
        "service_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("ref_no", sa.String(32), nullable=False, unique=True),
        sa.Column("request_type", sa.String(32), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="SET NULL"), nullable=True),
        sa.Column("party_id", sa.Integer(), sa.ForeignKey("parties.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="submitted"),
        sa.Column("assigned_to", sa.String(255), nullable=True),
        sa.Column("resolution", sa.Text(), nullable=True),
        sa.Column("sla_deadline", sa.DateTime(timezone=True), nullable=False),
        *_timestamps("resolved_at"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_service_requests_request_type", "service_requests", ["request_type"])
    op.create_index("ix_service_requests_status", "service_requests", ["status"])
    op.create_index("ix_service_requests_sla_deadline", "service_requests", ["sla_deadline"])

    # Shared infrastructure
    op.create_table(
        "sequences",
        sa.Column("name", sa.String(32), primary_key=True),
        sa.Column("value", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "workflow_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("entity_type", sa.String(32), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("from_status", sa.String(32), nullable=True),
        sa.Column("to_status", sa.String(32), nullable=True),
        sa.Column("actor_role", sa.String(64), nullable=True),
        sa.Column("actor_id", sa.String(255), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("event_data", sa.JSON(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_workflow_events_entity", "workflow_events", ["entity_type", "entity_id"])
    op.create_index("idx_workflow_events_occurred_at", "workflow_events", ["occurred_at"])


def downgrade() -> None:
    for table in (
        "workflow_events",
        "sequences",
        "service_requests",
        "draws",
        "scheme_inventory",
        "properties",
        "applications",
        "parties",
        "schemes",
        "awards",
        "valuations",
        "objections",
        "notification_parcels",
        "land_notifications",
        "sia_reports",
        "sia_feedback",
        "sia_hearings",
        "sia",
        "parcel_owners",
        "owners",
        "parcels",
    ):
        op.drop_table(table)
