"""Create growth tables

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    """Create tenant, acquisition source, payment and stats tables."""

    # Create businesses table
    op.create_table(
        "businesses",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        sa.Column("locale", sa.String(10), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )

    # Create landing_pages table
    op.create_table(
        "landing_pages",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("business_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("total_views", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_conversions", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_viewed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("business_id", "slug", name="uq_landing_pages_business_slug"),
    )
    op.create_index("ix_landing_pages_business_id", "landing_pages", ["business_id"])
    op.create_index("ix_landing_pages_slug", "landing_pages", ["slug"])

    # Create landing_page_visits table
    op.create_table(
        "landing_page_visits",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("landing_page_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("business_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("visitor_hash", sa.String(64), nullable=False),
        sa.Column("visited_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["landing_page_id"], ["landing_pages.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_landing_page_visits_page_time", "landing_page_visits", ["landing_page_id", "visited_at"])
    op.create_index("ix_landing_page_visits_visited_at", "landing_page_visits", ["visited_at"])

    # Create conversion_events table
    op.create_table(
        "conversion_events",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("business_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("source_type", sa.String(30), nullable=False),
        sa.Column("source_key", sa.String(300), nullable=False),
        sa.Column("landing_page_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("tracking", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["landing_page_id"], ["landing_pages.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_conversion_events_business_time", "conversion_events", ["business_id", "created_at"])
    op.create_index("ix_conversion_events_page_time", "conversion_events", ["landing_page_id", "created_at"])

    # Create events table
    op.create_table(
        "events",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("business_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_events_business_id", "events", ["business_id"])

    # Create event_registrations table
    op.create_table(
        "event_registrations",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("event_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("business_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="registered"),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_event_registrations_event_time", "event_registrations", ["event_id", "registered_at"])

    # Create appointments table
    op.create_table(
        "appointments",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("business_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("service_type", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("appointment_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_appointments_business_id", "appointments", ["business_id"])
    op.create_index("ix_appointments_business_created", "appointments", ["business_id", "created_at"])

    # Create payments table
    op.create_table(
        "payments",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("business_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="ILS"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("source_type", sa.String(30), nullable=True),
        sa.Column("landing_page_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("event_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["landing_page_id"], ["landing_pages.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_payments_business_id", "payments", ["business_id"])
    op.create_index("ix_payments_business_status_created", "payments", ["business_id", "status", "created_at"])
    op.create_index("ix_payments_landing_page", "payments", ["landing_page_id"])
    op.create_index("ix_payments_event", "payments", ["event_id"])

    # Create acquisition_source_stats table
    op.create_table(
        "acquisition_source_stats",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("business_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("source_key", sa.String(300), nullable=False),
        sa.Column("source_type", sa.String(30), nullable=False),
        sa.Column("period", sa.String(10), nullable=False, server_default="day"),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("stats_date", sa.Date(), nullable=False),
        sa.Column("views", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("leads", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("appointments", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("registrations", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("payments", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("revenue", sa.Float(), nullable=False, server_default=sa.text("0.0")),
        sa.Column("views_to_leads", sa.Float(), nullable=False, server_default=sa.text("0.0")),
        sa.Column("leads_to_bookings", sa.Float(), nullable=False, server_default=sa.text("0.0")),
        sa.Column("bookings_to_payments", sa.Float(), nullable=False, server_default=sa.text("0.0")),
        sa.Column("overall_conversion", sa.Float(), nullable=False, server_default=sa.text("0.0")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "business_id",
            "source_key",
            "period",
            "period_start",
            name="uq_acquisition_stats_business_source_period_start",
        ),
    )
    op.create_index("ix_acquisition_stats_business_date", "acquisition_source_stats", ["business_id", "stats_date"])
    op.create_index(
        "ix_acquisition_stats_business_type_date",
        "acquisition_source_stats",
        ["business_id", "source_type", "stats_date"],
    )


def downgrade() -> None:
    """Drop growth tables."""
    op.drop_table("acquisition_source_stats")
    op.drop_table("payments")
    op.drop_table("appointments")
    op.drop_table("event_registrations")
    op.drop_table("events")
    op.drop_table("conversion_events")
    op.drop_table("landing_page_visits")
    op.drop_table("landing_pages")
    op.drop_table("businesses")
