"""create waitlist tables

Revision ID: 20261018_0900
Revises: 
Create Date: 2026-10-18 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261018_0900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "restaurants",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("timezone", sa.String(length=50), nullable=False),
        sa.Column("current_wait_status", sa.String(length=20), nullable=False),
        sa.Column("custom_wait_time", sa.Integer(), nullable=False),
        sa.Column("config", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "table_types",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("restaurant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("estimated_turnover_time", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"]),
    )
    op.create_index("ix_table_types_restaurant_id", "table_types", ["restaurant_id"])

    op.create_table(
        "waitlist_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("restaurant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("customer_name", sa.String(length=100), nullable=False),
        sa.Column("party_size", sa.Integer(), nullable=False),
        sa.Column("phone_number", sa.String(length=30), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("dietary_requirements", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("queue_position", sa.Integer(), nullable=False),
        sa.Column("estimated_wait_time", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("table_type_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("is_remote", sa.Boolean(), nullable=False),
        sa.Column("expected_arrival_time", sa.DateTime(), nullable=True),
        sa.Column("confirmation_code", sa.String(length=12), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("notified_at", sa.DateTime(), nullable=True),
        sa.Column("seated_at", sa.DateTime(), nullable=True),
        sa.Column("arrived_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"]),
        sa.ForeignKeyConstraint(["table_type_id"], ["table_types.id"]),
        sa.UniqueConstraint(
            "restaurant_id",
            "queue_position",
            name="uq_restaurant_queue_position",
        ),
    )
    op.create_index("ix_waitlist_entries_restaurant_id", "waitlist_entries", ["restaurant_id"])
    op.create_index("ix_waitlist_entries_status", "waitlist_entries", ["status"])

    op.create_table(
        "hourly_analytics",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("restaurant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("hour", sa.Integer(), nullable=False),
        sa.Column("customers", sa.Integer(), nullable=False),
        sa.Column("parties_seated", sa.Integer(), nullable=False),
        sa.Column("average_wait_time", sa.Integer(), nullable=False),
        sa.Column("average_party_size", sa.Numeric(precision=4, scale=2), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"]),
        sa.UniqueConstraint(
            "restaurant_id",
            "date",
            "hour",
            name="uq_restaurant_date_hour",
        ),
    )
    op.create_index("ix_hourly_analytics_restaurant_id", "hourly_analytics", ["restaurant_id"])


def downgrade() -> None:
    op.drop_index("ix_hourly_analytics_restaurant_id", table_name="hourly_analytics")
    op.drop_table("hourly_analytics")
    op.drop_index("ix_waitlist_entries_status", table_name="waitlist_entries")
    op.drop_index("ix_waitlist_entries_restaurant_id", table_name="waitlist_entries")
    op.drop_table("waitlist_entries")
    op.drop_index("ix_table_types_restaurant_id", table_name="table_types")
    op.drop_table("table_types")
    op.drop_table("restaurants")
