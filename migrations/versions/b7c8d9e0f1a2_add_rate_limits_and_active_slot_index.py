"""add rate_limits table and unique index on active booking slots

Revision ID: b7c8d9e0f1a2
Revises: a1b2c3d4e5f6
Create Date: 2026-01-15 16:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "b7c8d9e0f1a2"
down_revision = "a1b2c3d4e5f6"
branch_labels = None
depends_on = None

ACTIVE_ONLY = sa.text("status != 'cancelled'")


def upgrade():
    # Two concurrent inserts for one (date, time) cannot both commit
    op.create_index(
        "uq_booking_active_slot",
        "bookings",
        ["booking_date", "booking_time"],
        unique=True,
        sqlite_where=ACTIVE_ONLY,
        postgresql_where=ACTIVE_ONLY,
    )

    op.create_table(
        "rate_limits",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("identifier", sa.String(length=255), nullable=False),
        sa.Column("action_type", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_rate_limits_lookup",
        "rate_limits",
        ["identifier", "action_type", "created_at"],
        unique=False,
    )


def downgrade():
    op.drop_index("ix_rate_limits_lookup", table_name="rate_limits")
    op.drop_table("rate_limits")
    op.drop_index("uq_booking_active_slot", table_name="bookings")
