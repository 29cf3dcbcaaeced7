"""Initial schema: person, session catalog, bookings with credits and attendance.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "person",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(255), nullable=True),
        sa.Column("roles", sa.String(255), nullable=False, server_default=""),
        sa.Column("credits", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("credits >= 0", name="check_person_credits_non_negative"),
    )
    op.create_index("ix_person_email", "person", ["email"], unique=True)

    op.create_table(
        "session_type",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("requires_trainer", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )

    op.create_table(
        "location",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("address", sa.String(1023), nullable=True),
    )

    op.create_table(
        "session",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("datetime", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_mins", sa.Integer(), nullable=False),
        sa.Column("session_type_id", sa.Integer(), sa.ForeignKey("session_type.id"), nullable=False),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("location.id"), nullable=True),
        sa.Column("trainer_id", sa.BigInteger(), sa.ForeignKey("person.id"), nullable=True),
        sa.Column("max_booking_count", sa.Integer(), nullable=True),
        sa.Column("cost", sa.SmallInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("notes", sa.String(1023), nullable=True),
        sa.CheckConstraint("cost >= 0", name="check_session_cost_non_negative"),
        sa.CheckConstraint(
            "max_booking_count IS NULL OR max_booking_count >= 0",
            name="check_session_max_booking_count_non_negative",
        ),
    )
    # Weekly allowance checks and listing filters scan sessions by time
    op.create_index("ix_session_datetime", "session", ["datetime"])

    op.create_table(
        "booking",
        sa.Column("person_id", sa.BigInteger(), sa.ForeignKey("person.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("session_id", sa.BigInteger(), sa.ForeignKey("session.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("credits_used", sa.Integer(), nullable=True),
        sa.Column("attended", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "credits_used IS NULL OR credits_used >= 0",
            name="check_booking_credits_used_non_negative",
        ),
    )
    # The capacity check counts bookings per session
    op.create_index("ix_booking_session_id", "booking", ["session_id"])


def downgrade() -> None:
    op.drop_table("booking")
    op.drop_table("session")
    op.drop_table("location")
    op.drop_table("session_type")
    op.drop_table("person")
