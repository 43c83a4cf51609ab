"""create consultant profiles and availability

Revision ID: 20261019_02
Revises: 20261019_01
Create Date: 2026-10-19 09:10:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261019_02"
down_revision: str | None = "20261019_01"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "consultant_profiles",
        sa.Column("id", sa.Integer(), sa.Identity(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("display_name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id"),
    )
    op.create_index("ix_consultant_profiles_id", "consultant_profiles", ["id"], unique=False)

    op.create_table(
        "consultant_availability",
        sa.Column("id", sa.Integer(), sa.Identity(), primary_key=True, nullable=False),
        sa.Column("consultant_id", sa.Integer(), nullable=False),
        sa.Column("working_hours", sa.JSON(), nullable=False),
        sa.Column("default_duration_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("buffer_minutes", sa.Integer(), nullable=False, server_default="15"),
        sa.Column("max_sessions_per_day", sa.Integer(), nullable=False, server_default="8"),
        sa.Column("time_off", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["consultant_id"], ["consultant_profiles.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("consultant_id"),
    )
    op.create_index("ix_consultant_availability_id", "consultant_availability", ["id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_consultant_availability_id", table_name="consultant_availability")
    op.drop_table("consultant_availability")
    op.drop_index("ix_consultant_profiles_id", table_name="consultant_profiles")
    op.drop_table("consultant_profiles")
