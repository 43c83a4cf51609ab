"""create held slots

Revision ID: 20261019_04
Revises: 20261019_03
Create Date: 2026-10-19 09:30:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261019_04"
down_revision: str | None = "20261019_03"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "held_slots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("consultant_id", sa.Integer(), nullable=False),
        sa.Column("holder_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["consultant_id"], ["consultant_profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["holder_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_held_slots_id"), "held_slots", ["id"], unique=False)
    op.create_index(op.f("ix_held_slots_consultant_id"), "held_slots", ["consultant_id"], unique=False)
    op.create_index(op.f("ix_held_slots_holder_id"), "held_slots", ["holder_id"], unique=False)
    op.create_index(op.f("ix_held_slots_expires_at"), "held_slots", ["expires_at"], unique=False)
    op.create_index("ix_held_slots_consultant_date", "held_slots", ["consultant_id", "date"], unique=False)
    op.create_index("uq_held_slots_slot", "held_slots", ["consultant_id", "date", "start_time"], unique=True)


def downgrade() -> None:
    op.drop_index("uq_held_slots_slot", table_name="held_slots")
    op.drop_index("ix_held_slots_consultant_date", table_name="held_slots")
    op.drop_index(op.f("ix_held_slots_expires_at"), table_name="held_slots")
    op.drop_index(op.f("ix_held_slots_holder_id"), table_name="held_slots")
    op.drop_index(op.f("ix_held_slots_consultant_id"), table_name="held_slots")
    op.drop_index(op.f("ix_held_slots_id"), table_name="held_slots")
    op.drop_table("held_slots")
