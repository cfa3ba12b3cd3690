"""Add monthly schedules

Revision ID: 0003_monthly_schedules
Revises: 0002_timesheet_entries
Create Date: 2026-10-06 11:40:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0003_monthly_schedules"
down_revision: Union[str, None] = "0002_timesheet_entries"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "monthly_schedules",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("workplace_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("schedule", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["workplace_id"], ["workplaces.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("workplace_id", "year", "month", name="uq_monthly_schedules_workplace_month"),
    )
    op.create_index("ix_monthly_schedules_workplace_id", "monthly_schedules", ["workplace_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_monthly_schedules_workplace_id", table_name="monthly_schedules")
    op.drop_table("monthly_schedules")
