"""Add timesheet entries

Revision ID: 0002_timesheet_entries
Revises: 0001_initial
Create Date: 2026-09-29 14:25:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0002_timesheet_entries"
down_revision: Union[str, None] = "0001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

timesheet_status = postgresql.ENUM(
    "NECOMPLETAT",
    "PREZENT",
    "GARDA",
    "CONCEDIU",
    "LIBER",
    "MEDICAL",
    name="timesheet_status",
    create_type=False,
)

timesheet_entry_type = postgresql.ENUM(
    "HOME",
    "VISITOR",
    name="timesheet_entry_type",
    create_type=False,
)


def upgrade() -> None:
    bind = op.get_bind()
    timesheet_status.create(bind, checkfirst=True)
    timesheet_entry_type.create(bind, checkfirst=True)

    op.create_table(
        "timesheet_entries",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("workplace_id", sa.Integer(), nullable=False),
        sa.Column("workplace_name", sa.String(length=255), nullable=False, server_default=sa.text("''")),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("entry_type", timesheet_entry_type, nullable=False),
        sa.Column("status", timesheet_status, nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=True),
        sa.Column("end_time", sa.String(length=5), nullable=True),
        sa.Column("minutes_worked", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("hours_worked", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("leave_type", sa.String(length=30), nullable=True),
        sa.Column("notes", sa.String(length=1000), nullable=False, server_default=sa.text("''")),
        sa.Column("created_by", sa.String(length=255), nullable=False, server_default=sa.text("'admin'")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["workplace_id"], ["workplaces.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "employee_id",
            "day_date",
            "workplace_id",
            "entry_type",
            name="uq_timesheet_entries_key",
        ),
    )
    op.create_index("ix_timesheet_entries_employee_id", "timesheet_entries", ["employee_id"], unique=False)
    op.create_index("ix_timesheet_entries_workplace_id", "timesheet_entries", ["workplace_id"], unique=False)
    op.create_index("ix_timesheet_entries_day_date", "timesheet_entries", ["day_date"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_timesheet_entries_day_date", table_name="timesheet_entries")
    op.drop_index("ix_timesheet_entries_workplace_id", table_name="timesheet_entries")
    op.drop_index("ix_timesheet_entries_employee_id", table_name="timesheet_entries")
    op.drop_table("timesheet_entries")

    bind = op.get_bind()
    timesheet_entry_type.drop(bind, checkfirst=True)
    timesheet_status.drop(bind, checkfirst=True)
