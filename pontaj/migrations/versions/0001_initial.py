"""Initial workplaces, employees and leaves

Revision ID: 0001_initial
Revises:
Create Date: 2026-09-28 09:10:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

leave_type = postgresql.ENUM(
    "ODIHNA",
    "MEDICAL",
    "FARA_PLATA",
    "EVENIMENT",
    name="leave_type",
    create_type=False,
)

leave_status = postgresql.ENUM(
    "PENDING",
    "APPROVED",
    "REJECTED",
    name="leave_status",
    create_type=False,
)

audit_actor_type = postgresql.ENUM(
    "ADMIN",
    "SYSTEM",
    name="audit_actor_type",
    create_type=False,
)


def upgrade() -> None:
    bind = op.get_bind()
    leave_type.create(bind, checkfirst=True)
    leave_status.create(bind, checkfirst=True)
    audit_actor_type.create(bind, checkfirst=True)

    op.create_table(
        "workplaces",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.UniqueConstraint("name", name="uq_workplaces_name"),
    )

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("function", sa.String(length=120), nullable=True),
        sa.Column("workplace_id", sa.Integer(), nullable=True),
        sa.Column("monthly_target_hours", sa.Integer(), nullable=False, server_default=sa.text("160")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.ForeignKeyConstraint(["workplace_id"], ["workplaces.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_employees_full_name", "employees", ["full_name"], unique=False)
    op.create_index("ix_employees_workplace_id", "employees", ["workplace_id"], unique=False)

    op.create_table(
        "leaves",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("workplace_id", sa.Integer(), nullable=True),
        sa.Column("type", leave_type, nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("days", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("reason", sa.String(length=1000), nullable=True),
        sa.Column(
            "status",
            leave_status,
            nullable=False,
            server_default=sa.text("'PENDING'"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["workplace_id"], ["workplaces.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_leaves_employee_id", "leaves", ["employee_id"], unique=False)
    op.create_index("ix_leaves_workplace_id", "leaves", ["workplace_id"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("ts_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=120), nullable=False),
        sa.Column("entity_type", sa.String(length=80), nullable=True),
        sa.Column("entity_id", sa.String(length=120), nullable=True),
        sa.Column("ip", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_ts_utc", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_leaves_workplace_id", table_name="leaves")
    op.drop_index("ix_leaves_employee_id", table_name="leaves")
    op.drop_table("leaves")
    op.drop_index("ix_employees_workplace_id", table_name="employees")
    op.drop_index("ix_employees_full_name", table_name="employees")
    op.drop_table("employees")
    op.drop_table("workplaces")

    bind = op.get_bind()
    audit_actor_type.drop(bind, checkfirst=True)
    leave_status.drop(bind, checkfirst=True)
    leave_type.drop(bind, checkfirst=True)
