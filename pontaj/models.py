from __future__ import annotations

import enum
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pontaj.db import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


class TimesheetStatus(str, enum.Enum):
    NECOMPLETAT = "necompletat"
    PREZENT = "prezent"
    GARDA = "garda"
    CONCEDIU = "concediu"
    LIBER = "liber"
    MEDICAL = "medical"


WORK_STATUSES = frozenset({TimesheetStatus.PREZENT, TimesheetStatus.GARDA})
ABSENCE_STATUSES = frozenset({TimesheetStatus.CONCEDIU, TimesheetStatus.LIBER, TimesheetStatus.MEDICAL})


class EntryType(str, enum.Enum):
    HOME = "home"
    VISITOR = "visitor"


class LeaveType(str, enum.Enum):
    ODIHNA = "odihna"
    MEDICAL = "medical"
    FARA_PLATA = "fara_plata"
    EVENIMENT = "eveniment"


class LeaveStatus(str, enum.Enum):
    PENDING = "În așteptare"
    APPROVED = "Aprobată"
    REJECTED = "Respinsă"


class AuditActorType(str, enum.Enum):
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"


class Workplace(Base):
    __tablename__ = "workplaces"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    employees: Mapped[list[Employee]] = relationship(back_populates="workplace")


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    function: Mapped[str | None] = mapped_column(String(120), nullable=True)
    workplace_id: Mapped[int | None] = mapped_column(
        ForeignKey("workplaces.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    monthly_target_hours: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=160,
        server_default=text("160"),
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))

    workplace: Mapped[Workplace | None] = relationship(back_populates="employees")
    leaves: Mapped[list[Leave]] = relationship(back_populates="employee")
    timesheet_entries: Mapped[list[TimesheetEntry]] = relationship(back_populates="employee")


class Leave(Base):
    __tablename__ = "leaves"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    workplace_id: Mapped[int | None] = mapped_column(
        ForeignKey("workplaces.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    type: Mapped[LeaveType] = mapped_column(
        Enum(LeaveType, name="leave_type"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    days: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    status: Mapped[LeaveStatus] = mapped_column(
        Enum(LeaveStatus, name="leave_status"),
        nullable=False,
        default=LeaveStatus.PENDING,
        server_default=text("'PENDING'"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    employee: Mapped[Employee] = relationship(back_populates="leaves")


class TimesheetEntry(Base):
    __tablename__ = "timesheet_entries"
    __table_args__ = (
        UniqueConstraint(
            "employee_id",
            "day_date",
            "workplace_id",
            "entry_type",
            name="uq_timesheet_entries_key",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    workplace_id: Mapped[int] = mapped_column(
        ForeignKey("workplaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    workplace_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    day_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    entry_type: Mapped[EntryType] = mapped_column(
        Enum(EntryType, name="timesheet_entry_type"),
        nullable=False,
        default=EntryType.HOME,
    )
    status: Mapped[TimesheetStatus] = mapped_column(
        Enum(TimesheetStatus, name="timesheet_status"),
        nullable=False,
        default=TimesheetStatus.PREZENT,
    )
    start_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    end_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    minutes_worked: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    hours_worked: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    leave_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    notes: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    created_by: Mapped[str] = mapped_column(String(255), nullable=False, default="admin")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    employee: Mapped[Employee] = relationship(back_populates="timesheet_entries")


class MonthlySchedule(Base):
    __tablename__ = "monthly_schedules"
    __table_args__ = (
        UniqueConstraint("workplace_id", "year", "month", name="uq_monthly_schedules_workplace_month"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    workplace_id: Mapped[int] = mapped_column(
        ForeignKey("workplaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    schedule: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    actor_type: Mapped[AuditActorType] = mapped_column(
        Enum(AuditActorType, name="audit_actor_type"),
        nullable=False,
    )
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    entity_type: Mapped[str | None] = mapped_column(String(80), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(120), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
