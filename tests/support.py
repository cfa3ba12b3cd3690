from __future__ import annotations

from collections.abc import Generator
from datetime import date

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import pontaj.models  # noqa: F401
from pontaj.db import Base
from pontaj.models import Employee, Leave, LeaveStatus, LeaveType, Workplace
from pontaj.schemas import TimesheetEntryPayload


def make_session() -> Session:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return factory()


def override_get_db(db: Session):
    def _override() -> Generator[Session, None, None]:
        yield db

    return _override


def add_workplace(db: Session, name: str) -> Workplace:
    workplace = Workplace(name=name, is_active=True)
    db.add(workplace)
    db.commit()
    return workplace


def add_employee(
    db: Session,
    full_name: str,
    workplace: Workplace | None,
    *,
    is_active: bool = True,
    monthly_target_hours: int = 160,
) -> Employee:
    employee = Employee(
        full_name=full_name,
        function="Farmacist",
        workplace_id=workplace.id if workplace is not None else None,
        monthly_target_hours=monthly_target_hours,
        is_active=is_active,
    )
    db.add(employee)
    db.commit()
    return employee


def add_leave(
    db: Session,
    employee: Employee,
    start_date: date,
    end_date: date,
    *,
    leave_type: LeaveType = LeaveType.ODIHNA,
    status: LeaveStatus = LeaveStatus.APPROVED,
) -> Leave:
    leave = Leave(
        employee_id=employee.id,
        workplace_id=employee.workplace_id,
        type=leave_type,
        start_date=start_date,
        end_date=end_date,
        days=(end_date - start_date).days + 1,
        status=status,
    )
    db.add(leave)
    db.commit()
    return leave


def payload(
    employee: Employee,
    workplace: Workplace,
    day_date: date,
    start_time: str | None = "08:00",
    end_time: str | None = "16:00",
    **extra: object,
) -> TimesheetEntryPayload:
    return TimesheetEntryPayload(
        employee_id=employee.id,
        workplace_id=workplace.id,
        day_date=day_date,
        start_time=start_time,
        end_time=end_time,
        **extra,
    )
