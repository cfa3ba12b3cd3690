from __future__ import annotations

from calendar import monthrange
from collections.abc import Collection
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from pontaj.errors import ApiError, NotFoundError
from pontaj.models import Employee, Leave, LeaveStatus
from pontaj.schemas import LeaveCreateRequest


def create_leave(db: Session, payload: LeaveCreateRequest) -> Leave:
    employee = db.get(Employee, payload.employee_id)
    if employee is None:
        raise NotFoundError("EMPLOYEE_NOT_FOUND", "Employee not found.")

    if payload.end_date < payload.start_date:
        raise ApiError(
            status_code=422,
            code="INVALID_DATE_RANGE",
            message="end_date must be greater than or equal to start_date",
        )

    leave = Leave(
        employee_id=payload.employee_id,
        workplace_id=payload.workplace_id or employee.workplace_id,
        type=payload.type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        days=(payload.end_date - payload.start_date).days + 1,
        reason=payload.reason,
        status=payload.status,
    )
    db.add(leave)
    db.commit()
    db.refresh(leave)
    return leave


def list_leaves(
    db: Session,
    *,
    employee_id: int | None,
    year: int | None,
    month: int | None,
) -> list[Leave]:
    if (year is None) != (month is None):
        raise ApiError(
            status_code=422,
            code="VALIDATION_ERROR",
            message="year and month must be provided together",
        )

    stmt = select(Leave).order_by(Leave.start_date.asc(), Leave.id.asc())
    if employee_id is not None:
        stmt = stmt.where(Leave.employee_id == employee_id)

    if year is not None and month is not None:
        days_in_month = monthrange(year, month)[1]
        start = date(year, month, 1)
        end = date(year, month, days_in_month)
        stmt = stmt.where(
            Leave.start_date <= end,
            Leave.end_date >= start,
        )

    return list(db.scalars(stmt).all())


def list_leaves_for_workplace(db: Session, workplace_id: int) -> list[Leave]:
    return list(
        db.scalars(
            select(Leave)
            .where(Leave.workplace_id == workplace_id)
            .order_by(Leave.start_date.desc(), Leave.id.desc())
        ).all()
    )


def list_approved_leaves_for_employee(
    db: Session,
    *,
    employee_id: int,
    start_date: date,
    end_date: date,
) -> list[Leave]:
    return list_approved_leaves_for_employees(
        db,
        employee_ids=[employee_id],
        start_date=start_date,
        end_date=end_date,
    )


def list_approved_leaves_for_employees(
    db: Session,
    *,
    employee_ids: Collection[int],
    start_date: date,
    end_date: date,
) -> list[Leave]:
    if not employee_ids:
        return []
    return list(
        db.scalars(
            select(Leave)
            .where(
                Leave.employee_id.in_(list(employee_ids)),
                Leave.status == LeaveStatus.APPROVED,
                Leave.start_date <= end_date,
                Leave.end_date >= start_date,
            )
            .order_by(Leave.start_date.asc(), Leave.id.asc())
        ).all()
    )


def set_leave_status(db: Session, leave_id: int, new_status: LeaveStatus) -> Leave:
    leave = db.get(Leave, leave_id)
    if leave is None:
        raise NotFoundError("LEAVE_NOT_FOUND", "Leave not found.")

    # Timesheet entries are never touched here; approval only affects future conflict checks.
    leave.status = new_status
    db.commit()
    db.refresh(leave)
    return leave


def delete_leave(db: Session, leave_id: int) -> None:
    leave = db.get(Leave, leave_id)
    if leave is None:
        raise NotFoundError("LEAVE_NOT_FOUND", "Leave not found.")

    db.delete(leave)
    db.commit()
