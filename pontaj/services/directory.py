from __future__ import annotations

from collections.abc import Collection

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pontaj.errors import ApiError, NotFoundError
from pontaj.models import Employee, Workplace
from pontaj.schemas import EmployeeCreate, EmployeeUpdate, WorkplaceCreate, WorkplaceUpdate


def get_workplace(db: Session, workplace_id: int) -> Workplace:
    workplace = db.get(Workplace, workplace_id)
    if workplace is None:
        raise NotFoundError("WORKPLACE_NOT_FOUND", "Workplace not found.")
    return workplace


def list_workplaces(db: Session, *, include_inactive: bool = False) -> list[Workplace]:
    stmt = select(Workplace).order_by(Workplace.name.asc())
    if not include_inactive:
        stmt = stmt.where(Workplace.is_active.is_(True))
    return list(db.scalars(stmt).all())


def create_workplace(db: Session, payload: WorkplaceCreate) -> Workplace:
    workplace = Workplace(name=payload.name.strip(), is_active=payload.is_active)
    db.add(workplace)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ApiError(status_code=409, code="WORKPLACE_EXISTS", message="Workplace name already exists.") from exc
    db.refresh(workplace)
    return workplace


def update_workplace(db: Session, workplace_id: int, payload: WorkplaceUpdate) -> Workplace:
    workplace = get_workplace(db, workplace_id)
    workplace.name = payload.name.strip()
    workplace.is_active = payload.is_active
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ApiError(status_code=409, code="WORKPLACE_EXISTS", message="Workplace name already exists.") from exc
    db.refresh(workplace)
    return workplace


def get_employee(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("EMPLOYEE_NOT_FOUND", "Employee not found.")
    return employee


def _ensure_workplace_reference(db: Session, workplace_id: int | None) -> None:
    if workplace_id is not None:
        get_workplace(db, workplace_id)


def create_employee(db: Session, payload: EmployeeCreate) -> Employee:
    _ensure_workplace_reference(db, payload.workplace_id)
    employee = Employee(
        full_name=payload.full_name.strip(),
        function=payload.function,
        workplace_id=payload.workplace_id,
        monthly_target_hours=payload.monthly_target_hours,
        is_active=payload.is_active,
    )
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


def update_employee(db: Session, employee_id: int, payload: EmployeeUpdate) -> Employee:
    employee = get_employee(db, employee_id)
    _ensure_workplace_reference(db, payload.workplace_id)
    employee.full_name = payload.full_name.strip()
    employee.function = payload.function
    employee.workplace_id = payload.workplace_id
    employee.monthly_target_hours = payload.monthly_target_hours
    employee.is_active = payload.is_active
    db.commit()
    db.refresh(employee)
    return employee


def list_employees_by_workplace(
    db: Session,
    workplace_id: int,
    *,
    include_inactive: bool = False,
) -> list[Employee]:
    stmt = select(Employee).where(Employee.workplace_id == workplace_id)
    if not include_inactive:
        stmt = stmt.where(Employee.is_active.is_(True))
    return list(db.scalars(stmt.order_by(Employee.full_name.asc(), Employee.id.asc())).all())


def list_employees_by_ids(db: Session, employee_ids: Collection[int]) -> list[Employee]:
    if not employee_ids:
        return []
    return list(
        db.scalars(
            select(Employee)
            .where(Employee.id.in_(list(employee_ids)))
            .order_by(Employee.full_name.asc(), Employee.id.asc())
        ).all()
    )


def list_employees(db: Session, *, include_inactive: bool = False) -> list[Employee]:
    stmt = select(Employee).order_by(Employee.full_name.asc(), Employee.id.asc())
    if not include_inactive:
        stmt = stmt.where(Employee.is_active.is_(True))
    return list(db.scalars(stmt).all())
