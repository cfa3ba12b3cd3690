from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from pontaj.audit import log_request_audit
from pontaj.db import get_db
from pontaj.errors import ApiError
from pontaj.models import LeaveStatus
from pontaj.schemas import (
    EmployeeCreate,
    EmployeeRead,
    EmployeeUpdate,
    LeaveCreateRequest,
    LeaveRead,
    ScheduleRead,
    ScheduleUpsertRequest,
    WorkplaceCreate,
    WorkplaceRead,
    WorkplaceUpdate,
)
from pontaj.services.directory import (
    create_employee,
    create_workplace,
    get_workplace,
    list_employees,
    list_employees_by_ids,
    list_employees_by_workplace,
    list_workplaces,
    update_employee,
    update_workplace,
)
from pontaj.services.leaves import (
    create_leave,
    delete_leave,
    list_leaves,
    list_leaves_for_workplace,
    set_leave_status,
)
from pontaj.services.schedules import get_schedule, upsert_schedule

router = APIRouter(tags=["admin"])


@router.post("/api/admin/workplaces", response_model=WorkplaceRead, status_code=status.HTTP_201_CREATED)
def create_workplace_endpoint(
    payload: WorkplaceCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> WorkplaceRead:
    workplace = create_workplace(db, payload)
    log_request_audit(
        db,
        request,
        action="WORKPLACE_CREATED",
        entity_type="workplace",
        entity_id=str(workplace.id),
        details={"name": workplace.name},
    )
    return workplace


@router.get("/api/admin/workplaces", response_model=list[WorkplaceRead])
def list_workplaces_endpoint(
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> list[WorkplaceRead]:
    return list_workplaces(db, include_inactive=include_inactive)


@router.put("/api/admin/workplaces/{workplace_id}", response_model=WorkplaceRead)
def update_workplace_endpoint(
    workplace_id: int,
    payload: WorkplaceUpdate,
    request: Request,
    db: Session = Depends(get_db),
) -> WorkplaceRead:
    workplace = update_workplace(db, workplace_id, payload)
    log_request_audit(
        db,
        request,
        action="WORKPLACE_UPDATED",
        entity_type="workplace",
        entity_id=str(workplace.id),
        details={"name": workplace.name, "is_active": workplace.is_active},
    )
    return workplace


@router.post("/api/admin/employees", response_model=EmployeeRead, status_code=status.HTTP_201_CREATED)
def create_employee_endpoint(
    payload: EmployeeCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> EmployeeRead:
    employee = create_employee(db, payload)
    log_request_audit(
        db,
        request,
        action="EMPLOYEE_CREATED",
        entity_type="employee",
        entity_id=str(employee.id),
        details={"workplace_id": employee.workplace_id},
    )
    return employee


@router.get("/api/admin/employees", response_model=list[EmployeeRead])
def list_employees_endpoint(
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> list[EmployeeRead]:
    return list_employees(db, include_inactive=include_inactive)


@router.get("/api/admin/employees/by-workplace/{workplace_id}", response_model=list[EmployeeRead])
def list_workplace_employees_endpoint(
    workplace_id: int,
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> list[EmployeeRead]:
    get_workplace(db, workplace_id)
    return list_employees_by_workplace(db, workplace_id, include_inactive=include_inactive)


@router.get("/api/admin/employees/by-ids", response_model=list[EmployeeRead])
def list_employees_by_ids_endpoint(
    ids: str = Query(min_length=1),
    db: Session = Depends(get_db),
) -> list[EmployeeRead]:
    employee_ids: set[int] = set()
    for chunk in ids.split(","):
        value = chunk.strip()
        if not value:
            continue
        if not value.isdigit():
            raise ApiError(status_code=422, code="VALIDATION_ERROR", message=f"Invalid employee id: {value}")
        employee_ids.add(int(value))
    return list_employees_by_ids(db, employee_ids)


@router.put("/api/admin/employees/{employee_id}", response_model=EmployeeRead)
def update_employee_endpoint(
    employee_id: int,
    payload: EmployeeUpdate,
    request: Request,
    db: Session = Depends(get_db),
) -> EmployeeRead:
    employee = update_employee(db, employee_id, payload)
    log_request_audit(
        db,
        request,
        action="EMPLOYEE_UPDATED",
        entity_type="employee",
        entity_id=str(employee.id),
        details={"workplace_id": employee.workplace_id, "is_active": employee.is_active},
    )
    return employee


@router.post("/api/admin/leaves", response_model=LeaveRead, status_code=status.HTTP_201_CREATED)
def create_leave_endpoint(
    payload: LeaveCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> LeaveRead:
    leave = create_leave(db, payload)
    log_request_audit(
        db,
        request,
        action="LEAVE_CREATED",
        entity_type="leave",
        entity_id=str(leave.id),
        details={"employee_id": leave.employee_id, "type": leave.type.value},
    )
    return leave


@router.get("/api/admin/leaves", response_model=list[LeaveRead])
def list_leaves_endpoint(
    employee_id: int | None = Query(default=None, ge=1),
    year: int | None = Query(default=None, ge=1970),
    month: int | None = Query(default=None, ge=1, le=12),
    db: Session = Depends(get_db),
) -> list[LeaveRead]:
    return list_leaves(db, employee_id=employee_id, year=year, month=month)


@router.get("/api/admin/leaves/by-workplace/{workplace_id}", response_model=list[LeaveRead])
def list_workplace_leaves_endpoint(
    workplace_id: int,
    db: Session = Depends(get_db),
) -> list[LeaveRead]:
    get_workplace(db, workplace_id)
    return list_leaves_for_workplace(db, workplace_id)


def _change_leave_status(db: Session, request: Request, leave_id: int, new_status: LeaveStatus) -> LeaveRead:
    leave = set_leave_status(db, leave_id, new_status)
    log_request_audit(
        db,
        request,
        action="LEAVE_APPROVED" if new_status == LeaveStatus.APPROVED else "LEAVE_REJECTED",
        entity_type="leave",
        entity_id=str(leave.id),
        details={"employee_id": leave.employee_id, "status": leave.status.value},
    )
    return leave


@router.post("/api/admin/leaves/{leave_id}/approve", response_model=LeaveRead)
def approve_leave_endpoint(
    leave_id: int,
    request: Request,
    db: Session = Depends(get_db),
) -> LeaveRead:
    return _change_leave_status(db, request, leave_id, LeaveStatus.APPROVED)


@router.post("/api/admin/leaves/{leave_id}/reject", response_model=LeaveRead)
def reject_leave_endpoint(
    leave_id: int,
    request: Request,
    db: Session = Depends(get_db),
) -> LeaveRead:
    return _change_leave_status(db, request, leave_id, LeaveStatus.REJECTED)


@router.delete("/api/admin/leaves/{leave_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_leave_endpoint(
    leave_id: int,
    request: Request,
    db: Session = Depends(get_db),
) -> None:
    delete_leave(db, leave_id)
    log_request_audit(db, request, action="LEAVE_DELETED", entity_type="leave", entity_id=str(leave_id))


@router.get("/api/admin/schedule/{workplace_id}/{year}/{month}", response_model=ScheduleRead)
def get_schedule_endpoint(
    workplace_id: int,
    year: int,
    month: int,
    db: Session = Depends(get_db),
) -> ScheduleRead:
    if not 1 <= month <= 12:
        raise ApiError(status_code=422, code="VALIDATION_ERROR", message="month must be between 1 and 12")
    return get_schedule(db, workplace_id=workplace_id, year=year, month=month)


@router.put("/api/admin/schedule", response_model=ScheduleRead)
def upsert_schedule_endpoint(
    payload: ScheduleUpsertRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> ScheduleRead:
    schedule = upsert_schedule(db, payload)
    log_request_audit(
        db,
        request,
        action="SCHEDULE_SAVED",
        entity_type="workplace",
        entity_id=str(payload.workplace_id),
        details={"year": payload.year, "month": payload.month, "employees": len(schedule.schedule)},
    )
    return schedule
