from __future__ import annotations

from calendar import monthrange
from datetime import date

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from pontaj.audit import log_request_audit, request_actor
from pontaj.db import get_db
from pontaj.errors import ApiError
from pontaj.schemas import (
    DayCellRead,
    EmployeeDaysRead,
    EmployeeHoursRead,
    EmployeeMonthBreakdownResponse,
    TimesheetBatchItemResult,
    TimesheetBatchRequest,
    TimesheetBatchResponse,
    TimesheetDeleteResponse,
    TimesheetEntryRead,
    TimesheetSaveRequest,
    TimesheetSaveResponse,
    VisitorRead,
    WorkplaceHoursRead,
    WorkplaceReportResponse,
)
from pontaj.services import entry_store
from pontaj.services.conflicts import TimesheetConflictError
from pontaj.services.directory import get_employee, get_workplace
from pontaj.services.exports import build_timesheet_xlsx_bytes
from pontaj.services.reconciliation import (
    EmployeeHours,
    ReconciliationContext,
    WorkplaceReconciliation,
    build_hours_stats,
    build_workplace_report,
    dedupe_entries,
    employee_month_breakdown,
)
from pontaj.services.timesheet import delete_entry, save_entries_batch, save_entry

router = APIRouter(tags=["timesheet"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
MAX_RANGE_DAYS = 366


def _validate_range(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise ApiError(status_code=422, code="INVALID_DATE_RANGE", message="to must be greater than or equal to from")
    if (end_date - start_date).days >= MAX_RANGE_DAYS:
        raise ApiError(status_code=422, code="INVALID_DATE_RANGE", message="Date range cannot exceed one year")


def _parse_id_list(raw: str | None) -> frozenset[int]:
    if not raw:
        return frozenset()
    ids: set[int] = set()
    for chunk in raw.split(","):
        value = chunk.strip()
        if not value:
            continue
        if not value.isdigit() or int(value) < 1:
            raise ApiError(status_code=422, code="VALIDATION_ERROR", message=f"Invalid id in list: {value}")
        ids.add(int(value))
    return frozenset(ids)


def _parse_month(raw: str) -> tuple[int, int]:
    parts = raw.strip().split("-")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise ApiError(status_code=422, code="INVALID_MONTH", message="month must use the YYYY-MM format")
    year, month = int(parts[0]), int(parts[1])
    if not 1 <= month <= 12:
        raise ApiError(status_code=422, code="INVALID_MONTH", message="month must be between 01 and 12")
    return year, month


def _hours_read(item: EmployeeHours) -> EmployeeHoursRead:
    return EmployeeHoursRead(
        employee_id=item.employee_id,
        full_name=item.full_name,
        workplace_id=item.workplace_id,
        monthly_target_hours=item.monthly_target_hours,
        total_minutes=item.total_minutes,
        total_hours=item.total_hours,
        home_hours=item.home_hours,
        visitor_hours=item.visitor_hours,
        worked_days=item.worked_days,
    )


def _report_response(report: WorkplaceReconciliation) -> WorkplaceReportResponse:
    visitor_ids = {visitor.id for visitor in report.visitors}
    return WorkplaceReportResponse(
        workplace_id=report.context.workplace_id,
        start_date=report.context.start_date,
        end_date=report.context.end_date,
        entries=[TimesheetEntryRead.model_validate(entry) for entry in report.entries],
        visitors=[
            VisitorRead(employee_id=visitor.id, full_name=visitor.full_name, home_workplace_id=visitor.workplace_id)
            for visitor in report.visitors
        ],
        totals=[_hours_read(item) for item in report.totals],
        days=[
            EmployeeDaysRead(
                employee_id=employee.id,
                full_name=employee.full_name,
                is_visitor=employee.id in visitor_ids,
                days=[
                    DayCellRead(
                        day_date=cell.day_date,
                        kind=cell.kind.value,
                        hours=cell.hours,
                        is_visitor=cell.is_visitor,
                        workplace_id=cell.workplace_id,
                        leave_type=cell.leave_type,
                    )
                    for cell in report.days.get(employee.id, [])
                ],
            )
            for employee in report.employees
        ],
    )


@router.post("/api/timesheet", response_model=TimesheetSaveResponse)
def save_timesheet_entry(
    payload: TimesheetSaveRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> TimesheetSaveResponse:
    try:
        outcome = save_entry(db, payload, force=payload.force, actor=request_actor(request))
    except TimesheetConflictError as exc:
        log_request_audit(
            db,
            request,
            action="TIMESHEET_CONFLICT",
            success=False,
            entity_type="employee",
            entity_id=str(payload.employee_id),
            details={
                "code": exc.code,
                "workplace_id": payload.workplace_id,
                "day_date": payload.day_date.isoformat(),
                "force": payload.force,
            },
        )
        raise

    log_request_audit(
        db,
        request,
        action="TIMESHEET_SAVED",
        entity_type="timesheet_entry",
        entity_id=str(outcome.entry.id),
        details={
            "employee_id": outcome.entry.employee_id,
            "workplace_id": outcome.entry.workplace_id,
            "day_date": outcome.entry.day_date.isoformat(),
            "path": outcome.path.value,
            "was_overwritten": outcome.was_overwritten,
            "replaced_entry_ids": list(outcome.replaced_entry_ids),
        },
    )
    return TimesheetSaveResponse(
        entry=TimesheetEntryRead.model_validate(outcome.entry),
        state=outcome.state.value,
        was_overwritten=outcome.was_overwritten,
        replaced_entry_ids=list(outcome.replaced_entry_ids),
    )


@router.post("/api/timesheet/batch", response_model=TimesheetBatchResponse)
def save_timesheet_batch(
    payload: TimesheetBatchRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> TimesheetBatchResponse:
    results = save_entries_batch(db, payload.items, force=payload.force, actor=request_actor(request))

    items: list[TimesheetBatchItemResult] = []
    for result in results:
        item = TimesheetBatchItemResult(index=result.index, employee_id=result.employee_id, status=result.status)
        if result.outcome is not None:
            item.entry = TimesheetEntryRead.model_validate(result.outcome.entry)
        if result.conflict is not None:
            item.conflict = result.conflict.to_payload()
            item.error_code = result.conflict.code.value
            item.message = result.conflict.message
        if result.error is not None:
            item.error_code = result.error.code
            item.message = result.error.message
        items.append(item)

    persisted_count = sum(1 for item in items if item.status == "persisted")
    log_request_audit(
        db,
        request,
        action="TIMESHEET_BATCH_SAVED",
        success=persisted_count == len(items),
        entity_type="timesheet_batch",
        details={"total": len(items), "persisted": persisted_count, "force": payload.force},
    )
    return TimesheetBatchResponse(
        results=items,
        persisted_count=persisted_count,
        failed_count=len(items) - persisted_count,
    )


@router.get("/api/timesheet", response_model=list[TimesheetEntryRead])
def list_workplace_timesheet(
    workplace_id: int = Query(ge=1),
    start_date: date = Query(alias="from"),
    end_date: date = Query(alias="to"),
    include_away_visits: bool = Query(default=True),
    db: Session = Depends(get_db),
) -> list[TimesheetEntryRead]:
    _validate_range(start_date, end_date)
    get_workplace(db, workplace_id)
    entries = entry_store.list_entries_for_workplace(
        db,
        workplace_id,
        start_date,
        end_date,
        include_away_visits=include_away_visits,
    )
    return [TimesheetEntryRead.model_validate(entry) for entry in dedupe_entries(entries)]


@router.get("/api/timesheet/all-workplaces", response_model=list[TimesheetEntryRead])
def list_all_workplaces_timesheet(
    start_date: date = Query(alias="from"),
    end_date: date = Query(alias="to"),
    db: Session = Depends(get_db),
) -> list[TimesheetEntryRead]:
    _validate_range(start_date, end_date)
    entries = entry_store.list_entries_for_range(db, start_date, end_date)
    return [TimesheetEntryRead.model_validate(entry) for entry in dedupe_entries(entries)]


@router.delete("/api/timesheet", response_model=TimesheetDeleteResponse)
def delete_timesheet_entry(
    request: Request,
    employee_id: int = Query(ge=1),
    day_date: date = Query(alias="date"),
    workplace_id: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
) -> TimesheetDeleteResponse:
    deleted = delete_entry(
        db,
        employee_id=employee_id,
        day_date=day_date,
        workplace_id=workplace_id,
        actor=request_actor(request),
    )
    log_request_audit(
        db,
        request,
        action="TIMESHEET_DELETED",
        entity_type="employee",
        entity_id=str(employee_id),
        details={"day_date": day_date.isoformat(), "workplace_id": workplace_id, "deleted": deleted},
    )
    return TimesheetDeleteResponse(deleted=deleted)


@router.get("/api/timesheet/report", response_model=WorkplaceReportResponse)
def workplace_timesheet_report(
    workplace_id: int = Query(ge=1),
    start_date: date = Query(alias="from"),
    end_date: date = Query(alias="to"),
    visitor_ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> WorkplaceReportResponse:
    _validate_range(start_date, end_date)
    context = ReconciliationContext(
        workplace_id=workplace_id,
        start_date=start_date,
        end_date=end_date,
        manual_visitor_ids=_parse_id_list(visitor_ids),
    )
    return _report_response(build_workplace_report(db, context))


@router.get("/api/timesheet/stats", response_model=list[EmployeeHoursRead])
def timesheet_stats(
    start_date: date = Query(alias="from"),
    end_date: date = Query(alias="to"),
    workplace_id: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
) -> list[EmployeeHoursRead]:
    _validate_range(start_date, end_date)
    stats = build_hours_stats(db, start_date=start_date, end_date=end_date, workplace_id=workplace_id)
    return [_hours_read(item) for item in stats]


@router.get("/api/timesheet/export.xlsx")
def export_timesheet_xlsx(
    request: Request,
    workplace_id: int = Query(ge=1),
    year: int = Query(ge=2000, le=2100),
    month: int = Query(ge=1, le=12),
    db: Session = Depends(get_db),
) -> Response:
    payload = build_timesheet_xlsx_bytes(db, workplace_id=workplace_id, year=year, month=month)
    log_request_audit(
        db,
        request,
        action="TIMESHEET_EXPORT_XLSX",
        entity_type="workplace",
        entity_id=str(workplace_id),
        details={"year": year, "month": month},
    )
    return Response(
        content=payload,
        media_type=XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="pontaj-{workplace_id}-{year}-{month:02d}.xlsx"',
        },
    )


@router.get("/api/employees/{employee_id}/timesheet", response_model=EmployeeMonthBreakdownResponse)
def employee_month_timesheet(
    employee_id: int,
    month: str = Query(),
    db: Session = Depends(get_db),
) -> EmployeeMonthBreakdownResponse:
    year, month_number = _parse_month(month)
    employee = get_employee(db, employee_id)
    start_date = date(year, month_number, 1)
    end_date = date(year, month_number, monthrange(year, month_number)[1])

    entries = dedupe_entries(entry_store.list_entries_for_range(db, start_date, end_date, employee_id=employee_id))
    breakdown = employee_month_breakdown(entries)
    total_minutes = sum(item.minutes for item in breakdown)
    return EmployeeMonthBreakdownResponse(
        employee_id=employee.id,
        month=f"{year:04d}-{month_number:02d}",
        total_hours=round(total_minutes / 60, 2),
        total_minutes=total_minutes,
        monthly_target_hours=employee.monthly_target_hours,
        breakdown=[
            WorkplaceHoursRead(
                workplace_id=item.workplace_id,
                workplace_name=item.workplace_name,
                entry_type=item.entry_type,
                hours=item.hours,
                minutes=item.minutes,
                days=item.days,
            )
            for item in breakdown
        ],
        entries=[TimesheetEntryRead.model_validate(entry) for entry in entries],
    )
