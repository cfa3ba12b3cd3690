from datetime import date, datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from pontaj.models import EntryType, LeaveStatus, LeaveType, TimesheetStatus


class WorkplaceCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    is_active: bool = True


class WorkplaceUpdate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    is_active: bool = True


class WorkplaceRead(BaseModel):
    id: int
    name: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class EmployeeCreate(BaseModel):
    full_name: str = Field(min_length=2, max_length=255)
    function: str | None = Field(default=None, max_length=120)
    workplace_id: int | None = Field(default=None, ge=1)
    monthly_target_hours: int = Field(default=160, ge=0, le=744)
    is_active: bool = True


class EmployeeUpdate(EmployeeCreate):
    pass


class EmployeeRead(BaseModel):
    id: int
    full_name: str
    function: str | None
    workplace_id: int | None
    monthly_target_hours: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class LeaveCreateRequest(BaseModel):
    employee_id: int = Field(ge=1)
    type: LeaveType
    start_date: date
    end_date: date
    reason: str | None = Field(default=None, max_length=1000)
    status: LeaveStatus = LeaveStatus.PENDING
    workplace_id: int | None = Field(default=None, ge=1)


class LeaveRead(BaseModel):
    id: int
    employee_id: int
    workplace_id: int | None
    type: LeaveType
    start_date: date
    end_date: date
    days: int
    reason: str | None
    status: LeaveStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TimesheetEntryPayload(BaseModel):
    employee_id: int = Field(ge=1)
    workplace_id: int = Field(ge=1)
    day_date: date = Field(validation_alias=AliasChoices("date", "day_date"))
    start_time: str | None = Field(default=None, max_length=8)
    end_time: str | None = Field(default=None, max_length=8)
    status: TimesheetStatus = TimesheetStatus.PREZENT
    leave_type: str | None = Field(default=None, max_length=30)
    notes: str | None = Field(default=None, max_length=1000)


class TimesheetSaveRequest(TimesheetEntryPayload):
    force: bool = False


class TimesheetEntryRead(BaseModel):
    id: int
    employee_id: int
    workplace_id: int
    workplace_name: str
    day_date: date = Field(serialization_alias="date")
    start_time: str | None
    end_time: str | None
    minutes_worked: int
    hours_worked: float
    status: TimesheetStatus
    leave_type: str | None
    entry_type: EntryType
    notes: str
    created_by: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TimesheetSaveResponse(BaseModel):
    entry: TimesheetEntryRead
    state: str
    was_overwritten: bool
    replaced_entry_ids: list[int] = Field(default_factory=list)


class TimesheetBatchRequest(BaseModel):
    items: list[TimesheetEntryPayload] = Field(min_length=1, max_length=500)
    force: bool = False


class TimesheetBatchItemResult(BaseModel):
    index: int
    employee_id: int
    status: Literal["persisted", "conflict", "not_found"]
    entry: TimesheetEntryRead | None = None
    conflict: dict[str, Any] | None = None
    error_code: str | None = None
    message: str | None = None


class TimesheetBatchResponse(BaseModel):
    results: list[TimesheetBatchItemResult]
    persisted_count: int
    failed_count: int


class TimesheetDeleteResponse(BaseModel):
    deleted: int


class VisitorRead(BaseModel):
    employee_id: int
    full_name: str
    home_workplace_id: int | None


class EmployeeHoursRead(BaseModel):
    employee_id: int
    full_name: str
    workplace_id: int | None
    monthly_target_hours: int
    total_minutes: int
    total_hours: float
    home_hours: float
    visitor_hours: float
    worked_days: int


class DayCellRead(BaseModel):
    day_date: date = Field(serialization_alias="date")
    kind: Literal["none", "leave", "worked"]
    hours: float = 0.0
    is_visitor: bool = False
    workplace_id: int | None = None
    leave_type: str | None = None


class EmployeeDaysRead(BaseModel):
    employee_id: int
    full_name: str
    is_visitor: bool
    days: list[DayCellRead]


class WorkplaceReportResponse(BaseModel):
    workplace_id: int
    start_date: date = Field(serialization_alias="from")
    end_date: date = Field(serialization_alias="to")
    entries: list[TimesheetEntryRead]
    visitors: list[VisitorRead]
    totals: list[EmployeeHoursRead]
    days: list[EmployeeDaysRead]


class WorkplaceHoursRead(BaseModel):
    workplace_id: int
    workplace_name: str
    entry_type: EntryType
    hours: float
    minutes: int
    days: int


class EmployeeMonthBreakdownResponse(BaseModel):
    employee_id: int
    month: str
    total_hours: float
    total_minutes: int
    monthly_target_hours: int
    breakdown: list[WorkplaceHoursRead]
    entries: list[TimesheetEntryRead]


class ScheduleUpsertRequest(BaseModel):
    workplace_id: int = Field(ge=1)
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
    schedule: dict[str, dict[str, str]] = Field(default_factory=dict)


class ScheduleRead(BaseModel):
    workplace_id: int
    year: int
    month: int
    schedule: dict[str, dict[str, str]]
