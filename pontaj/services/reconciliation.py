"""Read-side reconciliation of timesheet entries for a workplace.

Every function here is pure: it works on already loaded entries, employees
and leave records plus an explicit :class:`ReconciliationContext`, and never
touches the database. ``build_workplace_report`` and ``build_hours_stats`` are
the only loaders.
"""

from __future__ import annotations

import enum
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from sqlalchemy.orm import Session

from pontaj.models import EntryType, LeaveStatus
from pontaj.services import entry_store
from pontaj.services.directory import get_workplace, list_employees_by_ids, list_employees_by_workplace
from pontaj.services.leaves import list_approved_leaves_for_employees
from pontaj.settings import get_settings


@dataclass(frozen=True)
class ReconciliationContext:
    workplace_id: int
    start_date: date
    end_date: date
    # Employees added to the view by hand before any entry exists for them.
    manual_visitor_ids: frozenset[int] = frozenset()

    def days(self) -> list[date]:
        total = (self.end_date - self.start_date).days
        return [self.start_date + timedelta(days=offset) for offset in range(total + 1)]


class DayCellKind(str, enum.Enum):
    NONE = "none"
    LEAVE = "leave"
    WORKED = "worked"


@dataclass(frozen=True)
class DayCell:
    day_date: date
    kind: DayCellKind
    hours: float = 0.0
    is_visitor: bool = False
    workplace_id: int | None = None
    leave_type: str | None = None


@dataclass(frozen=True)
class EmployeeHours:
    employee_id: int
    full_name: str
    workplace_id: int | None
    monthly_target_hours: int
    total_minutes: int
    total_hours: float
    home_hours: float
    visitor_hours: float
    worked_days: int


@dataclass(frozen=True)
class WorkplaceHours:
    workplace_id: int
    workplace_name: str
    entry_type: EntryType
    minutes: int
    days: int

    @property
    def hours(self) -> float:
        return round(self.minutes / 60, 2)


@dataclass
class WorkplaceReconciliation:
    context: ReconciliationContext
    entries: list[Any]
    visitors: list[Any]
    totals: list[EmployeeHours]
    days: dict[int, list[DayCell]] = field(default_factory=dict)
    employees: list[Any] = field(default_factory=list)


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, enum.Enum) else value


def _entry_key(entry: Any) -> tuple[int, date, int, str]:
    return entry.employee_id, entry.day_date, entry.workplace_id, _enum_value(entry.entry_type)


def _recency(entry: Any) -> tuple[float, int]:
    updated_at = getattr(entry, "updated_at", None)
    stamp = updated_at.timestamp() if updated_at is not None else 0.0
    return stamp, entry.id or 0


def dedupe_entries(entries: Iterable[Any]) -> list[Any]:
    """Keep one entry per (employee, day, workplace, type); the latest write wins."""
    latest: dict[tuple[int, date, int, str], Any] = {}
    for entry in entries:
        key = _entry_key(entry)
        current = latest.get(key)
        if current is None or _recency(entry) >= _recency(current):
            latest[key] = entry
    return sorted(latest.values(), key=lambda item: (item.day_date, item.employee_id, item.workplace_id))


def _counts_as_work(entry: Any) -> bool:
    return not entry.leave_type and (entry.minutes_worked or 0) > 0


def visitor_roster(
    entries: Iterable[Any],
    employees_by_id: Mapping[int, Any],
    workplace_id: int,
    manual_visitor_ids: Iterable[int] = (),
) -> list[Any]:
    visitor_ids: set[int] = set()
    for entry in entries:
        if _enum_value(entry.entry_type) != EntryType.VISITOR.value or entry.workplace_id != workplace_id:
            continue
        employee = employees_by_id.get(entry.employee_id)
        if employee is not None and employee.workplace_id != workplace_id:
            visitor_ids.add(entry.employee_id)

    for employee_id in manual_visitor_ids:
        employee = employees_by_id.get(employee_id)
        if employee is not None and employee.workplace_id != workplace_id:
            visitor_ids.add(employee_id)

    visitors = [employees_by_id[employee_id] for employee_id in visitor_ids]
    return sorted(visitors, key=lambda item: (item.full_name, item.id))


def aggregate_hours(
    entries: Iterable[Any],
    employees_by_id: Mapping[int, Any],
    *,
    start_date: date,
    end_date: date,
    employee_ids: Sequence[int] | None = None,
    default_target_hours: int = 160,
) -> list[EmployeeHours]:
    """Per-employee totals over the deduplicated entries, leave entries excluded."""
    total_minutes: dict[int, int] = defaultdict(int)
    visitor_minutes: dict[int, int] = defaultdict(int)
    worked_days: dict[int, set[date]] = defaultdict(set)

    for entry in dedupe_entries(entries):
        if not (start_date <= entry.day_date <= end_date) or entry.leave_type:
            continue
        minutes = max(0, int(entry.minutes_worked or 0))
        total_minutes[entry.employee_id] += minutes
        if _enum_value(entry.entry_type) == EntryType.VISITOR.value:
            visitor_minutes[entry.employee_id] += minutes
        if minutes > 0:
            worked_days[entry.employee_id].add(entry.day_date)

    if employee_ids is None:
        ordered_ids = sorted(
            set(total_minutes),
            key=lambda item: (getattr(employees_by_id.get(item), "full_name", ""), item),
        )
    else:
        ordered_ids = list(employee_ids)

    results: list[EmployeeHours] = []
    for employee_id in ordered_ids:
        employee = employees_by_id.get(employee_id)
        minutes = total_minutes.get(employee_id, 0)
        visitor = visitor_minutes.get(employee_id, 0)
        results.append(
            EmployeeHours(
                employee_id=employee_id,
                full_name=employee.full_name if employee is not None else "",
                workplace_id=employee.workplace_id if employee is not None else None,
                monthly_target_hours=(
                    employee.monthly_target_hours if employee is not None else default_target_hours
                ),
                total_minutes=minutes,
                total_hours=round(minutes / 60, 2),
                home_hours=round((minutes - visitor) / 60, 2),
                visitor_hours=round(visitor / 60, 2),
                worked_days=len(worked_days.get(employee_id, ())),
            )
        )
    return results


def _leave_by_day(leaves: Iterable[Any], context: ReconciliationContext) -> dict[tuple[int, date], str]:
    marked: dict[tuple[int, date], str] = {}
    for leave in leaves:
        if leave.status != LeaveStatus.APPROVED:
            continue
        cursor = max(leave.start_date, context.start_date)
        last = min(leave.end_date, context.end_date)
        while cursor <= last:
            marked.setdefault((leave.employee_id, cursor), _enum_value(leave.type))
            cursor += timedelta(days=1)
    return marked


def _day_cell(day_date: date, day_entries: list[Any], leave_type: str | None, workplace_id: int) -> DayCell:
    worked = [entry for entry in day_entries if _counts_as_work(entry)]
    if worked:
        # Prefer the entry recorded at the workplace being viewed.
        primary = next((entry for entry in worked if entry.workplace_id == workplace_id), worked[0])
        minutes = sum(int(entry.minutes_worked or 0) for entry in worked)
        return DayCell(
            day_date=day_date,
            kind=DayCellKind.WORKED,
            hours=round(minutes / 60, 2),
            is_visitor=any(_enum_value(entry.entry_type) == EntryType.VISITOR.value for entry in worked),
            workplace_id=primary.workplace_id,
        )

    if leave_type is None:
        leave_type = next((entry.leave_type for entry in day_entries if entry.leave_type), None)
    if leave_type is not None:
        return DayCell(day_date=day_date, kind=DayCellKind.LEAVE, leave_type=leave_type)

    return DayCell(day_date=day_date, kind=DayCellKind.NONE)


def build_day_grid(
    context: ReconciliationContext,
    entries: Iterable[Any],
    leaves: Iterable[Any],
    employee_ids: Sequence[int],
) -> dict[int, list[DayCell]]:
    by_employee_day: dict[tuple[int, date], list[Any]] = defaultdict(list)
    for entry in dedupe_entries(entries):
        by_employee_day[(entry.employee_id, entry.day_date)].append(entry)
    leave_marks = _leave_by_day(leaves, context)

    grid: dict[int, list[DayCell]] = {}
    for employee_id in employee_ids:
        grid[employee_id] = [
            _day_cell(
                day_date,
                by_employee_day.get((employee_id, day_date), []),
                leave_marks.get((employee_id, day_date)),
                context.workplace_id,
            )
            for day_date in context.days()
        ]
    return grid


def reconcile_workplace(
    context: ReconciliationContext,
    entries: Iterable[Any],
    employees: Iterable[Any],
    leaves: Iterable[Any],
) -> WorkplaceReconciliation:
    deduped = [
        entry for entry in dedupe_entries(entries) if context.start_date <= entry.day_date <= context.end_date
    ]
    employees_by_id = {employee.id: employee for employee in employees}

    # Deactivated staff keep their row while they have entries in the range.
    recorded_ids = {entry.employee_id for entry in deduped}
    home_staff = sorted(
        (
            employee
            for employee in employees_by_id.values()
            if employee.workplace_id == context.workplace_id
            and (employee.is_active or employee.id in recorded_ids)
        ),
        key=lambda item: (item.full_name, item.id),
    )
    visitors = visitor_roster(deduped, employees_by_id, context.workplace_id, context.manual_visitor_ids)
    rows = home_staff + [visitor for visitor in visitors if visitor not in home_staff]
    row_ids = [employee.id for employee in rows]

    return WorkplaceReconciliation(
        context=context,
        entries=deduped,
        visitors=visitors,
        totals=aggregate_hours(
            deduped,
            employees_by_id,
            start_date=context.start_date,
            end_date=context.end_date,
            employee_ids=row_ids,
        ),
        days=build_day_grid(context, deduped, leaves, row_ids),
        employees=rows,
    )


def employee_month_breakdown(entries: Iterable[Any]) -> list[WorkplaceHours]:
    minutes: dict[tuple[int, str], int] = defaultdict(int)
    days: dict[tuple[int, str], set[date]] = defaultdict(set)
    names: dict[int, str] = {}

    for entry in dedupe_entries(entries):
        key = (entry.workplace_id, _enum_value(entry.entry_type))
        names.setdefault(entry.workplace_id, entry.workplace_name or "")
        if entry.leave_type:
            continue
        minutes[key] += max(0, int(entry.minutes_worked or 0))
        if (entry.minutes_worked or 0) > 0:
            days[key].add(entry.day_date)

    return [
        WorkplaceHours(
            workplace_id=workplace_id,
            workplace_name=names.get(workplace_id, ""),
            entry_type=EntryType(entry_type),
            minutes=total,
            days=len(days.get((workplace_id, entry_type), ())),
        )
        for (workplace_id, entry_type), total in sorted(minutes.items())
    ]


def build_workplace_report(
    db: Session,
    context: ReconciliationContext,
    *,
    include_away_visits: bool = True,
) -> WorkplaceReconciliation:
    get_workplace(db, context.workplace_id)
    entries = entry_store.list_entries_for_workplace(
        db,
        context.workplace_id,
        context.start_date,
        context.end_date,
        include_away_visits=include_away_visits,
    )

    employees = {employee.id: employee for employee in list_employees_by_workplace(db, context.workplace_id)}
    referenced_ids = {entry.employee_id for entry in entries} | set(context.manual_visitor_ids)
    missing_ids = referenced_ids - set(employees)
    for employee in list_employees_by_ids(db, missing_ids):
        employees[employee.id] = employee

    leaves = list_approved_leaves_for_employees(
        db,
        employee_ids=list(employees),
        start_date=context.start_date,
        end_date=context.end_date,
    )
    return reconcile_workplace(context, entries, employees.values(), leaves)


def build_hours_stats(
    db: Session,
    *,
    start_date: date,
    end_date: date,
    workplace_id: int | None = None,
) -> list[EmployeeHours]:
    if workplace_id is None:
        entries = entry_store.list_entries_for_range(db, start_date, end_date)
    else:
        get_workplace(db, workplace_id)
        entries = entry_store.list_entries_for_workplace(db, workplace_id, start_date, end_date)

    employees_by_id = {
        employee.id: employee for employee in list_employees_by_ids(db, {entry.employee_id for entry in entries})
    }
    return aggregate_hours(
        entries,
        employees_by_id,
        start_date=start_date,
        end_date=end_date,
        default_target_hours=get_settings().default_monthly_target_hours,
    )
