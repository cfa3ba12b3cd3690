"""Save-time conflict classification for timesheet entries.

A candidate entry is checked against every entry the employee already has
on the same day (at any workplace) and against their approved leave. The
checks run in a fixed order and only the first applicable conflict is
reported:

1. ``LEAVE_APPROVED``         work status on a day covered by approved leave
2. ``OVERLAPPING_HOURS``      interval intersects an entry at another workplace
3. ``VISITOR_ALREADY_PONTED`` home save while a visitor entry exists elsewhere
4. ``PONTAJ_EXISTS``          the entry key is already taken

Everything except ``VISITOR_ALREADY_PONTED`` can be forced. A forced save
skips the forceable checks but still honours the visitor rule.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from pontaj.errors import ApiError
from pontaj.models import WORK_STATUSES, EntryType, LeaveStatus, TimesheetStatus
from pontaj.services import entry_store
from pontaj.services.leaves import list_approved_leaves_for_employee
from pontaj.services.time_calc import intervals_overlap, work_interval


class ConflictCode(str, enum.Enum):
    LEAVE_APPROVED = "LEAVE_APPROVED"
    OVERLAPPING_HOURS = "OVERLAPPING_HOURS"
    VISITOR_ALREADY_PONTED = "VISITOR_ALREADY_PONTED"
    PONTAJ_EXISTS = "PONTAJ_EXISTS"


FORCEABLE_CODES = frozenset(
    {
        ConflictCode.LEAVE_APPROVED,
        ConflictCode.OVERLAPPING_HOURS,
        ConflictCode.PONTAJ_EXISTS,
    }
)

CONFLICT_MESSAGES: dict[ConflictCode, str] = {
    ConflictCode.LEAVE_APPROVED: "Employee has approved leave on this day.",
    ConflictCode.OVERLAPPING_HOURS: "Hours overlap an existing timesheet entry at another workplace.",
    ConflictCode.VISITOR_ALREADY_PONTED: (
        "Employee is already recorded as a visitor at another workplace on this day. "
        "Remove that entry at its workplace first."
    ),
    ConflictCode.PONTAJ_EXISTS: "A timesheet entry already exists for this employee, day and workplace.",
}


@dataclass(frozen=True)
class CandidateEntry:
    employee_id: int
    workplace_id: int
    day_date: date
    entry_type: EntryType
    status: TimesheetStatus
    start_time: str | None = None
    end_time: str | None = None

    @property
    def interval(self) -> tuple[int, int] | None:
        if self.start_time is None or self.end_time is None:
            return None
        return work_interval(self.start_time, self.end_time)

    def summary(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "workplace_id": self.workplace_id,
            "date": self.day_date.isoformat(),
            "entry_type": self.entry_type.value,
            "status": self.status.value,
            "start_time": self.start_time,
            "end_time": self.end_time,
        }


def _entry_interval(entry: Any) -> tuple[int, int] | None:
    if not entry.start_time or not entry.end_time:
        return None
    return work_interval(entry.start_time, entry.end_time)


def entry_summary(entry: Any) -> dict[str, Any]:
    entry_type = entry.entry_type
    status = entry.status
    return {
        "id": entry.id,
        "workplace_id": entry.workplace_id,
        "workplace_name": getattr(entry, "workplace_name", None),
        "date": entry.day_date.isoformat(),
        "start_time": entry.start_time,
        "end_time": entry.end_time,
        "entry_type": entry_type.value if isinstance(entry_type, enum.Enum) else entry_type,
        "status": status.value if isinstance(status, enum.Enum) else status,
    }


def leave_summary(leave: Any) -> dict[str, Any]:
    leave_type = leave.type
    status = leave.status
    return {
        "id": leave.id,
        "type": leave_type.value if isinstance(leave_type, enum.Enum) else leave_type,
        "start_date": leave.start_date.isoformat(),
        "end_date": leave.end_date.isoformat(),
        "status": status.value if isinstance(status, enum.Enum) else status,
    }


@dataclass(frozen=True)
class Conflict:
    code: ConflictCode
    new_entry: dict[str, Any]
    leave: dict[str, Any] | None = None
    overlapping_entries: list[dict[str, Any]] = field(default_factory=list)
    visitor_entry: dict[str, Any] | None = None
    existing_entry: dict[str, Any] | None = None

    @property
    def can_force(self) -> bool:
        # A visitor entry elsewhere blocks the forced retry as well.
        return self.code in FORCEABLE_CODES and self.visitor_entry is None

    @property
    def message(self) -> str:
        return CONFLICT_MESSAGES[self.code]

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code.value,
            "can_force": self.can_force,
            "message": self.message,
            "new_entry": self.new_entry,
        }
        if self.leave is not None:
            payload["leave"] = self.leave
        if self.overlapping_entries:
            payload["overlapping_entries"] = list(self.overlapping_entries)
        if self.visitor_entry is not None:
            payload["visitor_entry"] = self.visitor_entry
        if self.existing_entry is not None:
            payload["existing_entry"] = self.existing_entry
        return payload


class TimesheetConflictError(ApiError):
    def __init__(self, conflict: Conflict):
        super().__init__(409, conflict.code.value, conflict.message)
        self.conflict = conflict


@dataclass(frozen=True)
class ConflictScan:
    """Every finding for a candidate, before picking the reported conflict."""

    candidate: CandidateEntry
    covering_leave: Any | None = None
    overlapping_entries: tuple[Any, ...] = ()
    visitor_entry: Any | None = None
    existing_entry: Any | None = None

    def first_conflict(self, *, force: bool) -> Conflict | None:
        new_entry = self.candidate.summary()
        visitor_entry = entry_summary(self.visitor_entry) if self.visitor_entry is not None else None

        if not force and self.covering_leave is not None:
            return Conflict(
                code=ConflictCode.LEAVE_APPROVED,
                new_entry=new_entry,
                leave=leave_summary(self.covering_leave),
                visitor_entry=visitor_entry,
            )
        if not force and self.overlapping_entries:
            return Conflict(
                code=ConflictCode.OVERLAPPING_HOURS,
                new_entry=new_entry,
                overlapping_entries=[entry_summary(item) for item in self.overlapping_entries],
                visitor_entry=visitor_entry,
            )
        if self.visitor_entry is not None:
            return Conflict(
                code=ConflictCode.VISITOR_ALREADY_PONTED,
                new_entry=new_entry,
                visitor_entry=visitor_entry,
            )
        if not force and self.existing_entry is not None:
            return Conflict(
                code=ConflictCode.PONTAJ_EXISTS,
                new_entry=new_entry,
                existing_entry=entry_summary(self.existing_entry),
            )
        return None


def _leave_covers(leave: Any, day_date: date) -> bool:
    return leave.status == LeaveStatus.APPROVED and leave.start_date <= day_date <= leave.end_date


def scan_candidate(
    candidate: CandidateEntry,
    *,
    home_workplace_id: int | None,
    day_entries: Sequence[Any],
    approved_leaves: Iterable[Any],
) -> ConflictScan:
    covering_leave = None
    if candidate.status in WORK_STATUSES:
        covering_leave = next(
            (leave for leave in approved_leaves if _leave_covers(leave, candidate.day_date)),
            None,
        )

    overlapping: list[Any] = []
    candidate_interval = candidate.interval
    if candidate_interval is not None:
        for entry in day_entries:
            if entry.workplace_id == candidate.workplace_id:
                continue
            existing_interval = _entry_interval(entry)
            if existing_interval is not None and intervals_overlap(candidate_interval, existing_interval):
                overlapping.append(entry)

    visitor_entry = None
    if home_workplace_id is not None and candidate.workplace_id == home_workplace_id:
        visitor_entry = next(
            (
                entry
                for entry in day_entries
                if entry.entry_type == EntryType.VISITOR and entry.workplace_id != candidate.workplace_id
            ),
            None,
        )

    existing_entry = next(
        (
            entry
            for entry in day_entries
            if entry.workplace_id == candidate.workplace_id and entry.entry_type == candidate.entry_type
        ),
        None,
    )

    return ConflictScan(
        candidate=candidate,
        covering_leave=covering_leave,
        overlapping_entries=tuple(overlapping),
        visitor_entry=visitor_entry,
        existing_entry=existing_entry,
    )


def classify_candidate(
    candidate: CandidateEntry,
    *,
    home_workplace_id: int | None,
    day_entries: Sequence[Any],
    approved_leaves: Iterable[Any],
    force: bool = False,
) -> Conflict | None:
    scan = scan_candidate(
        candidate,
        home_workplace_id=home_workplace_id,
        day_entries=day_entries,
        approved_leaves=approved_leaves,
    )
    return scan.first_conflict(force=force)


def detect_conflict(
    db: Session,
    candidate: CandidateEntry,
    *,
    home_workplace_id: int | None,
) -> ConflictScan:
    day_entries = entry_store.list_entries_for_employee_day(db, candidate.employee_id, candidate.day_date)
    approved_leaves = list_approved_leaves_for_employee(
        db,
        employee_id=candidate.employee_id,
        start_date=candidate.day_date,
        end_date=candidate.day_date,
    )
    return scan_candidate(
        candidate,
        home_workplace_id=home_workplace_id,
        day_entries=day_entries,
        approved_leaves=approved_leaves,
    )
