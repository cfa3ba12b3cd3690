"""Timesheet save protocol.

A save moves through ``DRAFT -> VALIDATING -> CLEAN | CONFLICT``; a conflict
either ends the call (``ABANDONED``, nothing written) or is retried by the
caller with ``force=True`` (``FORCED_SAVE``). Both successful paths end in
``PERSISTED``. The employee row lock, the conflict checks, any forced
deletions and the upsert share one transaction, so nothing can slip in
between the check and the write.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from pontaj.errors import ApiError, NotFoundError, TransportError
from pontaj.models import (
    ABSENCE_STATUSES,
    WORK_STATUSES,
    Employee,
    EntryType,
    TimesheetEntry,
    TimesheetStatus,
)
from pontaj.schemas import TimesheetEntryPayload
from pontaj.services import entry_store
from pontaj.services.conflicts import (
    CandidateEntry,
    Conflict,
    ConflictCode,
    TimesheetConflictError,
    detect_conflict,
    entry_summary,
)
from pontaj.services.directory import get_workplace
from pontaj.services.time_calc import calc_duration_minutes, normalize_time
from pontaj.settings import get_settings

logger = logging.getLogger("pontaj.timesheet")

DEFAULT_LEAVE_TYPE_BY_STATUS: dict[TimesheetStatus, str] = {
    TimesheetStatus.CONCEDIU: "odihna",
    TimesheetStatus.MEDICAL: "medical",
    TimesheetStatus.LIBER: "liber",
}


class SaveState(str, enum.Enum):
    DRAFT = "DRAFT"
    VALIDATING = "VALIDATING"
    CLEAN = "CLEAN"
    CONFLICT = "CONFLICT"
    FORCED_SAVE = "FORCED_SAVE"
    ABANDONED = "ABANDONED"
    PERSISTED = "PERSISTED"


@dataclass(frozen=True)
class SaveOutcome:
    entry: TimesheetEntry
    path: SaveState
    was_overwritten: bool
    replaced_entry_ids: tuple[int, ...] = ()
    state: SaveState = SaveState.PERSISTED


@dataclass(frozen=True)
class BatchItemResult:
    index: int
    employee_id: int
    status: str
    outcome: SaveOutcome | None = None
    conflict: Conflict | None = None
    error: ApiError | None = None


def resolve_entry_type(home_workplace_id: int | None, workplace_id: int) -> EntryType:
    if home_workplace_id is None or home_workplace_id != workplace_id:
        return EntryType.VISITOR
    return EntryType.HOME


def _load_active_employee(db: Session, employee_id: int) -> Employee:
    # Row lock serialises concurrent saves for the same employee on PostgreSQL.
    employee = db.scalar(select(Employee).where(Employee.id == employee_id).with_for_update())
    if employee is None:
        raise NotFoundError("EMPLOYEE_NOT_FOUND", "Employee not found.")
    if not employee.is_active:
        raise NotFoundError("EMPLOYEE_INACTIVE", "Inactive employee cannot be recorded on the timesheet.")
    return employee


def build_entry(
    payload: TimesheetEntryPayload,
    *,
    employee: Employee,
    workplace_name: str,
    actor: str,
) -> tuple[CandidateEntry, TimesheetEntry]:
    settings = get_settings()
    entry_type = resolve_entry_type(employee.workplace_id, payload.workplace_id)

    start_time: str | None = None
    end_time: str | None = None
    minutes = 0
    if payload.status in WORK_STATUSES:
        start_time = normalize_time(payload.start_time, settings.default_start_time)
        end_time = normalize_time(payload.end_time, settings.default_end_time)
        minutes = calc_duration_minutes(start_time, end_time)

    leave_type: str | None = None
    if payload.status in ABSENCE_STATUSES:
        leave_type = payload.leave_type or DEFAULT_LEAVE_TYPE_BY_STATUS[payload.status]

    candidate = CandidateEntry(
        employee_id=employee.id,
        workplace_id=payload.workplace_id,
        day_date=payload.day_date,
        entry_type=entry_type,
        status=payload.status,
        start_time=start_time,
        end_time=end_time,
    )
    row = TimesheetEntry(
        employee_id=employee.id,
        workplace_id=payload.workplace_id,
        workplace_name=workplace_name,
        day_date=payload.day_date,
        entry_type=entry_type,
        status=payload.status,
        start_time=start_time,
        end_time=end_time,
        minutes_worked=minutes,
        hours_worked=round(minutes / 60, 2),
        leave_type=leave_type,
        notes=(payload.notes or "").strip(),
        created_by=actor,
    )
    return candidate, row


def _log_context(payload: TimesheetEntryPayload, state: SaveState, **extra: object) -> dict[str, object]:
    context: dict[str, object] = {
        "employee_id": payload.employee_id,
        "workplace_id": payload.workplace_id,
        "day_date": payload.day_date.isoformat(),
        "state": state.value,
    }
    context.update(extra)
    return context


def save_entry(
    db: Session,
    payload: TimesheetEntryPayload,
    *,
    force: bool = False,
    actor: str = "admin",
) -> SaveOutcome:
    state = SaveState.DRAFT
    try:
        employee = _load_active_employee(db, payload.employee_id)
        workplace = get_workplace(db, payload.workplace_id)
        candidate, row = build_entry(payload, employee=employee, workplace_name=workplace.name, actor=actor)

        state = SaveState.VALIDATING
        scan = detect_conflict(db, candidate, home_workplace_id=employee.workplace_id)
        conflict = scan.first_conflict(force=force)
        if conflict is not None:
            db.rollback()
            logger.info(
                "timesheet_save_conflict",
                extra=_log_context(
                    payload,
                    SaveState.CONFLICT,
                    code=conflict.code.value,
                    can_force=conflict.can_force,
                    force=force,
                ),
            )
            raise TimesheetConflictError(conflict)

        state = SaveState.FORCED_SAVE if force else SaveState.CLEAN
        replaced_entry_ids: tuple[int, ...] = ()
        if force and scan.overlapping_entries:
            replaced_entry_ids = tuple(item.id for item in scan.overlapping_entries)
            entry_store.delete_entries(db, list(scan.overlapping_entries))
        if force and scan.covering_leave is not None:
            leave_type = scan.covering_leave.type.value
            row.notes = f"AUTO: concediu aprobat ({leave_type}). {row.notes}".strip()

        try:
            persisted, overwritten = entry_store.upsert_entry(db, row, force=force)
        except entry_store.EntryExistsError as exc:
            db.rollback()
            raise TimesheetConflictError(
                Conflict(
                    code=ConflictCode.PONTAJ_EXISTS,
                    new_entry=candidate.summary(),
                    existing_entry=entry_summary(exc.existing) if exc.existing is not None else None,
                )
            ) from exc

        db.commit()
        db.refresh(persisted)
    except DBAPIError as exc:
        db.rollback()
        if isinstance(exc, IntegrityError):
            raise
        logger.exception("timesheet_save_storage_error", extra=_log_context(payload, state))
        raise TransportError() from exc
    except ApiError:
        db.rollback()
        raise

    outcome = SaveOutcome(
        entry=persisted,
        path=state,
        was_overwritten=overwritten or bool(replaced_entry_ids),
        replaced_entry_ids=replaced_entry_ids,
    )
    logger.info(
        "timesheet_saved",
        extra=_log_context(
            payload,
            SaveState.PERSISTED,
            path=state.value,
            entry_id=persisted.id,
            entry_type=persisted.entry_type.value,
            hours_worked=persisted.hours_worked,
            was_overwritten=outcome.was_overwritten,
            replaced_entry_ids=list(replaced_entry_ids),
        ),
    )
    return outcome


def save_entries_batch(
    db: Session,
    payloads: Sequence[TimesheetEntryPayload],
    *,
    force: bool = False,
    actor: str = "admin",
) -> list[BatchItemResult]:
    """Save each item in its own transaction.

    A conflict or a missing/inactive employee fails only that item. Storage
    failures propagate and stop the batch.
    """
    results: list[BatchItemResult] = []
    for index, payload in enumerate(payloads):
        try:
            outcome = save_entry(db, payload, force=force, actor=actor)
        except TimesheetConflictError as exc:
            results.append(
                BatchItemResult(index=index, employee_id=payload.employee_id, status="conflict", conflict=exc.conflict)
            )
            continue
        except NotFoundError as exc:
            logger.warning(
                "timesheet_batch_item_skipped",
                extra={"index": index, "employee_id": payload.employee_id, "code": exc.code},
            )
            results.append(
                BatchItemResult(index=index, employee_id=payload.employee_id, status="not_found", error=exc)
            )
            continue
        results.append(BatchItemResult(index=index, employee_id=payload.employee_id, status="persisted", outcome=outcome))
    return results


def delete_entry(
    db: Session,
    *,
    employee_id: int,
    day_date: date,
    workplace_id: int | None = None,
    actor: str = "admin",
) -> int:
    try:
        deleted = entry_store.delete_entries_for_employee_day(
            db,
            employee_id,
            day_date,
            workplace_id=workplace_id,
        )
        db.commit()
    except DBAPIError as exc:
        db.rollback()
        if isinstance(exc, IntegrityError):
            raise
        logger.exception("timesheet_delete_storage_error", extra={"employee_id": employee_id})
        raise TransportError() from exc

    logger.info(
        "timesheet_deleted",
        extra={
            "employee_id": employee_id,
            "day_date": day_date.isoformat(),
            "workplace_id": workplace_id,
            "deleted": deleted,
            "actor": actor,
        },
    )
    return deleted
