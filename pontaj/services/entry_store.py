from __future__ import annotations

from datetime import date

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pontaj.models import Employee, EntryType, TimesheetEntry

_MUTABLE_FIELDS = (
    "workplace_name",
    "status",
    "start_time",
    "end_time",
    "minutes_worked",
    "hours_worked",
    "leave_type",
    "notes",
    "created_by",
)


class EntryExistsError(Exception):
    """The entry key is already taken and the caller did not force."""

    def __init__(self, existing: TimesheetEntry | None):
        super().__init__("Timesheet entry already exists for this key.")
        self.existing = existing


def get_entry_by_key(
    db: Session,
    *,
    employee_id: int,
    day_date: date,
    workplace_id: int,
    entry_type: EntryType,
) -> TimesheetEntry | None:
    return db.scalar(
        select(TimesheetEntry).where(
            TimesheetEntry.employee_id == employee_id,
            TimesheetEntry.day_date == day_date,
            TimesheetEntry.workplace_id == workplace_id,
            TimesheetEntry.entry_type == entry_type,
        )
    )


def upsert_entry(db: Session, entry: TimesheetEntry, *, force: bool) -> tuple[TimesheetEntry, bool]:
    """Insert ``entry`` or, when forced, overwrite the row holding its key.

    Does not commit. Returns the persisted row and whether an existing row
    was overwritten.
    """
    existing = get_entry_by_key(
        db,
        employee_id=entry.employee_id,
        day_date=entry.day_date,
        workplace_id=entry.workplace_id,
        entry_type=entry.entry_type,
    )
    if existing is not None:
        if not force:
            raise EntryExistsError(existing)
        for field_name in _MUTABLE_FIELDS:
            setattr(existing, field_name, getattr(entry, field_name))
        db.flush()
        return existing, True

    db.add(entry)
    try:
        db.flush()
    except IntegrityError as exc:
        # A concurrent writer took the key between our read and the insert.
        # The session is unusable until the caller rolls back.
        raise EntryExistsError(None) from exc
    return entry, False


def list_entries_for_employee_day(db: Session, employee_id: int, day_date: date) -> list[TimesheetEntry]:
    return list(
        db.scalars(
            select(TimesheetEntry)
            .where(
                TimesheetEntry.employee_id == employee_id,
                TimesheetEntry.day_date == day_date,
            )
            .order_by(TimesheetEntry.id.asc())
        ).all()
    )


def list_entries_for_workplace(
    db: Session,
    workplace_id: int,
    start_date: date,
    end_date: date,
    *,
    include_away_visits: bool = True,
) -> list[TimesheetEntry]:
    """Entries recorded at the workplace plus, optionally, its staff's visits elsewhere."""
    criteria = TimesheetEntry.workplace_id == workplace_id
    if include_away_visits:
        home_staff = select(Employee.id).where(Employee.workplace_id == workplace_id)
        criteria = or_(
            criteria,
            and_(
                TimesheetEntry.entry_type == EntryType.VISITOR,
                TimesheetEntry.employee_id.in_(home_staff),
            ),
        )

    return list(
        db.scalars(
            select(TimesheetEntry)
            .where(
                criteria,
                TimesheetEntry.day_date >= start_date,
                TimesheetEntry.day_date <= end_date,
            )
            .order_by(TimesheetEntry.day_date.asc(), TimesheetEntry.employee_id.asc(), TimesheetEntry.id.asc())
        ).all()
    )


def list_entries_for_range(
    db: Session,
    start_date: date,
    end_date: date,
    *,
    employee_id: int | None = None,
) -> list[TimesheetEntry]:
    stmt = select(TimesheetEntry).where(
        TimesheetEntry.day_date >= start_date,
        TimesheetEntry.day_date <= end_date,
    )
    if employee_id is not None:
        stmt = stmt.where(TimesheetEntry.employee_id == employee_id)
    stmt = stmt.order_by(TimesheetEntry.day_date.asc(), TimesheetEntry.employee_id.asc(), TimesheetEntry.id.asc())
    return list(db.scalars(stmt).all())


def delete_entries(db: Session, entries: list[TimesheetEntry]) -> None:
    for entry in entries:
        db.delete(entry)
    db.flush()


def delete_entries_for_employee_day(
    db: Session,
    employee_id: int,
    day_date: date,
    *,
    workplace_id: int | None = None,
) -> int:
    """Remove the employee's entries for the day. Missing entries are not an error."""
    stmt = delete(TimesheetEntry).where(
        TimesheetEntry.employee_id == employee_id,
        TimesheetEntry.day_date == day_date,
    )
    if workplace_id is not None:
        stmt = stmt.where(TimesheetEntry.workplace_id == workplace_id)
    result = db.execute(stmt.execution_options(synchronize_session="fetch"))
    return int(result.rowcount or 0)
