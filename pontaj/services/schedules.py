from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from pontaj.models import MonthlySchedule
from pontaj.schemas import ScheduleRead, ScheduleUpsertRequest
from pontaj.services.directory import get_workplace


def _normalize_schedule(raw: dict[str, dict[str, str]]) -> dict[str, dict[str, str]]:
    # Empty cells are dropped so a cleared day does not linger as "".
    normalized: dict[str, dict[str, str]] = {}
    for employee_key, days in raw.items():
        cleaned = {day_key: shift for day_key, shift in days.items() if shift and shift.strip()}
        if cleaned:
            normalized[str(employee_key)] = cleaned
    return normalized


def _get_schedule_row(db: Session, workplace_id: int, year: int, month: int) -> MonthlySchedule | None:
    return db.scalar(
        select(MonthlySchedule).where(
            MonthlySchedule.workplace_id == workplace_id,
            MonthlySchedule.year == year,
            MonthlySchedule.month == month,
        )
    )


def get_schedule(db: Session, *, workplace_id: int, year: int, month: int) -> ScheduleRead:
    get_workplace(db, workplace_id)
    row = _get_schedule_row(db, workplace_id, year, month)
    return ScheduleRead(
        workplace_id=workplace_id,
        year=year,
        month=month,
        schedule=dict(row.schedule) if row is not None else {},
    )


def upsert_schedule(db: Session, payload: ScheduleUpsertRequest) -> ScheduleRead:
    get_workplace(db, payload.workplace_id)
    schedule = _normalize_schedule(payload.schedule)
    row = _get_schedule_row(db, payload.workplace_id, payload.year, payload.month)
    if row is None:
        row = MonthlySchedule(
            workplace_id=payload.workplace_id,
            year=payload.year,
            month=payload.month,
            schedule=schedule,
        )
        db.add(row)
    else:
        row.schedule = schedule
    db.commit()
    db.refresh(row)
    return ScheduleRead(workplace_id=row.workplace_id, year=row.year, month=row.month, schedule=dict(row.schedule))
