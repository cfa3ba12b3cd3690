from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger("pontaj.schema_guard")


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
        }


REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "workplaces": {"id", "name", "is_active"},
    "employees": {"id", "full_name", "workplace_id", "monthly_target_hours", "is_active"},
    "leaves": {"id", "employee_id", "type", "start_date", "end_date", "status"},
    "timesheet_entries": {
        "id",
        "employee_id",
        "workplace_id",
        "day_date",
        "entry_type",
        "status",
        "start_time",
        "end_time",
        "minutes_worked",
        "leave_type",
        "updated_at",
    },
    "monthly_schedules": {"id", "workplace_id", "year", "month", "schedule"},
    "alembic_version": {"version_num"},
}

# Enums are stored by member name.
REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "timesheet_status": {"NECOMPLETAT", "PREZENT", "GARDA", "CONCEDIU", "LIBER", "MEDICAL"},
    "timesheet_entry_type": {"HOME", "VISITOR"},
    "leave_status": {"PENDING", "APPROVED", "REJECTED"},
}


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    issues: list[str] = []
    warnings: list[str] = []
    checked_at_utc = datetime.now(timezone.utc)
    inspector = inspect(engine)

    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        try:
            column_names = {str(item.get("name")) for item in inspector.get_columns(table_name)}
        except SQLAlchemyError as exc:
            issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue

        missing_columns = sorted(item for item in required_columns if item not in column_names)
        if missing_columns:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing_columns)}")

    get_enums = getattr(inspector, "get_enums", None)
    enums: list[dict[str, Any]] = []
    if get_enums is None:
        # Only the PostgreSQL inspector exposes native enums.
        warnings.append("ENUM_INSPECTION_UNSUPPORTED")
    else:
        try:
            enums = get_enums() or []
        except SQLAlchemyError as exc:
            warnings.append(f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}")

    enum_values_by_name: dict[str, set[str]] = {}
    for enum_item in enums:
        name = str(enum_item.get("name") or "").strip()
        labels = enum_item.get("labels")
        if name and isinstance(labels, list):
            enum_values_by_name[name] = {str(label) for label in labels}

    if get_enums is not None:
        for enum_name, required_values in REQUIRED_ENUM_VALUES.items():
            if enum_name not in enum_values_by_name:
                warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
                continue
            missing_values = sorted(item for item in required_values if item not in enum_values_by_name[enum_name])
            if missing_values:
                issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(missing_values)}")

    try:
        with engine.connect() as connection:
            row = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
            version = str(row).strip() if row is not None else ""
            if not version:
                issues.append("ALEMBIC_VERSION_EMPTY")
    except SQLAlchemyError as exc:
        issues.append(f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}")

    result = SchemaGuardResult(
        ok=len(issues) == 0,
        checked_at_utc=checked_at_utc,
        issues=issues,
        warnings=warnings,
    )
    if not result.ok:
        logger.error("schema_guard_failed", extra=result.to_dict())
    elif warnings:
        logger.warning("schema_guard_warnings", extra=result.to_dict())
    return result
