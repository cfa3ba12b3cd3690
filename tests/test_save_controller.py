from __future__ import annotations

import unittest
from datetime import date
from unittest.mock import patch

from sqlalchemy.exc import InterfaceError, OperationalError

from pontaj.errors import NotFoundError, TransportError
from pontaj.models import EntryType, Leave, LeaveStatus, TimesheetStatus
from pontaj.services import entry_store
from pontaj.services.conflicts import ConflictCode, TimesheetConflictError
from pontaj.services.reconciliation import aggregate_hours
from pontaj.services.timesheet import SaveState, delete_entry, save_entries_batch, save_entry
from tests.support import add_employee, add_leave, add_workplace, make_session, payload

DAY = date(2026, 5, 14)


class SaveEntryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.w1 = add_workplace(self.db, "Farmacia Centru")
        self.w2 = add_workplace(self.db, "Farmacia Gara")
        self.employee = add_employee(self.db, "Ana Pop", self.w1)

    def tearDown(self) -> None:
        self.db.close()

    def _day_entries(self):
        return entry_store.list_entries_for_employee_day(self.db, self.employee.id, DAY)

    def test_clean_save_derives_home_type_and_hours(self) -> None:
        outcome = save_entry(self.db, payload(self.employee, self.w1, DAY, "22:00", "6:00"), actor="manager")

        self.assertEqual(outcome.path, SaveState.CLEAN)
        self.assertEqual(outcome.state, SaveState.PERSISTED)
        self.assertFalse(outcome.was_overwritten)
        self.assertEqual(outcome.entry.entry_type, EntryType.HOME)
        self.assertEqual(outcome.entry.end_time, "06:00")
        self.assertEqual(outcome.entry.hours_worked, 8.0)
        self.assertEqual(outcome.entry.workplace_name, "Farmacia Centru")
        self.assertEqual(outcome.entry.created_by, "manager")

    def test_save_at_other_workplace_is_visitor(self) -> None:
        outcome = save_entry(self.db, payload(self.employee, self.w2, DAY))
        self.assertEqual(outcome.entry.entry_type, EntryType.VISITOR)

    def test_employee_without_home_is_always_visitor(self) -> None:
        floater = add_employee(self.db, "Dan Floater", None)
        outcome = save_entry(self.db, payload(floater, self.w1, DAY))
        self.assertEqual(outcome.entry.entry_type, EntryType.VISITOR)

    def test_missing_times_use_defaults(self) -> None:
        outcome = save_entry(self.db, payload(self.employee, self.w1, DAY, None, "garbage"))
        self.assertEqual((outcome.entry.start_time, outcome.entry.end_time), ("08:00", "16:00"))

    def test_absence_status_has_no_interval(self) -> None:
        outcome = save_entry(
            self.db,
            payload(self.employee, self.w1, DAY, status=TimesheetStatus.MEDICAL),
        )
        self.assertIsNone(outcome.entry.start_time)
        self.assertEqual(outcome.entry.minutes_worked, 0)
        self.assertEqual(outcome.entry.leave_type, "medical")

    def test_existing_key_conflicts_then_force_replaces(self) -> None:
        save_entry(self.db, payload(self.employee, self.w1, DAY, "08:00", "16:00"))

        with self.assertRaises(TimesheetConflictError) as ctx:
            save_entry(self.db, payload(self.employee, self.w1, DAY, "10:00", "18:00"))
        self.assertEqual(ctx.exception.conflict.code, ConflictCode.PONTAJ_EXISTS)

        outcome = save_entry(self.db, payload(self.employee, self.w1, DAY, "10:00", "18:00"), force=True)
        self.assertEqual(outcome.path, SaveState.FORCED_SAVE)
        self.assertTrue(outcome.was_overwritten)

        rows = self._day_entries()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].start_time, "10:00")

    def test_overlap_conflict_and_forced_replacement(self) -> None:
        first = save_entry(self.db, payload(self.employee, self.w1, DAY, "09:00", "17:00"))

        with self.assertRaises(TimesheetConflictError) as ctx:
            save_entry(self.db, payload(self.employee, self.w2, DAY, "16:00", "20:00"))
        conflict = ctx.exception.conflict
        self.assertEqual(conflict.code, ConflictCode.OVERLAPPING_HOURS)
        self.assertTrue(conflict.can_force)
        self.assertEqual([item["id"] for item in conflict.overlapping_entries], [first.entry.id])
        self.assertEqual(len(self._day_entries()), 1)

        outcome = save_entry(self.db, payload(self.employee, self.w2, DAY, "16:00", "20:00"), force=True)
        self.assertEqual(outcome.replaced_entry_ids, (first.entry.id,))

        rows = self._day_entries()
        self.assertEqual([(row.workplace_id, row.entry_type) for row in rows], [(self.w2.id, EntryType.VISITOR)])

    def test_back_to_back_shifts_are_saved(self) -> None:
        save_entry(self.db, payload(self.employee, self.w1, DAY, "08:00", "14:00"))
        save_entry(self.db, payload(self.employee, self.w2, DAY, "14:00", "20:00"))
        self.assertEqual(len(self._day_entries()), 2)

    def test_leave_conflict_and_forced_save_keeps_leave(self) -> None:
        leave = add_leave(self.db, self.employee, date(2026, 5, 12), date(2026, 5, 16))

        with self.assertRaises(TimesheetConflictError) as ctx:
            save_entry(self.db, payload(self.employee, self.w1, DAY))
        self.assertEqual(ctx.exception.conflict.code, ConflictCode.LEAVE_APPROVED)
        self.assertEqual(self._day_entries(), [])

        outcome = save_entry(self.db, payload(self.employee, self.w1, DAY, notes="tura extra"), force=True)
        self.assertTrue(outcome.entry.notes.startswith("AUTO: concediu aprobat (odihna)."))
        self.assertIn("tura extra", outcome.entry.notes)

        stored = self.db.get(Leave, leave.id)
        self.assertIsNotNone(stored)
        self.assertEqual(stored.status, LeaveStatus.APPROVED)
        self.assertEqual((stored.start_date, stored.end_date), (date(2026, 5, 12), date(2026, 5, 16)))

    def test_visitor_elsewhere_cannot_be_forced(self) -> None:
        save_entry(self.db, payload(self.employee, self.w2, DAY, "06:00", "08:00"))

        for force in (False, True):
            with self.assertRaises(TimesheetConflictError) as ctx:
                save_entry(self.db, payload(self.employee, self.w1, DAY, "10:00", "18:00"), force=force)
            self.assertEqual(ctx.exception.conflict.code, ConflictCode.VISITOR_ALREADY_PONTED)
            self.assertFalse(ctx.exception.conflict.can_force)

        rows = self._day_entries()
        self.assertEqual([row.workplace_id for row in rows], [self.w2.id])

    def test_inactive_employee_is_not_found(self) -> None:
        former = add_employee(self.db, "Fost Angajat", self.w1, is_active=False)
        with self.assertRaises(NotFoundError) as ctx:
            save_entry(self.db, payload(former, self.w1, DAY))
        self.assertEqual(ctx.exception.code, "EMPLOYEE_INACTIVE")
        self.assertEqual(ctx.exception.status_code, 404)

    def test_unknown_workplace_is_not_found(self) -> None:
        draft = payload(self.employee, self.w1, DAY).model_copy(update={"workplace_id": 999})
        with self.assertRaises(NotFoundError) as ctx:
            save_entry(self.db, draft)
        self.assertEqual(ctx.exception.code, "WORKPLACE_NOT_FOUND")

    def test_storage_failure_becomes_transport_error(self) -> None:
        error = OperationalError("SELECT 1", {}, Exception("connection lost"))
        with patch("pontaj.services.timesheet.detect_conflict", side_effect=error):
            with self.assertRaises(TransportError) as ctx:
                save_entry(self.db, payload(self.employee, self.w1, DAY))
        self.assertEqual(ctx.exception.status_code, 503)
        self.assertEqual(self._day_entries(), [])

    def test_lost_connection_becomes_transport_error(self) -> None:
        error = InterfaceError("SELECT 1", {}, Exception("connection closed"))
        with patch("pontaj.services.timesheet.detect_conflict", side_effect=error):
            with self.assertRaises(TransportError):
                save_entry(self.db, payload(self.employee, self.w1, DAY))
        with patch("pontaj.services.entry_store.delete_entries_for_employee_day", side_effect=error):
            with self.assertRaises(TransportError) as ctx:
                delete_entry(self.db, employee_id=self.employee.id, day_date=DAY)
        self.assertEqual(ctx.exception.code, "STORAGE_UNAVAILABLE")

    def test_delete_removes_entry_from_reads_and_totals(self) -> None:
        save_entry(self.db, payload(self.employee, self.w1, DAY))
        save_entry(self.db, payload(self.employee, self.w1, date(2026, 5, 15), "08:00", "12:00"))

        self.assertEqual(delete_entry(self.db, employee_id=self.employee.id, day_date=DAY), 1)
        self.assertEqual(delete_entry(self.db, employee_id=self.employee.id, day_date=DAY), 0)

        entries = entry_store.list_entries_for_range(self.db, date(2026, 5, 1), date(2026, 5, 31))
        self.assertEqual([row.day_date for row in entries], [date(2026, 5, 15)])
        totals = aggregate_hours(
            entries,
            {self.employee.id: self.employee},
            start_date=date(2026, 5, 1),
            end_date=date(2026, 5, 31),
        )
        self.assertEqual(totals[0].total_hours, 4.0)


class SaveBatchTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.w1 = add_workplace(self.db, "Farmacia Centru")
        self.ana = add_employee(self.db, "Ana Pop", self.w1)
        self.former = add_employee(self.db, "Fost Angajat", self.w1, is_active=False)
        self.ion = add_employee(self.db, "Ion Ionescu", self.w1)

    def tearDown(self) -> None:
        self.db.close()

    def test_missing_employee_fails_only_its_item(self) -> None:
        save_entry(self.db, payload(self.ion, self.w1, DAY))

        results = save_entries_batch(
            self.db,
            [
                payload(self.ana, self.w1, DAY),
                payload(self.former, self.w1, DAY),
                payload(self.ion, self.w1, DAY, "09:00", "17:00"),
            ],
        )

        self.assertEqual([item.status for item in results], ["persisted", "not_found", "conflict"])
        self.assertEqual(results[1].error.code, "EMPLOYEE_INACTIVE")
        self.assertEqual(results[2].conflict.code, ConflictCode.PONTAJ_EXISTS)
        self.assertEqual(len(entry_store.list_entries_for_employee_day(self.db, self.ana.id, DAY)), 1)


if __name__ == "__main__":
    unittest.main()
