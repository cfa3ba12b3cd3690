from __future__ import annotations

import unittest
from datetime import date
from unittest.mock import patch

from sqlalchemy import func, select

from pontaj.models import EntryType, TimesheetEntry, TimesheetStatus
from pontaj.services import entry_store
from tests.support import add_employee, add_workplace, make_session

DAY = date(2026, 4, 2)


class EntryStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.home = add_workplace(self.db, "Farmacia Centru")
        self.other = add_workplace(self.db, "Farmacia Gara")
        self.employee = add_employee(self.db, "Ana Pop", self.home)
        self.guest = add_employee(self.db, "Ion Ionescu", self.other)

    def tearDown(self) -> None:
        self.db.close()

    def _row(self, employee, workplace, entry_type: EntryType, start: str, end: str, day_date: date = DAY):
        return TimesheetEntry(
            employee_id=employee.id,
            workplace_id=workplace.id,
            workplace_name=workplace.name,
            day_date=day_date,
            entry_type=entry_type,
            status=TimesheetStatus.PREZENT,
            start_time=start,
            end_time=end,
            minutes_worked=480,
            hours_worked=8.0,
            notes="",
            created_by="test",
        )

    def _count(self) -> int:
        return int(self.db.scalar(select(func.count()).select_from(TimesheetEntry)) or 0)

    def test_upsert_inserts_when_key_free(self) -> None:
        row, overwritten = entry_store.upsert_entry(
            self.db,
            self._row(self.employee, self.home, EntryType.HOME, "08:00", "16:00"),
            force=False,
        )
        self.db.commit()
        self.assertFalse(overwritten)
        self.assertIsNotNone(row.id)
        self.assertEqual(self._count(), 1)

    def test_upsert_refuses_taken_key_without_force(self) -> None:
        entry_store.upsert_entry(self.db, self._row(self.employee, self.home, EntryType.HOME, "08:00", "16:00"), force=False)
        self.db.commit()

        with self.assertRaises(entry_store.EntryExistsError) as ctx:
            entry_store.upsert_entry(
                self.db,
                self._row(self.employee, self.home, EntryType.HOME, "10:00", "18:00"),
                force=False,
            )
        self.assertEqual(ctx.exception.existing.start_time, "08:00")

    def test_repeated_forced_upserts_keep_one_row_per_key(self) -> None:
        for start, end in (("08:00", "16:00"), ("09:00", "17:00"), ("10:00", "18:00")):
            entry_store.upsert_entry(
                self.db,
                self._row(self.employee, self.home, EntryType.HOME, start, end),
                force=True,
            )
            self.db.commit()

        rows = entry_store.list_entries_for_employee_day(self.db, self.employee.id, DAY)
        self.assertEqual(len(rows), 1)
        self.assertEqual((rows[0].start_time, rows[0].end_time), ("10:00", "18:00"))

    def test_store_unique_key_rejects_insert_missed_by_lookup(self) -> None:
        entry_store.upsert_entry(self.db, self._row(self.employee, self.home, EntryType.HOME, "08:00", "16:00"), force=False)
        self.db.commit()

        with patch("pontaj.services.entry_store.get_entry_by_key", return_value=None):
            with self.assertRaises(entry_store.EntryExistsError) as ctx:
                entry_store.upsert_entry(
                    self.db,
                    self._row(self.employee, self.home, EntryType.HOME, "10:00", "18:00"),
                    force=True,
                )
        self.assertIsNone(ctx.exception.existing)
        self.db.rollback()

        self.assertEqual(self._count(), 1)
        kept = entry_store.list_entries_for_employee_day(self.db, self.employee.id, DAY)
        self.assertEqual(kept[0].start_time, "08:00")

        entry_store.upsert_entry(
            self.db,
            self._row(self.employee, self.home, EntryType.HOME, "08:00", "16:00", date(2026, 4, 3)),
            force=False,
        )
        self.db.commit()
        self.assertEqual(self._count(), 2)

    def test_workplace_listing_includes_visitors_and_away_visits(self) -> None:
        self.db.add_all(
            [
                self._row(self.employee, self.home, EntryType.HOME, "08:00", "12:00"),
                self._row(self.guest, self.home, EntryType.VISITOR, "12:00", "20:00"),
                self._row(self.employee, self.other, EntryType.VISITOR, "14:00", "18:00", date(2026, 4, 3)),
                self._row(self.guest, self.other, EntryType.HOME, "08:00", "16:00", date(2026, 4, 3)),
            ]
        )
        self.db.commit()

        with_visits = entry_store.list_entries_for_workplace(self.db, self.home.id, date(2026, 4, 1), date(2026, 4, 30))
        self.assertEqual(
            sorted((row.employee_id, row.workplace_id) for row in with_visits),
            sorted(
                [
                    (self.employee.id, self.home.id),
                    (self.guest.id, self.home.id),
                    (self.employee.id, self.other.id),
                ]
            ),
        )

        without_visits = entry_store.list_entries_for_workplace(
            self.db,
            self.home.id,
            date(2026, 4, 1),
            date(2026, 4, 30),
            include_away_visits=False,
        )
        self.assertEqual({row.workplace_id for row in without_visits}, {self.home.id})

    def test_delete_for_employee_day_is_noop_when_missing(self) -> None:
        deleted = entry_store.delete_entries_for_employee_day(self.db, self.employee.id, DAY)
        self.db.commit()
        self.assertEqual(deleted, 0)

    def test_delete_for_employee_day_can_target_one_workplace(self) -> None:
        self.db.add_all(
            [
                self._row(self.employee, self.home, EntryType.HOME, "08:00", "12:00"),
                self._row(self.employee, self.other, EntryType.VISITOR, "14:00", "18:00"),
            ]
        )
        self.db.commit()

        deleted = entry_store.delete_entries_for_employee_day(
            self.db,
            self.employee.id,
            DAY,
            workplace_id=self.other.id,
        )
        self.db.commit()

        self.assertEqual(deleted, 1)
        remaining = entry_store.list_entries_for_employee_day(self.db, self.employee.id, DAY)
        self.assertEqual([row.workplace_id for row in remaining], [self.home.id])


if __name__ == "__main__":
    unittest.main()
