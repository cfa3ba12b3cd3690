from __future__ import annotations

import unittest
from datetime import date

from pontaj.errors import ApiError
from pontaj.models import LeaveStatus, LeaveType
from pontaj.schemas import LeaveCreateRequest
from pontaj.services.leaves import (
    create_leave,
    list_approved_leaves_for_employee,
    list_leaves,
    set_leave_status,
)
from tests.support import add_employee, add_leave, add_workplace, make_session


class LeavesServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.workplace = add_workplace(self.db, "Farmacia Centru")
        self.employee = add_employee(self.db, "Ana Pop", self.workplace)

    def tearDown(self) -> None:
        self.db.close()

    def test_create_leave_counts_days_inclusively(self) -> None:
        leave = create_leave(
            self.db,
            LeaveCreateRequest(
                employee_id=self.employee.id,
                type=LeaveType.MEDICAL,
                start_date=date(2026, 2, 26),
                end_date=date(2026, 3, 2),
            ),
        )
        self.assertEqual(leave.days, 5)
        self.assertEqual(leave.status, LeaveStatus.PENDING)
        self.assertEqual(leave.workplace_id, self.workplace.id)

    def test_month_filter_requires_year_and_month(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            list_leaves(self.db, employee_id=None, year=2026, month=None)
        self.assertEqual(ctx.exception.code, "VALIDATION_ERROR")

    def test_month_filter_matches_overlapping_leaves(self) -> None:
        add_leave(self.db, self.employee, date(2026, 2, 26), date(2026, 3, 2))
        add_leave(self.db, self.employee, date(2026, 4, 1), date(2026, 4, 3))

        march = list_leaves(self.db, employee_id=self.employee.id, year=2026, month=3)

        self.assertEqual([item.start_date for item in march], [date(2026, 2, 26)])

    def test_only_approved_leaves_feed_conflict_checks(self) -> None:
        pending = add_leave(self.db, self.employee, date(2026, 3, 9), date(2026, 3, 9), status=LeaveStatus.PENDING)
        day = date(2026, 3, 9)

        self.assertEqual(
            list_approved_leaves_for_employee(self.db, employee_id=self.employee.id, start_date=day, end_date=day),
            [],
        )

        set_leave_status(self.db, pending.id, LeaveStatus.APPROVED)
        approved = list_approved_leaves_for_employee(self.db, employee_id=self.employee.id, start_date=day, end_date=day)
        self.assertEqual([item.id for item in approved], [pending.id])


if __name__ == "__main__":
    unittest.main()
