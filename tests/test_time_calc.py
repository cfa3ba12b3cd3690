from __future__ import annotations

import unittest

from pontaj.services.time_calc import (
    calc_duration_hours,
    calc_duration_minutes,
    intervals_overlap,
    normalize_time,
    work_interval,
)


class NormalizeTimeTests(unittest.TestCase):
    def test_pads_and_clamps_components(self) -> None:
        self.assertEqual(normalize_time("8:5"), "08:05")
        self.assertEqual(normalize_time("25:00"), "23:00")
        self.assertEqual(normalize_time("10:75"), "10:59")
        self.assertEqual(normalize_time("-3:00"), "00:00")
        self.assertEqual(normalize_time("7"), "07:00")

    def test_malformed_input_uses_fallback(self) -> None:
        self.assertEqual(normalize_time("abc", "09:30"), "09:30")
        self.assertEqual(normalize_time(None, "16:00"), "16:00")
        self.assertEqual(normalize_time("", "16:00"), "16:00")

    def test_malformed_fallback_uses_default(self) -> None:
        self.assertEqual(normalize_time("x", "also-bad"), "08:00")

    def test_idempotent_over_all_valid_times(self) -> None:
        for hour in range(24):
            for minute in range(60):
                once = normalize_time(f"{hour}:{minute}")
                self.assertEqual(normalize_time(once), once)


class DurationTests(unittest.TestCase):
    def test_day_shift(self) -> None:
        self.assertEqual(calc_duration_hours("08:00", "16:00"), 8)

    def test_overnight_shift_wraps(self) -> None:
        self.assertEqual(calc_duration_hours("22:00", "06:00"), 8)
        self.assertEqual(work_interval("22:00", "06:00"), (22 * 60, 30 * 60))

    def test_equal_start_and_end_is_full_day(self) -> None:
        self.assertEqual(calc_duration_minutes("08:00", "08:00"), 24 * 60)

    def test_duration_never_negative(self) -> None:
        for start in ("00:00", "07:30", "12:00", "23:59"):
            for end in ("00:00", "06:15", "12:00", "23:59"):
                self.assertGreaterEqual(calc_duration_minutes(start, end), 0)

    def test_fractional_hours_rounded(self) -> None:
        self.assertEqual(calc_duration_hours("08:00", "15:20"), 7.33)


class OverlapTests(unittest.TestCase):
    def test_partial_overlap(self) -> None:
        self.assertTrue(intervals_overlap(work_interval("09:00", "17:00"), work_interval("16:00", "20:00")))

    def test_back_to_back_shifts_do_not_overlap(self) -> None:
        self.assertFalse(intervals_overlap(work_interval("08:00", "14:00"), work_interval("14:00", "20:00")))

    def test_overnight_shift_overlaps_late_evening(self) -> None:
        self.assertTrue(intervals_overlap(work_interval("20:00", "08:00"), work_interval("22:00", "23:00")))


if __name__ == "__main__":
    unittest.main()
