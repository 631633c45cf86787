import unittest
from datetime import datetime, timedelta

from resellerpro.time_utils import add_months, days_until, parse_iso_datetime, start_of_month, to_utc_z


class AddMonthsTests(unittest.TestCase):
    def test_plain_month(self):
        self.assertEqual(add_months(datetime(2025, 3, 15, 10, 30), 1), datetime(2025, 4, 15, 10, 30))

    def test_day_clamped_to_month_end(self):
        self.assertEqual(add_months(datetime(2025, 1, 31), 1), datetime(2025, 2, 28))
        self.assertEqual(add_months(datetime(2024, 1, 31), 1), datetime(2024, 2, 29))
        self.assertEqual(add_months(datetime(2025, 3, 31), 1), datetime(2025, 4, 30))

    def test_year_rollover(self):
        self.assertEqual(add_months(datetime(2025, 12, 5), 1), datetime(2026, 1, 5))
        self.assertEqual(add_months(datetime(2025, 11, 30), 3), datetime(2026, 2, 28))


class DaysUntilTests(unittest.TestCase):
    def setUp(self):
        self.now = datetime(2025, 6, 1, 12, 0)

    def test_rounds_partial_days_up(self):
        self.assertEqual(days_until(self.now + timedelta(days=6, hours=23), self.now), 7)
        self.assertEqual(days_until(self.now + timedelta(minutes=1), self.now), 1)

    def test_whole_days(self):
        self.assertEqual(days_until(self.now + timedelta(days=3), self.now), 3)

    def test_past_and_missing(self):
        self.assertEqual(days_until(self.now - timedelta(days=2), self.now), 0)
        self.assertIsNone(days_until(None, self.now))


class IsoTests(unittest.TestCase):
    def test_parse_z_and_offset(self):
        self.assertEqual(parse_iso_datetime("2025-06-01T10:00:00Z"), datetime(2025, 6, 1, 10, 0))
        self.assertEqual(parse_iso_datetime("2025-06-01T15:30:00+05:30"), datetime(2025, 6, 1, 10, 0))

    def test_parse_naive_is_utc(self):
        self.assertEqual(parse_iso_datetime("2025-06-01T10:00"), datetime(2025, 6, 1, 10, 0))

    def test_parse_empty(self):
        self.assertIsNone(parse_iso_datetime(None))
        self.assertIsNone(parse_iso_datetime("  "))

    def test_parse_garbage(self):
        with self.assertRaises(ValueError):
            parse_iso_datetime("next tuesday")

    def test_to_utc_z(self):
        self.assertEqual(to_utc_z(datetime(2025, 6, 1, 10, 0, 0, 999)), "2025-06-01T10:00:00Z")
        self.assertIsNone(to_utc_z(None))

    def test_start_of_month(self):
        self.assertEqual(start_of_month(datetime(2025, 6, 17, 8, 45, 3)), datetime(2025, 6, 1))


if __name__ == "__main__":
    unittest.main()
