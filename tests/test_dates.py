import unittest
from datetime import date, datetime

from fairsight.utils.dates import (
    FixedClock,
    dates_in_range,
    days_between,
    default_date_range,
    static_ranges,
    to_date_string,
)
from fairsight.utils.formatting import format_bytes, format_duration


class DateRangeTests(unittest.TestCase):
    def test_inclusive_range(self):
        self.assertEqual(dates_in_range("2024-05-01", "2024-05-03"),
                         ["2024-05-01", "2024-05-02", "2024-05-03"])

    def test_single_day(self):
        self.assertEqual(dates_in_range(date(2024, 5, 1), date(2024, 5, 1)), ["2024-05-01"])

    def test_start_after_end_is_empty(self):
        self.assertEqual(dates_in_range("2024-05-03", "2024-05-01"), [])

    def test_month_and_leap_boundary(self):
        labels = dates_in_range("2024-02-28", "2024-03-01")
        self.assertEqual(labels, ["2024-02-28", "2024-02-29", "2024-03-01"])
        self.assertEqual(len(labels), days_between("2024-02-28", "2024-03-01") + 1)

    def test_to_date_string_accepts_datetime(self):
        self.assertEqual(to_date_string(datetime(2024, 5, 1, 23, 59)), "2024-05-01")


class ClockTests(unittest.TestCase):
    def test_fixed_clock(self):
        clock = FixedClock(datetime(2024, 5, 2, 23, 59, 30))
        self.assertEqual(clock.today_string(), "2024-05-02")
        clock.advance(seconds=60)
        self.assertEqual(clock.today_string(), "2024-05-03")

    def test_default_range_is_last_week(self):
        start, end = default_date_range(FixedClock("2024-05-08"))
        self.assertEqual(start, date(2024, 5, 1))
        self.assertEqual(end, date(2024, 5, 8))

    def test_static_ranges_include_today(self):
        ranges = dict((label, (s, e)) for label, s, e in static_ranges(FixedClock("2024-05-30")))
        self.assertEqual(len(dates_in_range(*ranges["Last 7 Days"])), 7)
        self.assertEqual(len(dates_in_range(*ranges["Last 30 Days"])), 30)
        self.assertEqual(ranges["Last 30 Days"][1], date(2024, 5, 30))


class FormattingTests(unittest.TestCase):
    def test_format_bytes(self):
        self.assertEqual(format_bytes(0), "0 B")
        self.assertEqual(format_bytes(512), "512 B")
        self.assertEqual(format_bytes(1536), "1.5 KB")
        self.assertEqual(format_bytes(1024 * 1024), "1 MB")

    def test_format_duration(self):
        self.assertEqual(format_duration(5), "5s")
        self.assertEqual(format_duration(123), "2m 03s")
        self.assertEqual(format_duration(3900), "1h 05m")


if __name__ == "__main__":
    unittest.main()
