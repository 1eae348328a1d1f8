"""Tests for the fixed-offset timestamper."""

import re
from datetime import datetime, timedelta, timezone

from comlog.timestamper import Timestamper


def _fixed(instant):
    return lambda: instant


class TestTimestamper:
    def test_applies_plus_three_offset(self):
        ts = Timestamper(clock=_fixed(datetime(2024, 1, 1, 22, 30, 15, tzinfo=timezone.utc)))
        assert ts.now() == "2024-01-02_01-30-15"

    def test_format_is_filename_and_csv_safe(self):
        ts = Timestamper()
        value = ts.now()
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}", value)
        assert ":" not in value
        assert "," not in value

    def test_second_resolution(self):
        ts = Timestamper(
            clock=_fixed(datetime(2024, 6, 1, 12, 0, 0, 999999, tzinfo=timezone.utc))
        )
        assert ts.now() == "2024-06-01_15-00-00"

    def test_naive_instant_treated_as_utc(self):
        ts = Timestamper(clock=_fixed(datetime(2024, 6, 1, 12, 0, 0)))
        assert ts.now() == "2024-06-01_15-00-00"

    def test_other_offsets_converted(self):
        plus_five = timezone(timedelta(hours=5))
        ts = Timestamper(clock=_fixed(datetime(2024, 6, 1, 12, 0, 0, tzinfo=plus_five)))
        assert ts.now() == "2024-06-01_10-00-00"

    def test_pure_function_of_clock(self):
        clock = [datetime(2025, 3, 1, 0, 0, 0, tzinfo=timezone.utc)]
        ts = Timestamper(clock=lambda: clock[0])
        first = ts.now()
        assert ts.now() == first
        clock[0] += timedelta(seconds=61)
        assert ts.now() == "2025-03-01_03-01-01"

    def test_custom_offset(self):
        ts = Timestamper(
            clock=_fixed(datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)), offset_hours=0
        )
        assert ts.now() == "2024-01-01_00-00-00"
