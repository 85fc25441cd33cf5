"""
Unit tests for shift-aware end time computation.

Default shift is 07:00-16:00, Monday to Friday.
2024-06-03 is a Monday; 2024-06-07 is the Friday of the same week.
"""
from datetime import datetime

import pytest

from app.services.shift_calendar import compute_end, is_business_day


pytestmark = pytest.mark.unit


class TestComputeEnd:

    def test_fits_in_remaining_shift(self):
        assert compute_end(datetime(2024, 6, 3, 9, 0), 3) == datetime(2024, 6, 3, 12, 0)

    def test_rolls_into_next_morning(self):
        """One hour today, the second hour from 07:00 tomorrow."""
        assert compute_end(datetime(2024, 6, 3, 15, 0), 2) == datetime(2024, 6, 4, 8, 0)

    def test_exact_fit_ends_at_shift_end_same_day(self):
        assert compute_end(datetime(2024, 6, 3, 7, 0), 9) == datetime(2024, 6, 3, 16, 0)

    def test_friday_full_shift_ends_friday(self):
        assert compute_end(datetime(2024, 6, 7, 7, 0), 9) == datetime(2024, 6, 7, 16, 0)

    def test_friday_half_hour_over_lands_monday(self):
        assert compute_end(datetime(2024, 6, 7, 7, 0), 9.5) == datetime(2024, 6, 10, 7, 30)

    def test_friday_overflow_skips_weekend(self):
        assert compute_end(datetime(2024, 6, 7, 14, 0), 4) == datetime(2024, 6, 10, 9, 0)

    def test_multi_day_duration(self):
        # 1h Monday, 9h Tuesday, 2h Wednesday
        assert compute_end(datetime(2024, 6, 3, 15, 0), 12) == datetime(2024, 6, 5, 9, 0)

    def test_fractional_hours(self):
        assert compute_end(datetime(2024, 6, 3, 15, 30), 1) == datetime(2024, 6, 4, 7, 30)

    def test_start_after_shift_end_rolls_whole_duration(self):
        assert compute_end(datetime(2024, 6, 3, 17, 0), 2) == datetime(2024, 6, 4, 9, 0)

    def test_custom_shift_window(self):
        end = compute_end(datetime(2024, 6, 3, 12, 0), 10, shift_start=6, shift_end=14)
        assert end == datetime(2024, 6, 4, 14, 0)


class TestBusinessDay:

    @pytest.mark.parametrize("day,expected", [
        (datetime(2024, 6, 3), True),
        (datetime(2024, 6, 7), True),
        (datetime(2024, 6, 8), False),
        (datetime(2024, 6, 9), False),
    ])
    def test_weekends_are_not_business_days(self, day, expected):
        assert is_business_day(day) is expected
