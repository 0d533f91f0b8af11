"""Unit tests for recurrence date generation"""

import pytest
from datetime import date
from obligation_engine.domain.exceptions import InvalidRecurrenceError
from obligation_engine.domain.models import Periodicity
from obligation_engine.domain.schedule import generate_dates, next_occurrence, normalize_periodicity


def test_generate_monthly_dates():
    """Monthly series keeps the day of month"""
    dates = generate_dates(date(2024, 1, 15), date(2024, 4, 15), Periodicity.MONTHLY)

    assert dates == [date(2024, 1, 15), date(2024, 2, 15), date(2024, 3, 15), date(2024, 4, 15)]


def test_generate_day_based_periods():
    start = date(2024, 1, 1)
    end = date(2024, 1, 31)

    assert len(generate_dates(start, end, Periodicity.DAILY)) == 31
    assert generate_dates(start, end, Periodicity.WEEKLY) == [
        date(2024, 1, 1),
        date(2024, 1, 8),
        date(2024, 1, 15),
        date(2024, 1, 22),
        date(2024, 1, 29),
    ]
    assert generate_dates(start, end, Periodicity.BIWEEKLY) == [
        date(2024, 1, 1),
        date(2024, 1, 15),
        date(2024, 1, 29),
    ]


@pytest.mark.parametrize(
    "periodicity, expected",
    [
        (Periodicity.BIMONTHLY, [date(2024, 1, 10), date(2024, 3, 10), date(2024, 5, 10), date(2024, 7, 10)]),
        (Periodicity.QUARTERLY, [date(2024, 1, 10), date(2024, 4, 10), date(2024, 7, 10)]),
        (Periodicity.SEMIANNUAL, [date(2024, 1, 10), date(2024, 7, 10)]),
        (Periodicity.ANNUAL, [date(2024, 1, 10)]),
    ],
)
def test_generate_month_based_periods(periodicity, expected):
    assert generate_dates(date(2024, 1, 10), date(2024, 8, 1), periodicity) == expected


def test_month_end_day_is_restored_after_short_months():
    """Jan 31 clamps to Feb 29 but March is back on the 31st"""
    dates = generate_dates(date(2024, 1, 31), date(2024, 5, 31), Periodicity.MONTHLY)

    assert dates == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
        date(2024, 4, 30),
        date(2024, 5, 31),
    ]


@pytest.mark.parametrize("periodicity", list(Periodicity))
@pytest.mark.parametrize(
    "start, end",
    [
        (date(2024, 1, 15), date(2024, 4, 15)),
        (date(2023, 12, 31), date(2025, 3, 1)),
        (date(2024, 2, 29), date(2024, 2, 29)),
    ],
)
def test_generated_sequence_properties(periodicity, start, end):
    """Ascending, inside [start, end], starting at start, and repeatable"""
    dates = generate_dates(start, end, periodicity)

    assert dates[0] == start
    assert all(start <= d <= end for d in dates)
    assert all(a < b for a, b in zip(dates, dates[1:]))
    assert generate_dates(start, end, periodicity) == dates


def test_end_before_start_yields_nothing():
    assert generate_dates(date(2024, 3, 1), date(2024, 2, 1), Periodicity.MONTHLY) == []


def test_unknown_periodicity_falls_back_to_monthly():
    assert normalize_periodicity("fortnightly") == Periodicity.MONTHLY
    assert normalize_periodicity(None) == Periodicity.MONTHLY
    assert generate_dates(date(2024, 1, 15), date(2024, 3, 15), "fortnightly") == [
        date(2024, 1, 15),
        date(2024, 2, 15),
        date(2024, 3, 15),
    ]


def test_stored_string_periodicity_is_accepted():
    assert normalize_periodicity("weekly") == Periodicity.WEEKLY


def test_next_occurrence():
    assert next_occurrence(date(2024, 3, 15), Periodicity.WEEKLY) == date(2024, 3, 22)
    assert next_occurrence(date(2024, 3, 15), Periodicity.MONTHLY) == date(2024, 4, 15)
    assert next_occurrence(date(2024, 1, 31), Periodicity.MONTHLY) == date(2024, 2, 29)


def test_generation_cap_raises():
    """A runaway daily series is rejected instead of flooding the store"""
    with pytest.raises(InvalidRecurrenceError):
        generate_dates(date(2024, 1, 1), date(2034, 1, 1), Periodicity.DAILY, max_count=100)
