from __future__ import annotations

from datetime import date

import pytest

from periodtrend.calendar_resolver import all_periods
from periodtrend.exceptions import InvalidDate, InvalidPeriodRange
from periodtrend.range_resolver import (
    DateBounds,
    DateRange,
    PeriodRange,
    YearRange,
    period_range_to_dates,
    resolve_selector,
    year_range_to_dates,
    year_range_to_periods,
)


def test_single_period_range_is_the_period():
    bounds = period_range_to_dates(2024, 1, 1)
    assert bounds == DateBounds(start=date(2024, 1, 7), end=date(2024, 2, 3))
    assert bounds.days == 28


def test_multi_period_range_spans_start_to_end():
    bounds = period_range_to_dates(2024, 2, 4)
    assert bounds.start == date(2024, 2, 4)
    assert bounds.end == date(2024, 4, 27)
    assert bounds.days == 3 * 28


@pytest.mark.parametrize("year", [2020, 2023, 2024])
def test_every_day_of_a_period_lies_in_its_single_period_range(year):
    for period in all_periods(year):
        bounds = period_range_to_dates(year, period.period_no, period.period_no)
        for day in DateBounds(period.start, period.end).iter_days():
            assert bounds.start <= day <= bounds.end


@pytest.mark.parametrize("args", [(2024, 5, 4), (2024, 0, 3), (2024, 1, 14), (0, 1, 2)])
def test_period_range_rejects_invalid_input(args):
    with pytest.raises(InvalidPeriodRange):
        period_range_to_dates(*args)


def test_year_range_to_periods_is_chronological():
    periods = year_range_to_periods(2023, 2024)
    assert len(periods) == 26
    assert [p.key for p in periods[:2]] == ["2023-P01", "2023-P02"]
    assert periods[12].key == "2023-P13"
    assert periods[13].key == "2024-P01"
    starts = [p.start for p in periods]
    assert starts == sorted(starts)


def test_year_range_to_dates_excludes_trailing_residual_days():
    assert year_range_to_dates(2023, 2024) == DateBounds(date(2023, 1, 1), date(2025, 1, 4))
    assert year_range_to_dates(2023, 2023).end == date(2023, 12, 30)


def test_year_range_rejects_reversed_years():
    with pytest.raises(InvalidPeriodRange):
        year_range_to_periods(2025, 2024)
    with pytest.raises(InvalidPeriodRange):
        year_range_to_dates(2025, 2024)


def test_resolve_selector_for_each_kind():
    assert resolve_selector(DateRange.parse("2024-01-01", "20240131")) == DateBounds(date(2024, 1, 1), date(2024, 1, 31))
    assert resolve_selector(PeriodRange(2024, 1, 2)).end == date(2024, 3, 2)
    assert resolve_selector(YearRange(2024, 2024)).start == date(2024, 1, 7)
    bounds = DateBounds(date(2024, 1, 1), date(2024, 1, 1))
    assert resolve_selector(bounds) is bounds


def test_resolve_selector_rejects_inverted_dates_and_unknown_selectors():
    with pytest.raises(InvalidDate):
        resolve_selector(DateRange.parse("2024-01-10", "2024-01-01"))
    with pytest.raises(InvalidDate):
        DateRange.parse("2024-01-10", "soon")
    with pytest.raises(TypeError):
        resolve_selector("2024-01-01..2024-01-31")


def test_date_bounds_helpers():
    bounds = DateBounds(date(2024, 2, 28), date(2024, 3, 1))
    assert bounds.days == 3
    assert list(bounds.iter_days()) == [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]
    assert bounds.contains(date(2024, 2, 29))
    assert not bounds.contains(date(2024, 3, 2))
    assert bounds.to_dict() == {"start": "2024-02-28", "end": "2024-03-01"}
