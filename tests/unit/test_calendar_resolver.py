from __future__ import annotations

from datetime import date, datetime, timedelta

import numpy as np
import pandas as pd
import pytest

from periodtrend.calendar_resolver import (
    all_periods,
    build_period_calendar,
    check_year,
    coerce_date,
    company_year_of,
    first_sunday_of,
    fiscal_year,
    get_period,
    is_residual_day,
    period_bounds,
    period_info,
    period_number,
    residual_days,
    write_period_calendar_csv,
)
from periodtrend.exceptions import InvalidDate, InvalidPeriodRange


@pytest.mark.parametrize("year", list(range(2015, 2031)))
def test_first_sunday_is_a_sunday_within_first_week(year):
    sunday = first_sunday_of(year)
    assert sunday.weekday() == 6
    assert 0 <= (sunday - date(year, 1, 1)).days < 7


@pytest.mark.parametrize("year", [2019, 2020, 2021, 2023, 2024, 2025, 2028])
def test_all_periods_are_thirteen_contiguous_28_day_blocks(year):
    periods = all_periods(year)
    assert len(periods) == 13
    assert periods[0].start == first_sunday_of(year)
    assert [p.label for p in periods] == [f"P{n}" for n in range(1, 14)]
    for p in periods:
        assert (p.end - p.start).days + 1 == 28
    for prev, nxt in zip(periods, periods[1:]):
        assert prev.end + timedelta(days=1) == nxt.start


def test_2024_anchor_and_first_period():
    assert date(2024, 1, 1).weekday() == 0  # Monday
    assert first_sunday_of(2024) == date(2024, 1, 7)
    assert period_bounds(2024, 1) == (date(2024, 1, 7), date(2024, 2, 3))
    assert get_period(2024, 3).key == "2024-P03"
    assert get_period(2024, 13).to_dict() == {
        "year": 2024,
        "period": 13,
        "label": "P13",
        "startDate": "2024-12-08",
        "endDate": "2025-01-04",
    }


def test_year_that_starts_on_sunday_is_its_own_anchor():
    assert first_sunday_of(2023) == date(2023, 1, 1)
    assert fiscal_year(2023).end == date(2023, 12, 30)


@pytest.mark.parametrize("period_no", [0, 14, -1, "3", 2.0, True])
def test_period_bounds_rejects_bad_period_numbers(period_no):
    with pytest.raises(InvalidPeriodRange):
        period_bounds(2024, period_no)


def test_check_year_accepts_numpy_integers_and_rejects_strings():
    assert check_year(np.int64(2024)) == 2024
    with pytest.raises(InvalidPeriodRange):
        check_year("2024")
    with pytest.raises(InvalidPeriodRange):
        check_year(0)


def test_company_year_of_dates_before_anchor_belong_to_previous_year():
    assert company_year_of(date(2024, 1, 3)) == 2023
    assert company_year_of(date(2024, 1, 6)) == 2023
    assert company_year_of(date(2024, 1, 7)) == 2024
    assert company_year_of(date(2023, 1, 1)) == 2023
    assert company_year_of(date(2025, 1, 4)) == 2024


def test_residual_days_are_zero_or_seven():
    assert residual_days(2023) == [date(2023, 12, 31) + timedelta(days=i) for i in range(7)]
    assert residual_days(2024) == []
    for year in range(2000, 2040):
        assert len(residual_days(year)) in (0, 7)


def test_is_residual_day_and_raw_period_number():
    assert is_residual_day(date(2023, 12, 31))
    assert is_residual_day(date(2024, 1, 6))
    assert not is_residual_day(date(2023, 12, 30))
    assert not is_residual_day(date(2024, 1, 7))
    assert period_number(date(2024, 1, 6), 2024) == 0
    assert period_number(date(2023, 12, 31), 2023) == 14
    assert period_number(date(2024, 2, 10), 2024) == 2


def test_period_info_lists_years_descending_with_day_names():
    info = period_info([2023, 2024, 2024])
    assert list(info) == [2024, 2023]
    assert info[2024]["firstSunday"] == "2024-01-07"
    assert len(info[2024]["periods"]) == 13
    assert info[2024]["periods"][0] == {
        "period": 1,
        "label": "P1",
        "startDate": "2024-01-07",
        "endDate": "2024-02-03",
        "startDay": "Sun",
        "endDay": "Sat",
    }


@pytest.mark.parametrize(
    "value",
    [
        "2024-01-07",
        "20240107",
        " 2024-01-07 ",
        "2024-01-07T13:45:00",
        "2024-01-07 23:59:59",
        datetime(2024, 1, 7, 8, 30),
        pd.Timestamp("2024-01-07 10:00"),
        np.datetime64("2024-01-07"),
        date(2024, 1, 7),
    ],
)
def test_coerce_date_accepts_supported_forms(value):
    assert coerce_date(value) == date(2024, 1, 7)


@pytest.mark.parametrize("value", [None, "", "2024-13-01", "not a date", "2024-02-30", float("nan"), pd.NaT, 20240107])
def test_coerce_date_rejects_invalid_values(value):
    with pytest.raises(InvalidDate):
        coerce_date(value)


def test_build_period_calendar_covers_anchor_to_anchor(tmp_path):
    df = build_period_calendar(2023, 2024)
    assert df["calendar_date"].iloc[0] == pd.Timestamp("2023-01-01")
    assert df["calendar_date"].iloc[-1] == pd.Timestamp("2025-01-04")
    assert len(df) == 371 + 364
    assert int(df["is_residual"].sum()) == 7

    residual = df.loc[df["is_residual"]]
    assert residual["period_no"].isna().all()
    assert (residual["fiscal_week"] == 53).all()

    row = df.loc[df["calendar_date"] == pd.Timestamp("2024-02-10")].iloc[0]
    assert row["company_year"] == 2024
    assert row["period_key"] == "2024-P02"
    assert row["period_start"] == pd.Timestamp("2024-02-04")

    out = write_period_calendar_csv(df, tmp_path / "dims" / "period_calendar.csv")
    back = pd.read_csv(out)
    assert back.loc[0, "calendar_date"] == "2023-01-01"
    assert list(back.columns) == list(df.columns)


def test_build_period_calendar_rejects_reversed_years():
    with pytest.raises(InvalidPeriodRange):
        build_period_calendar(2025, 2024)
