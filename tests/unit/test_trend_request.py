from __future__ import annotations

from datetime import date

import pytest

from periodtrend.exceptions import (
    InvalidDate,
    InvalidGranularity,
    InvalidPeriodRange,
    MissingRangeSelector,
)
from periodtrend.range_resolver import DateRange, PeriodRange, YearRange
from periodtrend.trend_request import AmbiguousRangeSelector, parse_trend_request, selector_params


def test_group_by_defaults_to_daily():
    request = parse_trend_request({"startDate": "2024-01-01", "endDate": "2024-01-31"})
    assert request.granularity == "daily"
    assert request.selector == DateRange(date(2024, 1, 1), date(2024, 1, 31))
    assert request.filters == {}


def test_period_range_from_query_string_values():
    request = parse_trend_request({"groupBy": "period", "year": "2024", "fromPeriod": "1", "toPeriod": "3"})
    assert request.granularity == "period"
    assert request.selector == PeriodRange(year=2024, from_period=1, to_period=3)


def test_year_range_selector():
    request = parse_trend_request({"groupBy": "weekly", "fromYear": 2023, "toYear": 2024})
    assert request.selector == YearRange(2023, 2024)


def test_granularity_is_validated_before_the_selector():
    with pytest.raises(InvalidGranularity) as excinfo:
        parse_trend_request({"groupBy": "monthly"})
    assert excinfo.value.to_dict()["error"] == "InvalidGranularity"


@pytest.mark.parametrize("group_by", ["", 0, False])
def test_falsy_group_by_is_not_defaulted(group_by):
    with pytest.raises(InvalidGranularity):
        parse_trend_request({"groupBy": group_by, "startDate": "2024-01-01", "endDate": "2024-01-02"})


def test_absent_or_null_group_by_defaults_to_daily():
    params = {"startDate": "2024-01-01", "endDate": "2024-01-02"}
    assert parse_trend_request(params).granularity == "daily"
    assert parse_trend_request({**params, "groupBy": None}).granularity == "daily"


@pytest.mark.parametrize(
    "params",
    [
        {"groupBy": "period"},
        {"startDate": "2024-01-01"},
        {"endDate": "2024-01-31", "groupBy": "daily"},
        {"year": 2024},
        {"year": 2024, "fromPeriod": 1},
        {"fromPeriod": 1, "toPeriod": 2},
        {"fromYear": 2023},
        {"startDate": "  ", "endDate": ""},
    ],
)
def test_incomplete_selectors_raise_missing_range_selector(params):
    with pytest.raises(MissingRangeSelector):
        parse_trend_request(params)


def test_more_than_one_selector_is_ambiguous():
    params = {"startDate": "2024-01-01", "endDate": "2024-01-31", "fromYear": 2023, "toYear": 2024}
    with pytest.raises(AmbiguousRangeSelector) as excinfo:
        parse_trend_request(params)
    assert isinstance(excinfo.value, MissingRangeSelector)
    assert excinfo.value.details["selectors"] == ["dates", "yearRange"]

    with pytest.raises(AmbiguousRangeSelector):
        parse_trend_request({"year": 2024, "fromPeriod": 1, "toPeriod": 2, "fromYear": 2023, "toYear": 2024})


@pytest.mark.parametrize(
    "params",
    [
        {"groupBy": "period", "year": 2024, "fromPeriod": "one", "toPeriod": 3},
        {"groupBy": "period", "year": 2024, "fromPeriod": 1, "toPeriod": 14},
        {"groupBy": "period", "year": 2024, "fromPeriod": 4, "toPeriod": 2},
        {"groupBy": "period", "year": 2024.5, "fromPeriod": 1, "toPeriod": 2},
        {"groupBy": "period", "year": 2024, "fromPeriod": "--3", "toPeriod": 4},
        {"groupBy": "period", "year": "²", "fromPeriod": 1, "toPeriod": 2},
        {"groupBy": "period", "year": "202²", "fromPeriod": 1, "toPeriod": 2},
        {"fromYear": 2025, "toYear": 2024},
    ],
)
def test_bad_numbers_raise_invalid_period_range(params):
    with pytest.raises(InvalidPeriodRange):
        parse_trend_request(params)


@pytest.mark.parametrize(
    "params",
    [
        {"startDate": "2024-02-30", "endDate": "2024-03-01"},
        {"startDate": "2024-03-10", "endDate": "2024-03-01"},
    ],
)
def test_bad_dates_raise_invalid_date(params):
    with pytest.raises(InvalidDate):
        parse_trend_request(params)


def test_unreserved_keys_become_filters_and_all_means_unfiltered():
    request = parse_trend_request(
        {
            "groupBy": "daily",
            "startDate": "2024-01-01",
            "endDate": "2024-01-07",
            "area": "Press",
            "type": "all",
            "status": "",
            "shift": None,
            "priority": ["High", "Critical"],
        }
    )
    assert request.filters == {"area": "Press", "priority": ["High", "Critical"]}


def test_selector_params_round_trip():
    for params in (
        {"startDate": "2024-01-01", "endDate": "2024-01-31"},
        {"year": 2024, "fromPeriod": 2, "toPeriod": 5},
        {"fromYear": 2022, "toYear": 2024},
    ):
        request = parse_trend_request(params)
        assert selector_params(request.selector) == params
        assert parse_trend_request(selector_params(request.selector)).selector == request.selector
