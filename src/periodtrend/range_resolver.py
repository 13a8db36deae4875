"""Resolve range selectors into inclusive calendar date bounds.

A selector is one of:

- :class:`DateRange`   explicit ``start``/``end`` dates
- :class:`PeriodRange` ``year`` with ``from_period``..``to_period``
- :class:`YearRange`   every period of ``from_year``..``to_year``

The resulting :class:`DateBounds` are inclusive on both ends and are what the
query layer filters on. Formatting them for storage (e.g. ``YYYYMMDD``) is
left to :mod:`periodtrend.query`.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterator, List, Union

from .calendar_resolver import (
    PERIODS_PER_YEAR,
    Period,
    all_periods,
    check_period_no,
    check_year,
    coerce_date,
    period_bounds,
)
from .exceptions import InvalidDate, InvalidPeriodRange


@dataclass(frozen=True)
class DateBounds:
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def iter_days(self) -> Iterator[date]:
        for offset in range(self.days):
            yield self.start + timedelta(days=offset)

    def to_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date
    kind: str = "dates"

    @classmethod
    def parse(cls, start: Any, end: Any) -> "DateRange":
        return cls(start=coerce_date(start), end=coerce_date(end))


@dataclass(frozen=True)
class PeriodRange:
    year: int
    from_period: int
    to_period: int
    kind: str = "periodRange"


@dataclass(frozen=True)
class YearRange:
    from_year: int
    to_year: int
    kind: str = "yearRange"


RangeSelector = Union[DateRange, PeriodRange, YearRange]


def period_range_to_dates(year: int, from_period: int, to_period: int) -> DateBounds:
    """Start of ``from_period`` to end of ``to_period`` within company year ``year``."""
    check_year(year)
    check_period_no(from_period)
    check_period_no(to_period)
    if from_period > to_period:
        raise InvalidPeriodRange(
            f"fromPeriod ({from_period}) must not be after toPeriod ({to_period})",
            from_period=from_period,
            to_period=to_period,
        )
    start, _ = period_bounds(year, from_period)
    _, end = period_bounds(year, to_period)
    return DateBounds(start=start, end=end)


def _check_year_order(from_year: int, to_year: int) -> None:
    check_year(from_year)
    check_year(to_year)
    if from_year > to_year:
        raise InvalidPeriodRange(
            f"fromYear ({from_year}) must not be after toYear ({to_year})",
            from_year=from_year,
            to_year=to_year,
        )


def year_range_to_periods(from_year: int, to_year: int) -> List[Period]:
    """Every period of every year in ``[from_year, to_year]``, chronological."""
    _check_year_order(from_year, to_year)
    periods: List[Period] = []
    for year in range(from_year, to_year + 1):
        periods.extend(all_periods(year))
    return periods


def year_range_to_dates(from_year: int, to_year: int) -> DateBounds:
    """First Sunday of ``from_year`` to the last day of P13 of ``to_year``."""
    _check_year_order(from_year, to_year)
    start, _ = period_bounds(from_year, 1)
    _, end = period_bounds(to_year, PERIODS_PER_YEAR)
    return DateBounds(start=start, end=end)


def resolve_selector(selector: Union[RangeSelector, DateBounds]) -> DateBounds:
    """Resolve any selector (or already-resolved bounds) into :class:`DateBounds`."""
    if isinstance(selector, DateBounds):
        bounds = selector
    elif isinstance(selector, DateRange):
        bounds = DateBounds(start=coerce_date(selector.start), end=coerce_date(selector.end))
    elif isinstance(selector, PeriodRange):
        return period_range_to_dates(selector.year, selector.from_period, selector.to_period)
    elif isinstance(selector, YearRange):
        return year_range_to_dates(selector.from_year, selector.to_year)
    else:
        raise TypeError(f"Unsupported range selector: {selector!r}")

    if bounds.start > bounds.end:
        raise InvalidDate(
            f"startDate ({bounds.start.isoformat()}) must not be after endDate ({bounds.end.isoformat()})",
            start=bounds.start.isoformat(),
            end=bounds.end.isoformat(),
        )
    return bounds
