"""Bucket keys for daily, weekly and period granularity.

Keys are canonical strings shared by aggregation and gap filling:

- daily:  ``YYYY-MM-DD``
- weekly: ``YYYY-WNN`` (numbering depends on the week rule, see below)
- period: ``YYYY-PNN`` (company year and period number)

Week rules:

- ``sunday``: weeks start on Sunday and week 1 is the week containing
  January 1, keyed by calendar year. This is what ``DATEPART(WEEK, ...)``
  returns on SQL Server with the default ``DATEFIRST 7``. A Sunday week that
  straddles New Year is split into two buckets (``2023-W53`` / ``2024-W01``).
- ``iso``: ISO-8601 year and week.
- ``fiscal``: 7-day weeks counted from the company-year anchor (1..52), keyed
  by company year; weeks 1-4 make up P1, 5-8 P2 and so on.

Residual days (after P13, before the next anchor) are handled by an explicit
policy: ``drop`` (no bucket), ``roll`` (absorbed into P13 / fiscal week 52)
or ``reject`` (raise :class:`DateOutsideFiscalYear`).
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterator, List, Optional

from .calendar_resolver import (
    DAYS_PER_COMPANY_YEAR,
    PERIODS_PER_YEAR,
    check_year,
    company_year_of,
    first_sunday_of,
    fiscal_week_number,
    period_bounds,
    period_number,
)
from .exceptions import DateOutsideFiscalYear, InvalidBucketKey, InvalidGranularity

DAILY = "daily"
WEEKLY = "weekly"
PERIOD = "period"
GRANULARITIES = (DAILY, WEEKLY, PERIOD)

WEEK_RULES = ("sunday", "iso", "fiscal")
RESIDUAL_POLICIES = ("drop", "roll", "reject")

FISCAL_WEEKS_PER_YEAR = DAYS_PER_COMPANY_YEAR // 7

_DAILY_KEY = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_WEEK_KEY = re.compile(r"^(\d{4})-W(\d{2})$")
_PERIOD_KEY = re.compile(r"^(\d{4})-P(\d{2})$")


@dataclass(frozen=True)
class Bucket:
    key: str
    granularity: str
    start: date
    end: date
    year: int
    week: Optional[int] = None
    period: Optional[int] = None

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def validate_granularity(value: Any) -> str:
    if not isinstance(value, str) or value not in GRANULARITIES:
        raise InvalidGranularity(
            f"Invalid groupBy parameter {value!r}. Must be one of: {', '.join(GRANULARITIES)}",
            value=value,
        )
    return value


def validate_week_rule(value: str) -> str:
    if value not in WEEK_RULES:
        raise ValueError(f"Unknown week rule {value!r}; expected one of {WEEK_RULES}")
    return value


def validate_residual_policy(value: str) -> str:
    if value not in RESIDUAL_POLICIES:
        raise ValueError(f"Unknown residual policy {value!r}; expected one of {RESIDUAL_POLICIES}")
    return value


def _sunday_offset(day: date) -> int:
    """Days since the most recent Sunday (Sunday=0 ... Saturday=6)."""
    return (day.weekday() + 1) % 7


def _resolve_company_year(day: date, year: Optional[int]) -> int:
    if year is None:
        return company_year_of(day)
    check_year(year)
    if day < first_sunday_of(year) or day >= first_sunday_of(year + 1):
        raise DateOutsideFiscalYear(
            f"{day.isoformat()} is outside company year {year}", date=day.isoformat(), year=year
        )
    return year


def _residual(day: date, year: int, residual: str) -> bool:
    """Apply the residual policy; True means the day is absorbed, False means dropped."""
    if residual == "reject":
        raise DateOutsideFiscalYear(
            f"{day.isoformat()} falls after period {PERIODS_PER_YEAR} of company year {year}",
            date=day.isoformat(),
            year=year,
        )
    return residual == "roll"


def _daily_bucket(day: date) -> Bucket:
    return Bucket(key=day.isoformat(), granularity=DAILY, start=day, end=day, year=day.year)


def _sunday_week_bucket(year: int, week: int) -> Bucket:
    jan1 = date(year, 1, 1)
    dec31 = date(year, 12, 31)
    first = jan1 - timedelta(days=_sunday_offset(jan1))
    start = first + timedelta(days=7 * (week - 1))
    if week < 1 or start > dec31:
        raise InvalidBucketKey(f"Week {week} does not exist in {year} under the sunday rule", year=year, week=week)
    return Bucket(
        key=f"{year}-W{week:02d}",
        granularity=WEEKLY,
        start=max(jan1, start),
        end=min(dec31, start + timedelta(days=6)),
        year=year,
        week=week,
    )


def _iso_week_bucket(year: int, week: int) -> Bucket:
    try:
        start = date.fromisocalendar(year, week, 1)
    except ValueError:
        raise InvalidBucketKey(f"ISO week {week} does not exist in {year}", year=year, week=week) from None
    return Bucket(
        key=f"{year}-W{week:02d}",
        granularity=WEEKLY,
        start=start,
        end=start + timedelta(days=6),
        year=year,
        week=week,
    )


def _fiscal_week_bucket(year: int, week: int, residual: str) -> Bucket:
    if not 1 <= week <= FISCAL_WEEKS_PER_YEAR:
        raise InvalidBucketKey(f"Fiscal week {week} is outside 1..{FISCAL_WEEKS_PER_YEAR}", year=year, week=week)
    start = first_sunday_of(year) + timedelta(days=7 * (week - 1))
    end = start + timedelta(days=6)
    if residual == "roll" and week == FISCAL_WEEKS_PER_YEAR:
        end = first_sunday_of(year + 1) - timedelta(days=1)
    return Bucket(
        key=f"{year}-W{week:02d}",
        granularity=WEEKLY,
        start=start,
        end=end,
        year=year,
        week=week,
        period=(week - 1) // 4 + 1,
    )


def _period_bucket(year: int, period_no: int, residual: str) -> Bucket:
    if not 1 <= period_no <= PERIODS_PER_YEAR:
        raise InvalidBucketKey(f"Period {period_no} is outside 1..{PERIODS_PER_YEAR}", year=year, period=period_no)
    start, end = period_bounds(year, period_no)
    if residual == "roll" and period_no == PERIODS_PER_YEAR:
        end = first_sunday_of(year + 1) - timedelta(days=1)
    return Bucket(
        key=f"{year}-P{period_no:02d}",
        granularity=PERIOD,
        start=start,
        end=end,
        year=year,
        period=period_no,
    )


def locate_bucket(
    day: date,
    granularity: str,
    year: Optional[int] = None,
    *,
    week_rule: str = "sunday",
    residual: str = "drop",
) -> Optional[Bucket]:
    """Return the bucket containing ``day``, or None for a dropped residual day.

    ``year`` pins the company year for ``period`` and ``fiscal`` weekly
    buckets; a day outside it raises :class:`DateOutsideFiscalYear`. When
    omitted the company year is derived from ``day``.
    """
    validate_granularity(granularity)
    if granularity == DAILY:
        return _daily_bucket(day)

    validate_residual_policy(residual)
    if granularity == WEEKLY:
        validate_week_rule(week_rule)
        if week_rule == "sunday":
            week = (day.timetuple().tm_yday - 1 + _sunday_offset(date(day.year, 1, 1))) // 7 + 1
            return _sunday_week_bucket(day.year, week)
        if week_rule == "iso":
            iso_year, iso_week, _ = day.isocalendar()
            return _iso_week_bucket(iso_year, iso_week)
        company_year = _resolve_company_year(day, year)
        week = fiscal_week_number(day, company_year)
        if week > FISCAL_WEEKS_PER_YEAR:
            if not _residual(day, company_year, residual):
                return None
            week = FISCAL_WEEKS_PER_YEAR
        return _fiscal_week_bucket(company_year, week, residual)

    company_year = _resolve_company_year(day, year)
    period_no = period_number(day, company_year)
    if period_no > PERIODS_PER_YEAR:
        if not _residual(day, company_year, residual):
            return None
        period_no = PERIODS_PER_YEAR
    return _period_bucket(company_year, period_no, residual)


def bucket_key(
    day: date,
    granularity: str,
    year: Optional[int] = None,
    *,
    week_rule: str = "sunday",
    residual: str = "drop",
) -> Optional[str]:
    """Canonical bucket key for ``day``; None only for residual days under ``drop``."""
    bucket = locate_bucket(day, granularity, year, week_rule=week_rule, residual=residual)
    return bucket.key if bucket is not None else None


def bucket_for_key(key: str, granularity: Optional[str] = None, *, week_rule: str = "sunday", residual: str = "drop") -> Bucket:
    """Parse a canonical key back into its bucket (granularity inferred from the key when omitted)."""
    text = str(key).strip()
    m = _DAILY_KEY.match(text)
    if m and granularity in (None, DAILY):
        try:
            return _daily_bucket(date(int(m.group(1)), int(m.group(2)), int(m.group(3))))
        except ValueError:
            raise InvalidBucketKey(f"Invalid daily key {key!r}", key=key) from None
    m = _WEEK_KEY.match(text)
    if m and granularity in (None, WEEKLY):
        year, week = int(m.group(1)), int(m.group(2))
        check_year(year)
        validate_week_rule(week_rule)
        if week_rule == "sunday":
            return _sunday_week_bucket(year, week)
        if week_rule == "iso":
            return _iso_week_bucket(year, week)
        return _fiscal_week_bucket(year, week, residual)
    m = _PERIOD_KEY.match(text)
    if m and granularity in (None, PERIOD):
        year = check_year(int(m.group(1)))
        return _period_bucket(year, int(m.group(2)), residual)
    raise InvalidBucketKey(f"Unrecognised bucket key {key!r}", key=key, granularity=granularity)


def iter_buckets(
    start: date,
    end: date,
    granularity: str,
    *,
    week_rule: str = "sunday",
    residual: str = "drop",
) -> Iterator[Bucket]:
    """Yield every bucket touching ``[start, end]`` in ascending order, once each."""
    validate_granularity(granularity)
    day = start
    while day <= end:
        bucket = locate_bucket(day, granularity, week_rule=week_rule, residual=residual)
        if bucket is None:
            day += timedelta(days=1)
            continue
        yield bucket
        day = bucket.end + timedelta(days=1)


def iter_bucket_keys(
    start: date,
    end: date,
    granularity: str,
    *,
    week_rule: str = "sunday",
    residual: str = "drop",
) -> Iterator[str]:
    for bucket in iter_buckets(start, end, granularity, week_rule=week_rule, residual=residual):
        yield bucket.key


def list_buckets(start: date, end: date, granularity: str, **kwargs: str) -> List[Bucket]:
    return list(iter_buckets(start, end, granularity, **kwargs))
