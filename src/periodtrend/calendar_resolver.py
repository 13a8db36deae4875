"""Company period calendar: 13 periods of 28 days anchored to the first Sunday.

Each company year starts on the first Sunday on or after January 1 of its
calendar year. Period ``n`` (1..13) covers 28 days starting
``(n - 1) * 28`` days after that anchor, so periods always run Sunday to
Saturday. 13 x 28 = 364 days, which leaves the days between the end of P13
and the next year's anchor outside every period (the residual days; there
are either 0 or 7 of them per company year).

The day-level dimension produced by :func:`build_period_calendar` has columns:
- calendar_date (datetime64[ns], normalized)
- company_year (int)
- period_no (Int64, <NA> on residual days)
- period_key (str, format YYYY-PNN, <NA> on residual days)
- fiscal_week (int, 1..52, 53 on residual days)
- period_start / period_end (datetime64[ns], NaT on residual days)
- is_residual (bool)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

import numpy as np
import pandas as pd

from .exceptions import InvalidDate, InvalidPeriodRange

PERIODS_PER_YEAR = 13
DAYS_PER_PERIOD = 28
DAYS_PER_COMPANY_YEAR = PERIODS_PER_YEAR * DAYS_PER_PERIOD
MIN_YEAR = 1
MAX_YEAR = 9998

_DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_COMPACT_DATE = re.compile(r"^\d{8}$")


@dataclass(frozen=True)
class FiscalYear:
    year: int
    first_sunday: date

    @property
    def end(self) -> date:
        """Last day of P13 (residual days excluded)."""
        return self.first_sunday + timedelta(days=DAYS_PER_COMPANY_YEAR - 1)


@dataclass(frozen=True)
class Period:
    year: int
    period_no: int
    start: date
    end: date

    @property
    def label(self) -> str:
        return f"P{self.period_no}"

    @property
    def key(self) -> str:
        return f"{self.year}-P{self.period_no:02d}"

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "period": self.period_no,
            "label": self.label,
            "startDate": self.start.isoformat(),
            "endDate": self.end.isoformat(),
        }


def check_year(year: Any) -> int:
    """Return ``year`` as int or raise :class:`InvalidPeriodRange`."""
    if isinstance(year, np.integer):
        year = int(year)
    if isinstance(year, bool) or not isinstance(year, int):
        raise InvalidPeriodRange(f"Year must be an integer, got {year!r}", year=year)
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidPeriodRange(f"Year {year} is outside {MIN_YEAR}..{MAX_YEAR}", year=year)
    return year


def check_period_no(period_no: Any) -> int:
    if isinstance(period_no, np.integer):
        period_no = int(period_no)
    if isinstance(period_no, bool) or not isinstance(period_no, int):
        raise InvalidPeriodRange(f"Period must be an integer, got {period_no!r}", period=period_no)
    if not 1 <= period_no <= PERIODS_PER_YEAR:
        raise InvalidPeriodRange(
            f"Period {period_no} is outside 1..{PERIODS_PER_YEAR}", period=period_no
        )
    return period_no


def first_sunday_of(year: int) -> date:
    """Return the first Sunday on or after January 1 of ``year``."""
    jan1 = date(check_year(year), 1, 1)
    # weekday(): Monday=0 ... Sunday=6
    return jan1 + timedelta(days=(6 - jan1.weekday()) % 7)


def fiscal_year(year: int) -> FiscalYear:
    return FiscalYear(year=year, first_sunday=first_sunday_of(year))


def period_bounds(year: int, period_no: int) -> Tuple[date, date]:
    """Return the inclusive (start, end) dates of ``period_no`` in company year ``year``."""
    check_period_no(period_no)
    start = first_sunday_of(year) + timedelta(days=DAYS_PER_PERIOD * (period_no - 1))
    return start, start + timedelta(days=DAYS_PER_PERIOD - 1)


def get_period(year: int, period_no: int) -> Period:
    start, end = period_bounds(year, period_no)
    return Period(year=year, period_no=period_no, start=start, end=end)


def all_periods(year: int) -> List[Period]:
    """All 13 periods of ``year`` in order (used to populate period pickers)."""
    return [get_period(year, p) for p in range(1, PERIODS_PER_YEAR + 1)]


def period_number(day: date, year: int) -> int:
    """Raw period index of ``day`` relative to ``year``'s anchor.

    Not clamped: days before the anchor give values <= 0 and residual days
    give 14. Callers decide how to treat those.
    """
    return (day - first_sunday_of(year)).days // DAYS_PER_PERIOD + 1


def fiscal_week_number(day: date, year: int) -> int:
    """Raw 7-day week index of ``day`` counted from ``year``'s anchor (1..52, 53 on residual days)."""
    return (day - first_sunday_of(year)).days // 7 + 1


def company_year_of(day: date) -> int:
    """Company year whose anchor is the latest one on or before ``day``."""
    year = day.year
    if day < first_sunday_of(year):
        return year - 1
    return year


def residual_days(year: int) -> List[date]:
    """Days after P13 of ``year`` and before the next year's anchor."""
    first = first_sunday_of(year) + timedelta(days=DAYS_PER_COMPANY_YEAR)
    stop = first_sunday_of(year + 1)
    return [first + timedelta(days=i) for i in range((stop - first).days)]


def is_residual_day(day: date) -> bool:
    return period_number(day, company_year_of(day)) > PERIODS_PER_YEAR


def period_info(years: Iterable[int]) -> Dict[int, Dict[str, Any]]:
    """Picker payload: anchor and labelled periods (with weekday names) per year."""
    info: Dict[int, Dict[str, Any]] = {}
    for year in sorted(set(years), reverse=True):
        periods = []
        for period in all_periods(year):
            entry = period.to_dict()
            entry.pop("year")
            entry["startDay"] = _DAY_NAMES[period.start.weekday()]
            entry["endDay"] = _DAY_NAMES[period.end.weekday()]
            periods.append(entry)
        info[year] = {"firstSunday": first_sunday_of(year).isoformat(), "periods": periods}
    return info


def coerce_date(value: Any) -> date:
    """Convert ``value`` to a ``date`` or raise :class:`InvalidDate`.

    Accepts ``date``/``datetime``/``pandas.Timestamp`` values, ISO strings
    (date or datetime) and compact ``YYYYMMDD`` strings.
    """
    if value is None:
        raise InvalidDate("Missing date value", value=None)
    if isinstance(value, str):
        text = value.strip()
        try:
            if _COMPACT_DATE.match(text):
                return datetime.strptime(text, "%Y%m%d").date()
            if len(text) == 10:
                return date.fromisoformat(text)
            return datetime.fromisoformat(text).date()
        except ValueError:
            raise InvalidDate(f"Unparseable date: {value!r}", value=value) from None
    if isinstance(value, datetime):
        if pd.isna(value):
            raise InvalidDate("Missing date value (NaT)", value=str(value))
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, float) and pd.isna(value):
        raise InvalidDate("Missing date value (NaN)", value=None)
    if isinstance(value, np.datetime64):
        ts = pd.Timestamp(value)
        if pd.isna(ts):
            raise InvalidDate("Missing date value (NaT)", value=None)
        return ts.date()
    raise InvalidDate(f"Unsupported date value: {value!r}", value=repr(value))


def build_period_calendar(start_year: int, end_year: int) -> pd.DataFrame:
    """Build a day-level period calendar for company years ``start_year..end_year``."""

    check_year(start_year)
    check_year(end_year)
    if end_year < start_year:
        raise InvalidPeriodRange("end_year must be >= start_year", start_year=start_year, end_year=end_year)

    rows: list[dict] = []
    for year in range(start_year, end_year + 1):
        anchor = first_sunday_of(year)
        stop = first_sunday_of(year + 1)
        for offset in range((stop - anchor).days):
            day = anchor + timedelta(days=offset)
            period_no = offset // DAYS_PER_PERIOD + 1
            residual = period_no > PERIODS_PER_YEAR
            if residual:
                p_start = p_end = None
            else:
                p_start, p_end = period_bounds(year, period_no)
            rows.append(
                {
                    "calendar_date": pd.Timestamp(day),
                    "company_year": year,
                    "period_no": None if residual else period_no,
                    "period_key": None if residual else f"{year}-P{period_no:02d}",
                    "fiscal_week": offset // 7 + 1,
                    "period_start": pd.Timestamp(p_start) if p_start else pd.NaT,
                    "period_end": pd.Timestamp(p_end) if p_end else pd.NaT,
                    "is_residual": residual,
                }
            )

    df = pd.DataFrame(rows)
    df["period_no"] = df["period_no"].astype("Int64")
    df["period_key"] = df["period_key"].astype("string")

    # Validations
    if not df["calendar_date"].is_unique:
        raise AssertionError("Duplicate calendar_date in generated period calendar")
    if not df["calendar_date"].diff().dropna().eq(pd.Timedelta(days=1)).all():
        raise AssertionError("Gap detected in generated period calendar")
    sizes = df.loc[~df["is_residual"]].groupby("period_key").size()
    if not sizes.eq(DAYS_PER_PERIOD).all():
        raise AssertionError("Non 28-day periods detected in generated period calendar")

    return df


def write_period_calendar_csv(df: pd.DataFrame, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    out = df.copy()
    for col in ("calendar_date", "period_start", "period_end"):
        out[col] = out[col].dt.strftime("%Y-%m-%d")
    out.to_csv(path, index=False)
    return path
