"""Fold raw ``(timestamp, value)`` rows into per-bucket series points.

Rows come from the query layer as a pandas DataFrame or any iterable of
mappings. Each row contributes ``value`` (1 when the rows carry no value
column, i.e. plain event counting) to the bucket its timestamp falls in.
Optional ``sum_fields`` add per-bucket sums (downtime hours, cost...) and
``distinct_fields`` add per-bucket distinct counts (unique reporters...).

The result is a :class:`BucketSeries`: an ordered mapping of bucket key to
:class:`SeriesPoint` that always iterates in chronological bucket order.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Union

import pandas as pd

from .bucketing import DAILY, Bucket, locate_bucket, validate_granularity
from .calendar_resolver import coerce_date
from .exceptions import InvalidDate, InvalidMeasure

LOGGER = logging.getLogger("periodtrend.aggregation")

Rows = Union[pd.DataFrame, Iterable[Mapping[str, Any]]]


def _as_number(value: float) -> Union[int, float]:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


@dataclass
class SeriesPoint:
    bucket_key: str
    count: Union[int, float] = 0
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    year: Optional[int] = None
    week: Optional[int] = None
    period: Optional[int] = None
    measures: Dict[str, Union[int, float]] = field(default_factory=dict)

    @classmethod
    def zero(cls, bucket: Bucket, measure_names: Iterable[str] = ()) -> "SeriesPoint":
        """Zero-valued point spanning the whole bucket."""
        return cls(
            bucket_key=bucket.key,
            count=0,
            period_start=bucket.start,
            period_end=bucket.end,
            year=None if bucket.granularity == DAILY else bucket.year,
            week=bucket.week,
            period=bucket.period,
            measures={name: 0 for name in measure_names},
        )

    def to_record(self) -> Dict[str, Any]:
        """JSON-serializable chart record."""
        record: Dict[str, Any] = {
            "date": self.bucket_key,
            "count": self.count,
            "periodStart": self.period_start.isoformat() if self.period_start else None,
            "periodEnd": self.period_end.isoformat() if self.period_end else None,
        }
        if self.year is not None:
            record["year"] = self.year
        if self.week is not None:
            record["week"] = self.week
        if self.period is not None:
            record["period"] = self.period
        record.update(self.measures)
        return record


class BucketSeries(Mapping[str, SeriesPoint]):
    """Bucket key -> point, iterated in chronological bucket order."""

    def __init__(self, granularity: str) -> None:
        self.granularity = validate_granularity(granularity)
        self._points: Dict[str, SeriesPoint] = {}
        self._starts: Dict[str, date] = {}
        self.measure_names: List[str] = []

    def add(self, bucket: Bucket, point: SeriesPoint) -> None:
        if bucket.key in self._points:
            raise ValueError(f"Duplicate bucket key {bucket.key!r}")
        self._points[bucket.key] = point
        self._starts[bucket.key] = bucket.start

    def _ordered_keys(self) -> List[str]:
        return sorted(self._points, key=lambda k: (self._starts[k], k))

    def __getitem__(self, key: str) -> SeriesPoint:
        return self._points[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._ordered_keys())

    def __len__(self) -> int:
        return len(self._points)

    def points(self) -> List[SeriesPoint]:
        return [self._points[k] for k in self._ordered_keys()]

    def total(self) -> Union[int, float]:
        return _as_number(math.fsum(p.count for p in self._points.values()))

    def __repr__(self) -> str:
        return f"BucketSeries({self.granularity!r}, {len(self)} buckets)"


def _rows_to_frame(rows: Rows) -> pd.DataFrame:
    if isinstance(rows, pd.DataFrame):
        return rows.copy()
    return pd.DataFrame(list(rows))


def _numeric_column(df: pd.DataFrame, column: str, *, null_as_zero: bool) -> pd.Series:
    raw = df[column]
    values = pd.to_numeric(raw, errors="coerce")
    bad = values.isna() & raw.notna()
    if not null_as_zero:
        bad = values.isna()
    if bool(bad.any()):
        sample = raw[bad].head(3).tolist()
        raise InvalidMeasure(f"Non-numeric values in '{column}': {sample}", field=column, sample=[repr(v) for v in sample])
    return values.fillna(0)


def aggregate(
    rows: Rows,
    granularity: str,
    year: Optional[int] = None,
    *,
    week_rule: str = "sunday",
    residual: str = "drop",
    timestamp_field: str = "timestamp",
    value_field: str = "value",
    sum_fields: Sequence[str] = (),
    distinct_fields: Sequence[str] = (),
) -> BucketSeries:
    """Group rows by bucket key.

    Args:
        rows: DataFrame or iterable of mappings with at least ``timestamp_field``.
        granularity: ``daily``, ``weekly`` or ``period``.
        year: Pin the company year for ``period`` (and ``fiscal`` weekly)
            buckets; rows outside it raise :class:`DateOutsideFiscalYear`.
        week_rule: Week numbering rule, see :mod:`periodtrend.bucketing`.
        residual: Residual-day policy (``drop``, ``roll``, ``reject``).
        value_field: Per-row amount summed into ``count``; 1 per row when no
            row has the column. Once the column exists every row must carry a
            number: a row without one raises :class:`InvalidMeasure`.
        sum_fields: Extra columns summed per bucket (nulls count as 0).
        distinct_fields: Columns whose distinct non-null values are counted per
            bucket, reported as ``unique_<field>``.

    Returns:
        BucketSeries whose points carry ``count``, the min/max observed date
        as ``period_start``/``period_end`` and any requested measures.

    Raises:
        InvalidDate: a timestamp is missing or unparseable.
        InvalidMeasure: a value or summed field is not numeric.
    """
    validate_granularity(granularity)
    series = BucketSeries(granularity)
    series.measure_names = list(sum_fields) + [f"unique_{name}" for name in distinct_fields]

    df = _rows_to_frame(rows)
    if len(df) == 0:
        return series
    if timestamp_field not in df.columns:
        raise InvalidDate(f"Rows have no '{timestamp_field}' column", field=timestamp_field)
    missing = [c for c in list(sum_fields) + list(distinct_fields) if c not in df.columns]
    if missing:
        raise InvalidMeasure(f"Rows are missing measure columns: {missing}", fields=missing)

    work = pd.DataFrame(index=df.index)
    work["_day"] = df[timestamp_field].map(coerce_date)
    if value_field in df.columns:
        work["_value"] = _numeric_column(df, value_field, null_as_zero=False)
        integral = pd.api.types.is_integer_dtype(df[value_field])
    else:
        work["_value"] = 1
        integral = True
    for i, name in enumerate(sum_fields):
        work[f"_sum{i}"] = _numeric_column(df, name, null_as_zero=True)
    for i, name in enumerate(distinct_fields):
        work[f"_distinct{i}"] = df[name]

    buckets: Dict[date, Optional[Bucket]] = {
        day: locate_bucket(day, granularity, year, week_rule=week_rule, residual=residual)
        for day in work["_day"].unique()
    }
    work["_key"] = work["_day"].map(lambda d: buckets[d].key if buckets[d] is not None else None)
    work["_ordinal"] = work["_day"].map(date.toordinal).astype("int64")
    dropped = int(work["_key"].isna().sum())
    if dropped:
        LOGGER.warning("Dropped %d row(s) dated on residual days outside every period", dropped)
        work = work.loc[work["_key"].notna()]
    if work.empty:
        return series

    named: Dict[str, Any] = {
        "count": ("_value", math.fsum),
        "period_start": ("_ordinal", "min"),
        "period_end": ("_ordinal", "max"),
    }
    for i in range(len(sum_fields)):
        named[f"_sum{i}"] = (f"_sum{i}", math.fsum)
    for i in range(len(distinct_fields)):
        named[f"_distinct{i}"] = (f"_distinct{i}", "nunique")
    summary = work.groupby("_key", sort=True).agg(**named)

    by_key = {b.key: b for b in buckets.values() if b is not None}
    for key, row in summary.iterrows():
        bucket = by_key[key]
        measures: Dict[str, Union[int, float]] = {}
        for i, name in enumerate(sum_fields):
            measures[name] = _as_number(float(row[f"_sum{i}"]))
        for i, name in enumerate(distinct_fields):
            measures[f"unique_{name}"] = int(row[f"_distinct{i}"])
        count = float(row["count"])
        series.add(
            bucket,
            SeriesPoint(
                bucket_key=key,
                count=int(count) if integral else _as_number(count),
                period_start=date.fromordinal(int(row["period_start"])),
                period_end=date.fromordinal(int(row["period_end"])),
                year=None if granularity == DAILY else bucket.year,
                week=bucket.week,
                period=bucket.period,
                measures=measures,
            ),
        )
    LOGGER.debug("Aggregated %d row(s) into %d %s bucket(s)", len(work), len(series), granularity)
    return series


def aggregate_by_dimension(
    rows: Rows,
    dimension: str,
    granularity: str,
    year: Optional[int] = None,
    **kwargs: Any,
) -> Dict[str, BucketSeries]:
    """Aggregate separately for each value of ``dimension`` (e.g. area), keys sorted."""
    validate_granularity(granularity)
    df = _rows_to_frame(rows)
    if len(df) == 0:
        return {}
    if dimension not in df.columns:
        raise InvalidMeasure(f"Rows have no '{dimension}' column", field=dimension)
    nulls = int(df[dimension].isna().sum())
    if nulls:
        LOGGER.warning("Ignoring %d row(s) without a '%s' value", nulls, dimension)
        df = df.loc[df[dimension].notna()]
    labels = df[dimension].astype(str)
    return {
        label: aggregate(df.loc[labels == label], granularity, year, **kwargs)
        for label in sorted(labels.unique())
    }
