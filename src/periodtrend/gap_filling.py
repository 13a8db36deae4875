"""Complete a sparse series so every bucket in the requested range appears once."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .aggregation import BucketSeries, SeriesPoint
from .bucketing import iter_buckets, validate_granularity
from .range_resolver import DateBounds, RangeSelector, resolve_selector

LOGGER = logging.getLogger("periodtrend.gap_filling")

Points = Union[BucketSeries, Mapping[str, SeriesPoint], Iterable[SeriesPoint]]


def _index_points(points: Points) -> Dict[str, SeriesPoint]:
    if isinstance(points, Mapping):
        return {key: points[key] for key in points}
    indexed: Dict[str, SeriesPoint] = {}
    for point in points:
        if point.bucket_key in indexed:
            raise ValueError(f"Duplicate bucket key {point.bucket_key!r} in series")
        indexed[point.bucket_key] = point
    return indexed


def fill(
    points: Points,
    granularity: str,
    range: Union[RangeSelector, DateBounds],
    *,
    week_rule: str = "sunday",
    residual: str = "drop",
    measure_names: Optional[Iterable[str]] = None,
) -> List[SeriesPoint]:
    """Return one point per bucket of ``range`` at ``granularity``, ascending.

    Existing points are passed through; missing buckets get a zero point whose
    ``period_start``/``period_end`` span the whole bucket. Points whose key is
    not a bucket of ``range`` are discarded.
    """
    validate_granularity(granularity)
    bounds = resolve_selector(range)
    existing = _index_points(points)
    if measure_names is None:
        measure_names = getattr(points, "measure_names", None) or sorted(
            {name for p in existing.values() for name in p.measures}
        )
    measure_names = list(measure_names)

    filled: List[SeriesPoint] = []
    for bucket in iter_buckets(bounds.start, bounds.end, granularity, week_rule=week_rule, residual=residual):
        point = existing.pop(bucket.key, None)
        if point is None:
            point = SeriesPoint.zero(bucket, measure_names)
        elif any(name not in point.measures for name in measure_names):
            measures = {name: 0 for name in measure_names}
            measures.update(point.measures)
            point = replace(point, measures=measures)
        filled.append(point)

    if existing:
        LOGGER.debug(
            "Discarded %d point(s) outside %s..%s: %s",
            len(existing),
            bounds.start.isoformat(),
            bounds.end.isoformat(),
            sorted(existing)[:5],
        )
    return filled


def fill_by_dimension(
    series_by_dimension: Mapping[str, Points],
    granularity: str,
    range: Union[RangeSelector, DateBounds],
    **kwargs: Any,
) -> Dict[str, List[SeriesPoint]]:
    """Fill each dimension's series over the same range."""
    return {
        label: fill(points, granularity, range, **kwargs)
        for label, points in sorted(series_by_dimension.items())
    }


def to_wide_records(filled_by_dimension: Mapping[str, List[SeriesPoint]], measure: str = "count") -> List[Dict[str, Any]]:
    """One record per bucket with one column per dimension (zeros where absent).

    All series must come from :func:`fill_by_dimension` over the same range.
    """
    labels = sorted(filled_by_dimension)
    if not labels:
        return []
    template = filled_by_dimension[labels[0]]
    records: List[Dict[str, Any]] = []
    for index, base in enumerate(template):
        record: Dict[str, Any] = {"date": base.bucket_key}
        if base.period is not None:
            record["period"] = base.period
        for label in labels:
            point = filled_by_dimension[label][index]
            record[label] = point.count if measure == "count" else point.measures.get(measure, 0)
        records.append(record)
    return records
