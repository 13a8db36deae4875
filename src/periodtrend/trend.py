"""Request-level orchestration: parameters -> bounds -> rows -> buckets -> filled series.

This is the path every dashboard trend takes:

    parse_trend_request -> resolve_selector -> RowSource.fetch
        -> aggregate -> fill -> to_records + summarize

Nothing here is cached or persisted; each call builds its own result.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .aggregation import Rows, SeriesPoint, aggregate, aggregate_by_dimension
from .bucketing import DAILY
from .calendar_resolver import check_year
from .config import EngineConfig
from .gap_filling import fill, fill_by_dimension, to_wide_records
from .query import RowSource
from .range_resolver import DateBounds, resolve_selector
from .trend_request import parse_trend_request, selector_params

LOGGER = logging.getLogger("periodtrend.trend")


@dataclass
class TrendResult:
    trend: List[Dict[str, Any]]
    summary: Dict[str, Any]
    points: List[SeriesPoint] = field(default_factory=list, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"trend": self.trend, "summary": self.summary}


def to_records(points: Sequence[SeriesPoint]) -> List[Dict[str, Any]]:
    return [point.to_record() for point in points]


def summarize(
    points: Sequence[SeriesPoint],
    granularity: str,
    *,
    bounds: Optional[DateBounds] = None,
    filters: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Totals and extents of a filled series."""
    with_data = [p for p in points if p.count]
    total = sum(p.count for p in points)
    summary: Dict[str, Any] = {
        "totalCount": total,
        "bucketCount": len(points),
        "bucketsWithData": len(with_data),
        "maxCount": max((p.count for p in points), default=0),
        "dateRange": {
            "start": with_data[0].period_start.isoformat() if with_data else None,
            "end": with_data[-1].period_end.isoformat() if with_data else None,
        },
        "groupBy": granularity,
        "appliedFilters": dict(filters or {}),
    }
    if bounds is not None:
        summary["requestedRange"] = bounds.to_dict()
    return summary


def build_trend(
    params: Mapping[str, Any],
    source: RowSource,
    *,
    config: Optional[EngineConfig] = None,
    sum_fields: Sequence[str] = (),
    distinct_fields: Sequence[str] = (),
) -> TrendResult:
    """Run a complete trend request against ``source``.

    Raises any :class:`~periodtrend.exceptions.TrendEngineError` before the
    source is queried when the parameters are invalid.
    """
    config = config or EngineConfig()
    request = parse_trend_request(params)
    bounds = resolve_selector(request.selector)
    LOGGER.info(
        "Trend request groupBy=%s range=%s..%s filters=%s",
        request.granularity,
        bounds.start.isoformat(),
        bounds.end.isoformat(),
        sorted(request.filters),
    )

    rows = source.fetch(bounds, request.filters)
    series = aggregate(
        rows,
        request.granularity,
        week_rule=config.week_rule,
        residual=config.residual_days,
        timestamp_field=config.timestamp_field,
        value_field=config.value_field,
        sum_fields=sum_fields,
        distinct_fields=distinct_fields,
    )
    points = fill(series, request.granularity, bounds, week_rule=config.week_rule, residual=config.residual_days)
    summary = summarize(points, request.granularity, bounds=bounds, filters=request.filters)
    summary["selector"] = {"kind": request.selector.kind, **(selector_params(request.selector) or {})}
    return TrendResult(trend=to_records(points), summary=summary, points=points)


def build_dimension_trend(
    params: Mapping[str, Any],
    source: RowSource,
    dimension: str,
    *,
    measure: str = "count",
    config: Optional[EngineConfig] = None,
    sum_fields: Sequence[str] = (),
) -> Dict[str, Any]:
    """Wide trend with one column per ``dimension`` value (e.g. downtime hours per area)."""
    config = config or EngineConfig()
    request = parse_trend_request(params)
    bounds = resolve_selector(request.selector)
    if measure != "count" and measure not in sum_fields:
        sum_fields = tuple(sum_fields) + (measure,)

    rows = source.fetch(bounds, request.filters)
    options = dict(
        week_rule=config.week_rule,
        residual=config.residual_days,
    )
    by_dimension = aggregate_by_dimension(
        rows,
        dimension,
        request.granularity,
        timestamp_field=config.timestamp_field,
        value_field=config.value_field,
        sum_fields=sum_fields,
        **options,
    )
    filled = fill_by_dimension(by_dimension, request.granularity, bounds, **options)
    return {
        "trend": to_wide_records(filled, measure=measure),
        "summary": {
            "dimension": dimension,
            "dimensions": sorted(filled),
            "measure": measure,
            "groupBy": request.granularity,
            "requestedRange": bounds.to_dict(),
            "appliedFilters": dict(request.filters),
        },
    }


def calendar_heatmap(rows: Rows, year: int, *, config: Optional[EngineConfig] = None) -> Dict[str, Any]:
    """Daily counts for every day of calendar ``year`` (Jan 1..Dec 31), zeros included."""
    config = config or EngineConfig()
    check_year(year)
    bounds = DateBounds(start=date(year, 1, 1), end=date(year, 12, 31))
    series = aggregate(
        rows,
        DAILY,
        timestamp_field=config.timestamp_field,
        value_field=config.value_field,
    )
    points = fill(series, DAILY, bounds)
    data = [{"date": p.bucket_key, "count": p.count} for p in points]
    return {
        "calendarData": data,
        "summary": {
            "totalDays": len(data),
            "daysWithData": sum(1 for item in data if item["count"] > 0),
            "totalCount": sum(item["count"] for item in data),
            "maxPerDay": max((item["count"] for item in data), default=0),
            "year": year,
        },
    }
