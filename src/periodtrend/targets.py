"""KPI target attainment per period.

Targets are configured per period (``1..13``). Attainment is
``actual / target * 100`` rounded half up and capped (100 by default); a
non-positive target yields 0.
"""
from __future__ import annotations

import math
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .aggregation import SeriesPoint
from .calendar_resolver import check_period_no
from .exceptions import InvalidBucketKey, InvalidMeasure

_TARGET_KEY = re.compile(r"^(?:(\d{4})-)?P(\d{1,2})$", re.IGNORECASE)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _normalize_targets(targets: Mapping[Any, Any]) -> Dict[tuple, float]:
    """Map ``(year or None, period)`` -> target; keys may be 3, "3", "P3" or "2024-P03"."""
    normalized: Dict[tuple, float] = {}
    for key, value in (targets or {}).items():
        year: Optional[int] = None
        if isinstance(key, int) and not isinstance(key, bool):
            period = key
        else:
            text = str(key).strip()
            m = _TARGET_KEY.match(text)
            if m:
                year = int(m.group(1)) if m.group(1) else None
                period = int(m.group(2))
            elif text.isdigit():
                period = int(text)
            else:
                raise InvalidBucketKey(f"Unrecognised target key {key!r}", key=str(key))
        check_period_no(period)
        try:
            normalized[(year, period)] = float(value)
        except (TypeError, ValueError):
            raise InvalidMeasure(f"Target for {key!r} is not numeric: {value!r}", key=str(key)) from None
    return normalized


def targets_from_rows(
    rows: Iterable[Mapping[str, Any]],
    *,
    period_field: str = "period",
    value_field: str = "target_value",
) -> Dict[Any, float]:
    """Build a target mapping from target-table rows (``period``, ``target_value``)."""
    out: Dict[Any, float] = {}
    for row in rows:
        out[row[period_field]] = row[value_field]
    return out


def attach_targets(
    points: Sequence[SeriesPoint],
    targets: Mapping[Any, Any],
    *,
    default_target: float,
    measure: str = "count",
    cap: Optional[float] = 100,
) -> List[Dict[str, Any]]:
    """Chart records for period points with ``target`` and ``attainment`` added.

    ``measure`` is ``count`` or the name of a point measure (e.g.
    ``unique_reported_by`` for reporter coverage). Year-qualified targets
    (``2024-P03``) take precedence over plain period targets.
    """
    lookup = _normalize_targets(targets)
    records: List[Dict[str, Any]] = []
    for point in points:
        if point.period is None or point.year is None or "-P" not in point.bucket_key:
            raise InvalidBucketKey(
                f"Targets need period buckets; got {point.bucket_key!r}", key=point.bucket_key
            )
        target = lookup.get((point.year, point.period), lookup.get((None, point.period), default_target))
        if measure == "count":
            actual = point.count
        elif measure in point.measures:
            actual = point.measures[measure]
        else:
            raise InvalidMeasure(f"Point {point.bucket_key} has no measure '{measure}'", measure=measure)

        if target > 0:
            attainment = round_half_up(actual / target * 100)
            if cap is not None:
                attainment = min(cap, attainment)
        else:
            attainment = 0

        record = point.to_record()
        record["label"] = f"P{point.period}"
        record["actual"] = actual
        record["target"] = round_half_up(target)
        record["attainment"] = attainment
        records.append(record)
    return records


def target_summary(records: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    if not records:
        return {"totalActual": 0, "averageTarget": 0, "periodsOnTarget": 0, "maxAttainment": 0, "periods": 0}
    return {
        "totalActual": sum(r["actual"] for r in records),
        "averageTarget": round_half_up(sum(r["target"] for r in records) / len(records)),
        "periodsOnTarget": sum(1 for r in records if r["attainment"] >= 100),
        "maxAttainment": max(r["attainment"] for r in records),
        "periods": len(records),
    }
