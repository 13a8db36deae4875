"""Parse the JSON-able trend parameters an HTTP handler receives.

Accepted keys: ``groupBy``, ``startDate``/``endDate``, ``year`` with
``fromPeriod``/``toPeriod``, ``fromYear``/``toYear``. Numbers may arrive as
strings (query-string values). Any other non-empty key is treated as a
dimension filter and handed to the query layer untouched; the value ``"all"``
means no filter.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .bucketing import DAILY, validate_granularity
from .calendar_resolver import coerce_date
from .exceptions import InvalidPeriodRange, MissingRangeSelector
from .range_resolver import DateRange, PeriodRange, RangeSelector, YearRange, resolve_selector

_INTEGER = re.compile(r"-?[0-9]+")

RANGE_KEYS = ("startDate", "endDate", "year", "fromPeriod", "toPeriod", "fromYear", "toYear")
RESERVED_KEYS = ("groupBy",) + RANGE_KEYS


class AmbiguousRangeSelector(MissingRangeSelector):
    """More than one complete range selector was supplied."""

    code = "AmbiguousRangeSelector"


@dataclass(frozen=True)
class TrendRequest:
    granularity: str
    selector: RangeSelector
    filters: Dict[str, Any] = field(default_factory=dict)


def _present(params: Mapping[str, Any], key: str) -> bool:
    value = params.get(key)
    if value is None:
        return False
    return not (isinstance(value, str) and not value.strip())


def _as_int(params: Mapping[str, Any], key: str) -> int:
    value = params[key]
    if isinstance(value, bool):
        raise InvalidPeriodRange(f"{key} must be an integer, got {value!r}", field=key)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INTEGER.fullmatch(value.strip()):
        return int(value.strip())
    raise InvalidPeriodRange(f"{key} must be an integer, got {value!r}", field=key)


def _extract_filters(params: Mapping[str, Any]) -> Dict[str, Any]:
    filters: Dict[str, Any] = {}
    for key, value in params.items():
        if key in RESERVED_KEYS or value is None:
            continue
        if isinstance(value, str) and (not value.strip() or value.strip().lower() == "all"):
            continue
        filters[key] = value
    return filters


def parse_trend_request(params: Mapping[str, Any]) -> TrendRequest:
    """Validate ``params`` into a :class:`TrendRequest`.

    ``groupBy`` is checked first (defaults to ``daily``). Exactly one complete
    selector must be present: explicit dates, a single-year period range, or a
    year range.

    Raises:
        InvalidGranularity: unknown ``groupBy``.
        MissingRangeSelector: no complete selector (or only half of one).
        AmbiguousRangeSelector: more than one complete selector.
        InvalidPeriodRange: non-integer or out-of-range years/periods.
        InvalidDate: unparseable dates or ``startDate`` after ``endDate``.
    """
    group_by = params.get("groupBy")
    granularity = validate_granularity(DAILY if group_by is None else group_by)

    has_dates = _present(params, "startDate") or _present(params, "endDate")
    has_periods = any(_present(params, k) for k in ("fromPeriod", "toPeriod"))
    has_years = _present(params, "fromYear") or _present(params, "toYear")

    selectors: List[RangeSelector] = []
    if has_dates:
        if not (_present(params, "startDate") and _present(params, "endDate")):
            raise MissingRangeSelector("Both startDate and endDate are required for a date range")
        selectors.append(DateRange(start=coerce_date(params["startDate"]), end=coerce_date(params["endDate"])))
    if has_periods or (_present(params, "year") and not has_years and not has_dates):
        missing = [k for k in ("year", "fromPeriod", "toPeriod") if not _present(params, k)]
        if missing:
            raise MissingRangeSelector(
                f"A period range needs year, fromPeriod and toPeriod (missing: {', '.join(missing)})",
                missing=missing,
            )
        selectors.append(
            PeriodRange(
                year=_as_int(params, "year"),
                from_period=_as_int(params, "fromPeriod"),
                to_period=_as_int(params, "toPeriod"),
            )
        )
    if has_years:
        if not (_present(params, "fromYear") and _present(params, "toYear")):
            raise MissingRangeSelector("Both fromYear and toYear are required for a year range")
        selectors.append(YearRange(from_year=_as_int(params, "fromYear"), to_year=_as_int(params, "toYear")))

    if not selectors:
        raise MissingRangeSelector(
            f"groupBy={granularity} needs startDate/endDate, year+fromPeriod+toPeriod, or fromYear+toYear",
            group_by=granularity,
        )
    if len(selectors) > 1:
        raise AmbiguousRangeSelector(
            "Supply exactly one of: startDate/endDate, year+fromPeriod+toPeriod, fromYear+toYear",
            selectors=[s.kind for s in selectors],
        )

    selector = selectors[0]
    resolve_selector(selector)
    return TrendRequest(granularity=granularity, selector=selector, filters=_extract_filters(params))


def selector_params(selector: RangeSelector) -> Optional[Dict[str, Any]]:
    """Inverse of parsing: the request keys describing ``selector``."""
    if isinstance(selector, DateRange):
        return {"startDate": selector.start.isoformat(), "endDate": selector.end.isoformat()}
    if isinstance(selector, PeriodRange):
        return {"year": selector.year, "fromPeriod": selector.from_period, "toPeriod": selector.to_period}
    if isinstance(selector, YearRange):
        return {"fromYear": selector.from_year, "toYear": selector.to_year}
    return None
