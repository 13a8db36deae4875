"""Query-layer collaborators that hand raw rows to the engine.

Two row sources are provided:

- :class:`FrameRowSource` filters an in-memory DataFrame (tests, CSV input).
- :class:`SqlRowSource` runs a parameter-bound query through any DB-API
  connection pandas can read from.

Filter values and date bounds are always bound as parameters; only
identifiers (table/column names) are placed into the SQL text, and those are
validated first.
"""
from __future__ import annotations

import logging
import re
from datetime import date, timedelta
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import pandas as pd

from .calendar_resolver import coerce_date
from .range_resolver import DateBounds

LOGGER = logging.getLogger("periodtrend.query")

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class RowSource(Protocol):
    def fetch(self, bounds: DateBounds, filters: Mapping[str, Any]) -> pd.DataFrame:
        ...


def format_compact_date(day: date) -> str:
    """``YYYYMMDD``, the storage format of the maintenance database date columns."""
    return day.strftime("%Y%m%d")


def check_identifier(name: str) -> str:
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"Unsafe SQL identifier: {name!r}")
    return name


def build_range_query(
    table: str,
    timestamp_column: str,
    *,
    value_column: Optional[str] = None,
    extra_columns: Sequence[str] = (),
    filters: Optional[Mapping[str, Any]] = None,
    bounds: DateBounds,
    compact_dates: bool = False,
) -> Tuple[str, List[Any]]:
    """Build ``(sql, params)`` selecting rows inside ``bounds`` (inclusive).

    With ``compact_dates`` the timestamp column holds ``YYYYMMDD`` strings and
    is compared with ``BETWEEN``; otherwise it is compared as
    ``>= start AND < end + 1 day`` so datetimes on the last day are kept.
    Filter values that are lists/tuples/sets become ``IN (...)``.
    """
    table = check_identifier(table)
    ts = check_identifier(timestamp_column)
    columns = [f"{ts} AS timestamp"]
    if value_column:
        columns.append(f"{check_identifier(value_column)} AS value")
    columns.extend(check_identifier(c) for c in extra_columns)

    params: List[Any] = []
    if compact_dates:
        where = [f"{ts} BETWEEN ? AND ?"]
        params.extend([format_compact_date(bounds.start), format_compact_date(bounds.end)])
    else:
        where = [f"{ts} >= ?", f"{ts} < ?"]
        params.extend([bounds.start.isoformat(), (bounds.end + timedelta(days=1)).isoformat()])

    for column in sorted(filters or {}):
        value = (filters or {})[column]
        col = check_identifier(column)
        if isinstance(value, (list, tuple, set, frozenset)):
            values = sorted(value, key=str)
            if not values:
                continue
            where.append(f"{col} IN ({', '.join('?' for _ in values)})")
            params.extend(values)
        else:
            where.append(f"{col} = ?")
            params.append(value)

    sql = f"SELECT {', '.join(columns)} FROM {table} WHERE {' AND '.join(where)} ORDER BY {ts}"
    return sql, params


class FrameRowSource:
    """Serve rows from a DataFrame, filtered to inclusive bounds and equality filters."""

    def __init__(self, frame: pd.DataFrame, timestamp_field: str = "timestamp") -> None:
        if timestamp_field not in frame.columns:
            raise ValueError(f"Frame has no '{timestamp_field}' column")
        self.frame = frame
        self.timestamp_field = timestamp_field
        self._days = frame[timestamp_field].map(coerce_date)

    def fetch(self, bounds: DateBounds, filters: Mapping[str, Any]) -> pd.DataFrame:
        mask = self._days.map(bounds.contains).astype(bool)
        for column, value in (filters or {}).items():
            if column not in self.frame.columns:
                LOGGER.warning("Ignoring filter on unknown column '%s'", column)
                continue
            if isinstance(value, (list, tuple, set, frozenset)):
                allowed = {str(v) for v in value}
            else:
                allowed = {str(value)}
            mask &= self.frame[column].astype(str).isin(allowed)
        rows = self.frame.loc[mask]
        LOGGER.debug("Fetched %d row(s) for %s..%s", len(rows), bounds.start, bounds.end)
        return rows


class SqlRowSource:
    """Fetch rows with a parameter-bound query over a DB-API connection."""

    def __init__(
        self,
        connection: Any,
        table: str,
        timestamp_column: str,
        *,
        value_column: Optional[str] = None,
        extra_columns: Sequence[str] = (),
        allowed_filters: Optional[Mapping[str, str]] = None,
        compact_dates: bool = False,
    ) -> None:
        self.connection = connection
        self.table = check_identifier(table)
        self.timestamp_column = check_identifier(timestamp_column)
        self.value_column = value_column
        self.extra_columns = tuple(extra_columns)
        # request parameter name -> column name
        self.allowed_filters: Dict[str, str] = dict(allowed_filters or {})
        self.compact_dates = compact_dates

    def fetch(self, bounds: DateBounds, filters: Mapping[str, Any]) -> pd.DataFrame:
        columns: Dict[str, Any] = {}
        for name, value in (filters or {}).items():
            column = self.allowed_filters.get(name)
            if column is None:
                LOGGER.warning("Ignoring filter '%s' (not an allowed filter)", name)
                continue
            columns[column] = value
        sql, params = build_range_query(
            self.table,
            self.timestamp_column,
            value_column=self.value_column,
            extra_columns=self.extra_columns,
            filters=columns,
            bounds=bounds,
            compact_dates=self.compact_dates,
        )
        LOGGER.debug("Running range query on %s with %d parameter(s)", self.table, len(params))
        return pd.read_sql_query(sql, self.connection, params=params)
