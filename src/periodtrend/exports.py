"""Write trend results to JSON, CSV or an Excel workbook.

The workbook has a ``Trend`` sheet (one row per bucket) and a ``Summary``
sheet (key/value pairs; nested values are written as JSON text).
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

LOGGER = logging.getLogger("periodtrend.exports")

HEADER_FILL = "1F4E78"
HEADER_FONT_COLOR = "FFFFFF"
DEFAULT_COLUMN_WIDTH = 16


def _safe_sheet_name(name: str) -> str:
    """Return a sheet-safe string (openpyxl constraints)."""
    sanitized = "".join(ch if ch not in '[]:*?/\\' else '_' for ch in str(name))
    # Sheet name length limit is 31 chars
    return sanitized[:31] if sanitized else "Sheet"


def _result_parts(result: Any) -> tuple[List[Dict[str, Any]], Dict[str, Any]]:
    if hasattr(result, "to_dict"):
        result = result.to_dict()
    if isinstance(result, Mapping):
        return list(result.get("trend") or []), dict(result.get("summary") or {})
    return list(result), {}


def _records_frame(records: Sequence[Mapping[str, Any]]) -> pd.DataFrame:
    columns: List[str] = []
    for record in records:
        for key in record:
            if key not in columns:
                columns.append(key)
    return pd.DataFrame(list(records), columns=columns)


def _apply_header_style(ws) -> None:
    header_fill = PatternFill("solid", fgColor=HEADER_FILL)
    header_font = Font(color=HEADER_FONT_COLOR, bold=True)
    for cell in ws[1]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center", vertical="center")


def _auto_size_columns(ws) -> None:
    for idx, column_cells in enumerate(ws.columns, start=1):
        longest = max((len(str(c.value)) for c in column_cells if c.value is not None), default=0)
        ws.column_dimensions[get_column_letter(idx)].width = max(DEFAULT_COLUMN_WIDTH, min(60, longest + 2))


def _write_dataframe(ws, df: pd.DataFrame) -> None:
    if df.empty:
        ws.append(["No data available"])
        return
    ws.append(list(df.columns))
    for row in df.itertuples(index=False):
        # Convert pandas NA/NaN to None for openpyxl
        ws.append([None if (not isinstance(v, (list, dict)) and pd.isna(v)) else v for v in row])
    _apply_header_style(ws)
    _auto_size_columns(ws)
    ws.freeze_panes = "A2"


def export_trend_json(result: Any, path: Path) -> Path:
    trend, summary = _result_parts(result)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"trend": trend, "summary": summary}, indent=2, default=str), encoding="utf-8")
    LOGGER.info("Trend JSON saved: %s | buckets=%d", str(path), len(trend))
    return path


def export_trend_csv(result: Any, path: Path) -> Path:
    trend, _ = _result_parts(result)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    _records_frame(trend).to_csv(path, index=False)
    LOGGER.info("Trend CSV saved: %s | buckets=%d", str(path), len(trend))
    return path


def export_trend_xlsx(result: Any, path: Path, sheet_name: str = "Trend") -> Path:
    trend, summary = _result_parts(result)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    wb = Workbook()
    ws = wb.active
    ws.title = _safe_sheet_name(sheet_name)
    _write_dataframe(ws, _records_frame(trend))

    ws_summary = wb.create_sheet(title="Summary")
    rows = [
        {"key": key, "value": json.dumps(value, default=str) if isinstance(value, (dict, list)) else value}
        for key, value in summary.items()
    ]
    _write_dataframe(ws_summary, pd.DataFrame(rows, columns=["key", "value"]))

    wb.save(path)
    LOGGER.info("Trend workbook saved: %s | buckets=%d", str(path), len(trend))
    return path


def export_trend(result: Any, path: Path) -> Path:
    """Dispatch on the file suffix (.json, .csv, .xlsx)."""
    suffix = Path(path).suffix.lower()
    if suffix == ".json":
        return export_trend_json(result, path)
    if suffix == ".csv":
        return export_trend_csv(result, path)
    if suffix == ".xlsx":
        return export_trend_xlsx(result, path)
    raise ValueError(f"Unsupported export format: {suffix or '(none)'}; use .json, .csv or .xlsx")
