"""Command-line entry point for the period calendar and trend engine.

Subcommands:
  periods       period picker payload for one or more years
  company-year  company year of a date (today by default)
  calendar      write the day-level period calendar to CSV
  trend         build a zero-filled trend from a CSV of rows
  heatmap       full-year daily counts from a CSV of rows
"""
from __future__ import annotations

import argparse
import json
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .calendar_resolver import (
    build_period_calendar,
    coerce_date,
    company_year_of,
    period_info,
    write_period_calendar_csv,
)
from .config import EngineConfig, load_engine_config
from .exceptions import TrendEngineError
from .exports import export_trend
from .logging_utils import end_step_timer, get_logger, start_step_timer
from .query import FrameRowSource
from .targets import attach_targets, target_summary
from .trend import build_trend, calendar_heatmap


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _parse_pairs(items: Optional[Sequence[str]], example: str) -> Dict[str, str]:
    """``key=value`` option values -> dict."""
    pairs: Dict[str, str] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise argparse.ArgumentTypeError(f"Expected {example}, got {item!r}")
        pairs[key.strip()] = value.strip()
    return pairs


def _output_path(raw: str, config: EngineConfig) -> Path:
    """Bare file names land in ``export.output_dir``; anything with a directory is used as given."""
    path = Path(raw)
    if not path.is_absolute() and path.parent == Path("."):
        return Path(config.export.output_dir) / path
    return path


def _read_rows(path: str, config: EngineConfig) -> pd.DataFrame:
    # Keep timestamps as text; the engine parses and validates them
    return pd.read_csv(path, dtype={config.timestamp_field: str}, keep_default_na=False, na_values=[""])


def _cmd_periods(args: argparse.Namespace, config: EngineConfig) -> int:
    years = args.year or [date.today().year]
    _print_json({str(k): v for k, v in period_info(years).items()})
    return 0


def _cmd_company_year(args: argparse.Namespace, config: EngineConfig) -> int:
    day = coerce_date(args.date) if args.date else date.today()
    _print_json({"currentCompanyYear": company_year_of(day), "today": day.isoformat()})
    return 0


def _cmd_calendar(args: argparse.Namespace, config: EngineConfig) -> int:
    df = build_period_calendar(args.start_year, args.end_year)
    out = write_period_calendar_csv(df, Path(args.output))
    print(f"Wrote {len(df)} days to {out}")
    return 0


def _cmd_trend(args: argparse.Namespace, config: EngineConfig) -> int:
    logger = get_logger("cli", config)
    timings: Dict[str, float] = {}

    t0 = start_step_timer("load")
    frame = _read_rows(args.input, config)
    end_step_timer("load", t0, timings, logger)

    params: Dict[str, Any] = {
        "groupBy": args.group_by,
        "startDate": args.start_date,
        "endDate": args.end_date,
        "year": args.year,
        "fromPeriod": args.from_period,
        "toPeriod": args.to_period,
        "fromYear": args.from_year,
        "toYear": args.to_year,
    }
    params.update(_parse_pairs(args.filter, "column=value"))

    t0 = start_step_timer("trend")
    result = build_trend(
        params,
        FrameRowSource(frame, timestamp_field=config.timestamp_field),
        config=config,
        sum_fields=args.sum_field or (),
        distinct_fields=args.distinct_field or (),
    )
    end_step_timer("trend", t0, timings, logger)

    if args.with_targets or args.target:
        result.trend = attach_targets(
            result.points, _parse_pairs(args.target, "P3=40"), default_target=config.default_target
        )
        result.summary["targets"] = target_summary(result.trend)

    if args.output:
        export_trend(result, _output_path(args.output, config))
    else:
        _print_json(result.to_dict())
    return 0


def _cmd_heatmap(args: argparse.Namespace, config: EngineConfig) -> int:
    frame = _read_rows(args.input, config)
    _print_json(calendar_heatmap(frame, args.year, config=config))
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    """Create an argument parser for the periodtrend CLI."""

    parser = argparse.ArgumentParser(prog="periodtrend", description="Company period calendar and trend engine")
    parser.add_argument("--config", help="Path to configuration file (default: $PERIODTREND_CONFIG or ./config.yaml)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("periods", help="Print period start/end dates for one or more years")
    p.add_argument("--year", type=int, action="append", help="Year to describe (repeatable; default: current year)")
    p.set_defaults(func=_cmd_periods)

    p = sub.add_parser("company-year", help="Print the company year a date belongs to")
    p.add_argument("--date", help="Date (YYYY-MM-DD); default today")
    p.set_defaults(func=_cmd_company_year)

    p = sub.add_parser("calendar", help="Write the day-level period calendar to CSV")
    p.add_argument("--start-year", type=int, required=True)
    p.add_argument("--end-year", type=int, required=True)
    p.add_argument("--output", required=True, help="CSV path")
    p.set_defaults(func=_cmd_calendar)

    p = sub.add_parser("trend", help="Aggregate a CSV of rows into a zero-filled trend")
    p.add_argument("--input", required=True, help="CSV with a timestamp column (and optional value column)")
    p.add_argument("--group-by", default="daily", help="daily, weekly or period")
    p.add_argument("--start-date")
    p.add_argument("--end-date")
    p.add_argument("--year")
    p.add_argument("--from-period")
    p.add_argument("--to-period")
    p.add_argument("--from-year")
    p.add_argument("--to-year")
    p.add_argument("--filter", action="append", help="Dimension filter column=value (repeatable)")
    p.add_argument("--sum-field", action="append", help="Column to sum per bucket (repeatable)")
    p.add_argument("--distinct-field", action="append", help="Column to count distinct values of per bucket (repeatable)")
    p.add_argument("--with-targets", action="store_true", help="Add target and attainment per period (period groupBy)")
    p.add_argument("--target", action="append", help="Per-period target such as P3=40 or 2024-P03=40 (repeatable)")
    p.add_argument("--output", help="Write to .json, .csv or .xlsx instead of stdout (bare names go to export.output_dir)")
    p.set_defaults(func=_cmd_trend)

    p = sub.add_parser("heatmap", help="Daily counts for a whole calendar year")
    p.add_argument("--input", required=True)
    p.add_argument("--year", type=int, required=True)
    p.set_defaults(func=_cmd_heatmap)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point; returns the process exit code."""

    parser = build_arg_parser()
    args = parser.parse_args(argv)
    try:
        config = load_engine_config(args.config)
        return args.func(args, config)
    except TrendEngineError as exc:
        print(json.dumps(exc.to_dict(), default=str), file=sys.stderr)
        return 2
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))


if __name__ == "__main__":  # pragma: no cover - CLI guard
    sys.exit(main())
