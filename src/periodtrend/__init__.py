"""
Company period calendar and time-bucketed trend engine.

Maps dates onto the 13 x 28-day company calendar, resolves date/period/year
range selectors, aggregates timestamped rows into daily, weekly or period
buckets and fills the gaps so charts get one point per bucket.
"""

from .aggregation import BucketSeries, SeriesPoint, aggregate, aggregate_by_dimension
from .bucketing import Bucket, bucket_for_key, bucket_key, iter_bucket_keys, iter_buckets, locate_bucket
from .calendar_resolver import (
    Period,
    all_periods,
    build_period_calendar,
    company_year_of,
    first_sunday_of,
    get_period,
    period_bounds,
    period_info,
)
from .config import EngineConfig, load_engine_config
from .exceptions import (
    DateOutsideFiscalYear,
    InvalidBucketKey,
    InvalidDate,
    InvalidGranularity,
    InvalidMeasure,
    InvalidPeriodRange,
    MissingRangeSelector,
    TrendEngineError,
)
from .gap_filling import fill, fill_by_dimension, to_wide_records
from .range_resolver import (
    DateBounds,
    DateRange,
    PeriodRange,
    YearRange,
    period_range_to_dates,
    resolve_selector,
    year_range_to_dates,
    year_range_to_periods,
)
from .trend import TrendResult, build_dimension_trend, build_trend, calendar_heatmap
from .trend_request import AmbiguousRangeSelector, TrendRequest, parse_trend_request

__version__ = "0.1.0"

__all__ = [
    "AmbiguousRangeSelector",
    "Bucket",
    "BucketSeries",
    "DateBounds",
    "DateOutsideFiscalYear",
    "DateRange",
    "EngineConfig",
    "InvalidBucketKey",
    "InvalidDate",
    "InvalidGranularity",
    "InvalidMeasure",
    "InvalidPeriodRange",
    "MissingRangeSelector",
    "Period",
    "PeriodRange",
    "SeriesPoint",
    "TrendEngineError",
    "TrendRequest",
    "TrendResult",
    "YearRange",
    "aggregate",
    "aggregate_by_dimension",
    "all_periods",
    "bucket_for_key",
    "bucket_key",
    "build_dimension_trend",
    "build_period_calendar",
    "build_trend",
    "calendar_heatmap",
    "company_year_of",
    "fill",
    "fill_by_dimension",
    "first_sunday_of",
    "get_period",
    "iter_bucket_keys",
    "iter_buckets",
    "load_engine_config",
    "locate_bucket",
    "parse_trend_request",
    "period_bounds",
    "period_info",
    "period_range_to_dates",
    "resolve_selector",
    "to_wide_records",
    "year_range_to_dates",
    "year_range_to_periods",
]
