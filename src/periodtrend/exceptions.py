"""Client-facing errors raised by the period calendar and trend engine.

Every error is a ``ValueError`` so callers that already guard input parsing
with ``except ValueError`` keep working. ``code`` is stable and safe to return
in an HTTP 4xx body via :meth:`TrendEngineError.to_dict`.
"""
from __future__ import annotations

from typing import Any, Dict


class TrendEngineError(ValueError):
    """Base class for deterministic input rejections."""

    code = "TrendEngineError"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "error": self.code, "message": self.message}
        if self.details:
            body["details"] = dict(self.details)
        return body


class InvalidGranularity(TrendEngineError):
    code = "InvalidGranularity"


class InvalidPeriodRange(TrendEngineError):
    code = "InvalidPeriodRange"


class DateOutsideFiscalYear(InvalidPeriodRange):
    """A date has no period in the requested company year (before the anchor or a residual day)."""

    code = "DateOutsideFiscalYear"


class InvalidDate(TrendEngineError):
    code = "InvalidDate"


class MissingRangeSelector(TrendEngineError):
    code = "MissingRangeSelector"


class InvalidBucketKey(TrendEngineError):
    code = "InvalidBucketKey"


class InvalidMeasure(TrendEngineError):
    code = "InvalidMeasure"
