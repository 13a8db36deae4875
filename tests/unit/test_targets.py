from __future__ import annotations

import pytest

from periodtrend.aggregation import SeriesPoint
from periodtrend.bucketing import bucket_for_key
from periodtrend.exceptions import InvalidBucketKey, InvalidMeasure, InvalidPeriodRange
from periodtrend.targets import attach_targets, round_half_up, target_summary, targets_from_rows


def _point(key, count, **measures):
    point = SeriesPoint.zero(bucket_for_key(key), measures)
    point.count = count
    point.measures = dict(measures)
    return point


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert round_half_up(33.333) == 33
    assert round_half_up(66.667) == 67


def test_attach_targets_computes_capped_attainment():
    points = [_point("2024-P01", 15), _point("2024-P02", 12), _point("2024-P03", 25)]
    records = attach_targets(points, {1: 30, "P2": 0, "2024-P03": 20}, default_target=30)

    assert [r["label"] for r in records] == ["P1", "P2", "P3"]
    assert [r["target"] for r in records] == [30, 0, 20]
    assert [r["attainment"] for r in records] == [50, 0, 100]
    assert records[0]["actual"] == 15
    assert records[0]["periodStart"] == "2024-01-07"


def test_attainment_is_uncapped_when_cap_is_none():
    records = attach_targets([_point("2024-P03", 25)], {}, default_target=20, cap=None)
    assert records[0]["attainment"] == 125


def test_default_target_and_year_qualified_precedence():
    points = [_point("2024-P03", 10), _point("2024-P04", 10), _point("2025-P03", 10)]
    records = attach_targets(points, {"3": 40, "2024-P03": 20}, default_target=30)
    assert [r["target"] for r in records] == [20, 30, 40]
    assert [r["attainment"] for r in records] == [50, 33, 25]


def test_ratio_measure_uses_named_measure():
    points = [_point("2024-P01", 40, unique_reported_by=9)]
    records = attach_targets(points, {1: 12}, default_target=30, measure="unique_reported_by")
    assert records[0]["actual"] == 9
    assert records[0]["attainment"] == 75
    with pytest.raises(InvalidMeasure):
        attach_targets(points, {}, default_target=30, measure="cost")


def test_targets_need_period_points():
    daily = _point("2024-01-08", 1)
    with pytest.raises(InvalidBucketKey):
        attach_targets([daily], {}, default_target=30)


@pytest.mark.parametrize(
    "targets, error",
    [
        ({"X3": 10}, InvalidBucketKey),
        ({"P14": 10}, InvalidPeriodRange),
        ({0: 10}, InvalidPeriodRange),
        ({"P3": "lots"}, InvalidMeasure),
    ],
)
def test_bad_target_tables_raise(targets, error):
    with pytest.raises(error):
        attach_targets([_point("2024-P03", 1)], targets, default_target=30)


def test_targets_from_rows_and_summary():
    targets = targets_from_rows([{"period": 1, "target_value": 10}, {"period": 2, "target_value": 20}])
    assert targets == {1: 10, 2: 20}
    records = attach_targets([_point("2024-P01", 12), _point("2024-P02", 5)], targets, default_target=30)
    assert target_summary(records) == {
        "totalActual": 17,
        "averageTarget": 15,
        "periodsOnTarget": 1,
        "maxAttainment": 100,
        "periods": 2,
    }
    assert target_summary([])["periods"] == 0
