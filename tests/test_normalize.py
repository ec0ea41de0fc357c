"""Tests for label-vector and tabular normalization."""

from __future__ import annotations

import math

import pytest

from tests.conftest import get_test_logger
from tests.helpers import clickhouse_rows, prometheus_payload
from tsquery.core import LabelVectorResult, TabularResult
from tsquery.normalize import (
    COMPOSITE,
    RowShape,
    classify_row,
    normalize_label_vector,
    normalize_result,
    normalize_tabular,
    parse_timestamp,
    series_name_from_labels,
)
from tsquery.stats import compute_legend_stats

logger = get_test_logger(__name__)
logger.info("Starting tests for normalize module")


def _tabular(rows):
    return TabularResult.from_payload(clickhouse_rows(rows))


def test_label_vector_end_to_end() -> None:
    payload = prometheus_payload(({"__name__": "up", "job": "x"}, [["1", "1"], ["2", "0"]]))
    series = normalize_label_vector(LabelVectorResult.from_payload(payload))
    assert len(series) == 1
    assert series[0].name == "up{job=x}"
    assert list(series[0].points) == [(1000, 1.0), (2000, 0.0)]


def test_series_names_keep_label_order_and_fall_back() -> None:
    assert series_name_from_labels({"job": "a", "instance": "b"}) == "series{job=a,instance=b}"
    assert series_name_from_labels({"__name__": "up"}) == "up"
    assert series_name_from_labels({}) == "value"


def test_label_vector_merges_colliding_names_and_sorts() -> None:
    payload = prometheus_payload(
        ({"__name__": "up"}, [[3, "3"], [1, "1"]]),
        ({"__name__": "up"}, [[2, "2"]]),
    )
    series = normalize_label_vector(LabelVectorResult.from_payload(payload))
    assert [s.name for s in series] == ["up"]
    assert [ts for ts, _ in series[0].points] == [1000, 2000, 3000]


def test_label_vector_drops_garbled_samples_but_keeps_nan() -> None:
    payload = prometheus_payload(({"__name__": "m"}, [[1, "oops"], ["x", "1"], [2, "NaN"], [3, "4.5"]]))
    points = normalize_label_vector(LabelVectorResult.from_payload(payload))[0].points
    assert [ts for ts, _ in points] == [2000, 3000]
    assert math.isnan(points[0][1])
    assert points[1] == (3000, 4.5)


def test_label_vector_tolerates_malformed_payloads() -> None:
    for payload in ({}, {"data": None}, {"data": {"result": "nope"}}, [], "text"):
        assert normalize_result(LabelVectorResult.from_payload(payload)) == []


def test_label_vector_is_idempotent() -> None:
    result = LabelVectorResult.from_payload(prometheus_payload(({"__name__": "m", "a": "1"}, [[2, "2"], [1, "1"]])))
    assert normalize_label_vector(result) == normalize_label_vector(result)


def test_tabular_explicit_series_end_to_end() -> None:
    result = _tabular([{"t": 1000, "series": "a", "value": 5}, {"t": 2000, "series": "a", "value": 7}])
    series = normalize_tabular(result)
    assert [s.name for s in series] == ["a"]
    assert list(series[0].points) == [(1000, 5.0), (2000, 7.0)]
    stat = compute_legend_stats(series)["a"]
    assert (stat.mean, stat.max, stat.last) == (6.0, 7.0, 7.0)


def test_tabular_numeric_column_explosion() -> None:
    result = _tabular(
        [
            {"ts": 2000, "cpu": 0.5, "mem": 10, "host": "a"},
            {"ts": 1000, "cpu": 0.25, "mem": 20, "host": "a"},
        ]
    )
    series = {s.name: s for s in normalize_tabular(result)}
    assert set(series) == {"cpu", "mem"}
    assert list(series["cpu"].points) == [(1000, 0.25), (2000, 0.5)]


def test_tabular_generic_value_fallback() -> None:
    result = _tabular(
        [
            {"time": 1000, "value": "3.5"},
            {"time": 2000, "v": "4", "name": "reqs"},
        ]
    )
    series = {s.name: s for s in normalize_tabular(result)}
    assert list(series["value"].points) == [(1000, 3.5)]
    assert list(series["reqs"].points) == [(2000, 4.0)]


def test_tabular_rows_without_timestamp_are_dropped() -> None:
    result = _tabular(
        [
            {"value": 1, "series": "a"},
            {"t": None, "value": 2, "series": "a"},
            {"t": "not a date", "value": 3, "series": "a"},
            {"t": 5000, "value": 4, "series": "a"},
        ]
    )
    series = normalize_tabular(result)
    assert list(series[0].points) == [(5000, 4.0)]


def test_tabular_text_timestamps_parse_as_dates() -> None:
    assert parse_timestamp("2024-01-01T00:00:00Z") == 1_704_067_200_000
    assert parse_timestamp("2024-01-01 00:00:00") == 1_704_067_200_000
    assert parse_timestamp("1704067200000") == 1_704_067_200_000
    assert parse_timestamp(1.5) == 1
    assert parse_timestamp(True) is None
    assert parse_timestamp(float("inf")) is None


def test_tabular_classification_is_one_decision_per_row() -> None:
    assert classify_row({"t": 1, "series": "a", "value": 1}) is RowShape.EXPLICIT_SERIES
    assert classify_row({"t": 1, "metric": "a", "v": 1}) is RowShape.EXPLICIT_SERIES
    assert classify_row({"t": 1, "a": 1, "b": 2.0}) is RowShape.NUMERIC_COLUMNS
    assert classify_row({"t": 1, "value": "1"}) is RowShape.GENERIC_VALUE
    assert classify_row({"t": 1, "value": 1}, COMPOSITE) is RowShape.COMPOSITE


def test_composite_mode_names_by_labels_and_skips_aggregates() -> None:
    result = _tabular(
        [
            {"t": 1000, "host": "h1", "request": "GET", "status": "200", "value": 3},
            {"t": 1000, "host": "h1", "request": "GET", "status": "all", "value": 99},
            {"t": 2000, "host": "h1", "request": "GET", "status": "200", "value": 5},
            {"t": 2000, "host": "h2", "request": "POST", "value": 1},
        ]
    )
    series = {s.name: s for s in normalize_tabular(result, mode=COMPOSITE)}
    logger.info("Composite series: %s", list(series))
    assert set(series) == {"{host=h1,request=GET,status=200}", "{host=h2,request=POST,status=}"}
    assert [v for _, v in series["{host=h1,request=GET,status=200}"].points] == [3.0, 5.0]


def test_tabular_accepts_bare_arrays_and_skips_non_objects() -> None:
    result = TabularResult.from_payload(clickhouse_rows([{"t": 1, "value": 1}], wrapped=False) + ["junk", 3])
    assert len(result.rows) == 1
    assert normalize_tabular(result)[0].name == "value"


@pytest.mark.parametrize(
    "row",
    [
        {},
        {"t": []},
        {"t": {"nested": 1}, "value": 1},
        {"t": 1, "series": None, "value": None},
        {"t": 1, "series": "a", "value": "garbled"},
        {"t": 1, "value": None},
        {"t": 10**400, "big": 10**400},
        {"t": "9" * 40, "value": "1e999"},
        {"timestamp": "2024-13-45", "value": 1},
    ],
)
def test_normalizer_never_raises_on_unexpected_rows(row) -> None:
    normalize_tabular(TabularResult(rows=[row]))
    normalize_tabular(TabularResult(rows=[row]), mode=COMPOSITE)


def test_unknown_tabular_mode_is_rejected() -> None:
    with pytest.raises(ValueError):
        normalize_tabular(TabularResult(), mode="bogus")
