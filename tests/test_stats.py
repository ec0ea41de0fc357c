"""Legend statistics and formatting tests."""

from __future__ import annotations

import math

import pytest

from tests.conftest import get_test_logger
from tsquery.core import LegendStat, Series
from tsquery.stats import compute_legend_stats, format_stat, legend_label, legend_stat

logger = get_test_logger(__name__)
logger.info("Starting tests for stats module")


def test_stats_ignore_non_finite_values() -> None:
    series = Series("a", ((1, 1.0), (2, math.nan), (3, 5.0), (4, math.inf)))
    stat = legend_stat(series)
    assert stat == LegendStat(mean=3.0, max=5.0, last=5.0)


def test_last_is_latest_finite_point() -> None:
    series = Series("a", ((1, 9.0), (2, 2.0), (3, math.nan)))
    assert legend_stat(series).last == 2.0


def test_stats_are_null_without_finite_points() -> None:
    assert legend_stat(Series("empty")) == LegendStat()
    assert legend_stat(Series("nan", ((1, math.nan),))) == LegendStat(None, None, None)


def test_compute_legend_stats_keys_by_name() -> None:
    stats = compute_legend_stats([Series("a", ((1, 1.0),)), Series("b", ((1, -2.0), (2, -4.0)))])
    assert stats["a"].mean == 1.0
    assert stats["b"].max == -2.0
    assert stats["b"].last == -4.0


@pytest.mark.parametrize(
    "value,expected",
    [
        (1234.56, "1235"),
        (1000, "1000"),
        (12.345678, "12.35"),
        (-15.5, "-15.50"),
        (3.14159, "3.142"),
        (0, "0.000"),
        (None, "N/A"),
        (math.nan, "N/A"),
        (math.inf, "N/A"),
    ],
)
def test_format_stat_buckets_by_magnitude(value, expected) -> None:
    assert format_stat(value) == expected


def test_legend_label_renders_all_stats() -> None:
    label = legend_label("up", LegendStat(mean=0.5, max=1.0, last=None))
    logger.info("Legend label: %s", label)
    assert label == "up  [last=N/A  max=1.000  mean=0.500]"
    assert legend_label("up", None) == "up"
