"""Normalization of backend results into uniform named series."""
from __future__ import annotations

import logging
import math
import re
from collections import OrderedDict
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from .core import LabelVectorResult, Point, RawQueryResult, Series, TabularResult, build_series

LOGGER = logging.getLogger(__name__)

METRIC_NAME_LABEL = "__name__"
DEFAULT_BASE_NAME = "series"
EMPTY_LABELS_NAME = "value"

TIMESTAMP_COLUMNS: Sequence[str] = ("t", "time", "ts", "timestamp")
SERIES_COLUMNS: Sequence[str] = ("series", "metric")
VALUE_COLUMNS: Sequence[str] = ("value", "v")
NAME_COLUMN = "name"
DEFAULT_VALUE_NAME = "value"

GENERIC = "generic"
COMPOSITE = "composite"
TABULAR_MODES: Sequence[str] = (GENERIC, COMPOSITE)
COMPOSITE_LABELS: Sequence[str] = ("host", "request", "status")
AGGREGATE_STATUS = "all"

_INTEGER_TEXT = re.compile(r"^-?\d+$")


class RowShape(Enum):
    """Which rule derives series identity for a tabular row."""

    EXPLICIT_SERIES = "explicit_series"
    NUMERIC_COLUMNS = "numeric_columns"
    GENERIC_VALUE = "generic_value"
    COMPOSITE = "composite"


def parse_number(value: Any) -> Optional[float]:
    """Return ``value`` as float, or ``None`` when missing or garbled."""
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            return float(value.strip())
    except (ValueError, OverflowError):
        return None
    return None


def is_json_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_timestamp(value: Any) -> Optional[int]:
    """Return epoch milliseconds for a tabular timestamp cell.

    Numbers are taken as milliseconds already, as are digit-only strings
    (ClickHouse quotes 64-bit integers in JSON output). Other text is parsed
    as a date; naive dates are read as UTC.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if _INTEGER_TEXT.match(text):
        return int(text)
    try:
        stamp = pd.to_datetime(text, utc=True)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(stamp):
        return None
    return int(stamp.value // 1_000_000)


def _first_present(row: Mapping[str, Any], columns: Sequence[str]) -> Optional[str]:
    for column in columns:
        if row.get(column) is not None:
            return column
    return None


def series_name_from_labels(labels: Mapping[str, str]) -> str:
    """Render ``name{k=v,...}`` keeping the label order as received."""
    if not labels:
        return EMPTY_LABELS_NAME
    base = labels.get(METRIC_NAME_LABEL, DEFAULT_BASE_NAME)
    others = ",".join(f"{key}={value}" for key, value in labels.items() if key != METRIC_NAME_LABEL)
    return f"{base}{{{others}}}" if others else str(base)


def normalize_label_vector(result: LabelVectorResult) -> List[Series]:
    groups: Dict[str, List[Point]] = OrderedDict()
    for entry in result.series:
        name = series_name_from_labels(entry.labels)
        points = groups.setdefault(name, [])
        for sample in entry.samples:
            try:
                instant, raw_value = sample
                seconds = float(instant)
            except (TypeError, ValueError, OverflowError):
                continue
            millis = seconds * 1000
            value = parse_number(raw_value)
            if value is None or not math.isfinite(millis):
                continue
            points.append((int(round(millis)), value))
    return build_series(groups)


def classify_row(row: Mapping[str, Any], mode: str = GENERIC) -> RowShape:
    """Pick the identity rule for ``row``; evaluated once per row."""
    if mode == COMPOSITE:
        return RowShape.COMPOSITE
    if _first_present(row, SERIES_COLUMNS) and any(column in row for column in VALUE_COLUMNS):
        return RowShape.EXPLICIT_SERIES
    if numeric_columns(row):
        return RowShape.NUMERIC_COLUMNS
    return RowShape.GENERIC_VALUE


def numeric_columns(row: Mapping[str, Any]) -> List[str]:
    return [column for column, value in row.items() if column not in TIMESTAMP_COLUMNS and is_json_number(value)]


def points_for_explicit_series(row: Mapping[str, Any], instant: int) -> List[tuple]:
    series_column = _first_present(row, SERIES_COLUMNS)
    value_column = _first_present(row, VALUE_COLUMNS)
    if series_column is None or value_column is None:
        return []
    value = parse_number(row[value_column])
    if value is None:
        return []
    return [(str(row[series_column]), (instant, value))]


def points_for_numeric_columns(row: Mapping[str, Any], instant: int) -> List[tuple]:
    points = []
    for column in numeric_columns(row):
        value = parse_number(row[column])
        if value is not None:
            points.append((column, (instant, value)))
    return points


def points_for_generic_value(row: Mapping[str, Any], instant: int) -> List[tuple]:
    value_column = _first_present(row, VALUE_COLUMNS)
    if value_column is None:
        return []
    value = parse_number(row[value_column])
    if value is None:
        return []
    name = row.get(NAME_COLUMN)
    return [(DEFAULT_VALUE_NAME if name is None else str(name), (instant, value))]


def _label_text(value: Any) -> str:
    return "" if value is None else str(value)


def points_for_composite(row: Mapping[str, Any], instant: int) -> List[tuple]:
    """Name by host/request/status and skip ``status == "all"`` aggregate rows."""
    if row.get("value") is None or _label_text(row.get("status")) == AGGREGATE_STATUS:
        return []
    value = parse_number(row["value"])
    if value is None:
        return []
    labels = ",".join(f"{label}={_label_text(row.get(label))}" for label in COMPOSITE_LABELS)
    return [(f"{{{labels}}}", (instant, value))]


_EXPANDERS = {
    RowShape.EXPLICIT_SERIES: points_for_explicit_series,
    RowShape.NUMERIC_COLUMNS: points_for_numeric_columns,
    RowShape.GENERIC_VALUE: points_for_generic_value,
    RowShape.COMPOSITE: points_for_composite,
}


def normalize_tabular(result: TabularResult, mode: str = GENERIC) -> List[Series]:
    if mode not in TABULAR_MODES:
        raise ValueError(f"Unsupported tabular mode '{mode}'")
    groups: Dict[str, List[Point]] = OrderedDict()
    dropped = 0
    for row in result.rows:
        if not isinstance(row, Mapping):
            dropped += 1
            continue
        column = _first_present(row, TIMESTAMP_COLUMNS)
        instant = parse_timestamp(row[column]) if column else None
        if instant is None:
            dropped += 1
            continue
        for name, point in _EXPANDERS[classify_row(row, mode)](row, instant):
            groups.setdefault(name, []).append(point)
    if dropped:
        LOGGER.debug("Dropped %d rows without a usable timestamp", dropped)
    return build_series(groups)


def normalize_result(result: RawQueryResult, *, tabular_mode: str = GENERIC) -> List[Series]:
    """Normalize either backend's raw result into named series."""
    if isinstance(result, LabelVectorResult):
        return normalize_label_vector(result)
    if isinstance(result, TabularResult):
        return normalize_tabular(result, mode=tabular_mode)
    raise TypeError(f"Unsupported result type: {type(result).__name__}")

