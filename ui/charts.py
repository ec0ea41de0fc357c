"""Conversion of published chart state into API payloads."""

from __future__ import annotations

import math
from typing import Dict, Optional

from tsquery.core import ChartState, LegendStat
from tsquery.errors import (
    BackendRequestError,
    BackendUnavailableError,
    InvalidQueryError,
    InvalidWindowError,
    NetworkError,
)
from tsquery.stats import legend_label

from .schemas import ChartResponse, LegendStatModel, SeriesPayload

# Grafana classic palette
PALETTE = [
    "#7EB26D",
    "#EAB839",
    "#6ED0E0",
    "#EF843C",
    "#E24D42",
    "#1F78C1",
    "#BA43A9",
    "#705DA0",
    "#508642",
    "#CCA300",
    "#447EBC",
    "#C15C17",
    "#890F02",
    "#0A437C",
    "#6D1F62",
    "#584477",
    "#B7DBAB",
    "#F4D598",
    "#70DBED",
    "#F9BA8F",
    "#F29191",
    "#82B5D8",
    "#E5A8E2",
    "#AEA2E0",
]

ERROR_STATUS: Dict[str, int] = {
    InvalidWindowError.__name__: 400,
    InvalidQueryError.__name__: 400,
    BackendUnavailableError.__name__: 503,
    BackendRequestError.__name__: 502,
    NetworkError.__name__: 504,
}


def _finite_or_none(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return float(value)


def status_for(state: ChartState) -> int:
    if state.ok:
        return 200
    return ERROR_STATUS.get(state.error_type or "", 500)


def chart_response(state: ChartState, **meta) -> ChartResponse:
    series_data = []
    for idx, series in enumerate(state.series):
        stat = state.stats.get(series.name, LegendStat())
        series_data.append(
            SeriesPayload(
                name=series.name,
                color=PALETTE[idx % len(PALETTE)],
                data=[(ts, _finite_or_none(value)) for ts, value in series.points],
                stats=LegendStatModel(**stat.as_dict()),
                legend=legend_label(series.name, stat),
            )
        )
    meta.setdefault("series", len(series_data))
    meta.setdefault("points", sum(len(series.points) for series in state.series))
    return ChartResponse(
        title=state.title,
        error=state.error,
        generation=state.generation,
        series=series_data,
        meta=meta,
    )
