"""Time-series query normalization, legend statistics and live refresh."""
from __future__ import annotations

from typing import Any

from .core import ChartState, LegendStat, Series, TimeWindow
from .errors import (
    BackendRequestError,
    BackendUnavailableError,
    InvalidQueryError,
    InvalidWindowError,
    NetworkError,
    QueryError,
)

__all__ = [
    "ChartState",
    "LegendStat",
    "Series",
    "TimeWindow",
    "QueryError",
    "InvalidWindowError",
    "InvalidQueryError",
    "BackendUnavailableError",
    "BackendRequestError",
    "NetworkError",
    "QuerySession",
    "QuerySpec",
]


def __getattr__(name: str) -> Any:
    if name in {"QuerySession", "QuerySpec"}:
        from .pipeline import QuerySession, QuerySpec

        return {"QuerySession": QuerySession, "QuerySpec": QuerySpec}[name]
    raise AttributeError(f"module 'tsquery' has no attribute '{name}'")
