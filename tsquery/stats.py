"""Legend statistics and their display formatting."""
from __future__ import annotations

import math
from typing import Dict, Iterable, Optional

import numpy as np

from .core import LegendStat, Series

NOT_AVAILABLE = "N/A"


def legend_stat(series: Series) -> LegendStat:
    """Mean, max and last over the finite points of one series."""
    if not series.points:
        return LegendStat()
    values = np.fromiter((value for _, value in series.points), dtype=float, count=len(series.points))
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return LegendStat()
    # points are sorted ascending, so the last finite entry is the most recent one
    return LegendStat(mean=float(finite.mean()), max=float(finite.max()), last=float(finite[-1]))


def compute_legend_stats(series: Iterable[Series]) -> Dict[str, LegendStat]:
    return {item.name: legend_stat(item) for item in series}


def format_stat(value: Optional[float]) -> str:
    if value is None or not math.isfinite(value):
        return NOT_AVAILABLE
    magnitude = abs(value)
    if magnitude >= 1000:
        return f"{value:.0f}"
    if magnitude >= 10:
        return f"{value:.2f}"
    return f"{value:.3f}"


def legend_label(name: str, stat: Optional[LegendStat]) -> str:
    if stat is None:
        return name
    return (
        f"{name}  [last={format_stat(stat.last)}  "
        f"max={format_stat(stat.max)}  mean={format_stat(stat.mean)}]"
    )
