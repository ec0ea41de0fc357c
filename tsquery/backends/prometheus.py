"""Prometheus range queries through the proxy."""
from __future__ import annotations

import logging
from typing import Optional

from ..core import PROMETHEUS, LabelVectorResult, TimeWindow
from .base import Backend

LOGGER = logging.getLogger(__name__)

DEFAULT_STEP_S = 15
MIN_STEP_S = 1


def effective_step(step: Optional[float]) -> int:
    """Clamp the sampling step to at least one second, defaulting to 15."""
    if step is None:
        return DEFAULT_STEP_S
    try:
        value = int(float(step))
    except (TypeError, ValueError):
        return DEFAULT_STEP_S
    if value == 0:
        return DEFAULT_STEP_S
    return max(MIN_STEP_S, value)


class PrometheusBackend(Backend):
    name = PROMETHEUS
    setting_name = "PROMETHEUS_BASE_URL"
    endpoint = "/api/prometheus/query_range"

    def query(self, query_text: str, window: TimeWindow, step: Optional[float] = None) -> LabelVectorResult:
        params = {
            "query": query_text,
            "start": str(window.start_seconds),
            "end": str(window.end_seconds),
            "step": str(effective_step(step)),
        }
        LOGGER.info("Prometheus query_range %s [%s, %s] step=%s", query_text, params["start"], params["end"], params["step"])
        payload = self._send("GET", params=params)
        return LabelVectorResult.from_payload(payload)
