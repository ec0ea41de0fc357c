"""Routing of queries to the configured backend."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Iterable, Optional

import requests

from .backends import Backend, ClickHouseBackend, PrometheusBackend
from .core import BACKENDS, RawQueryResult, TimeWindow
from .errors import InvalidQueryError

if TYPE_CHECKING:
    from .config import DashboardSettings

LOGGER = logging.getLogger(__name__)


class QueryDispatcher:
    """Send one query to the selected backend and return its raw result."""

    def __init__(self, backends: Iterable[Backend]) -> None:
        self.backends: Dict[str, Backend] = {backend.name: backend for backend in backends}

    def backend(self, name: str) -> Backend:
        key = (name or "").strip().lower()
        if key not in self.backends:
            raise InvalidQueryError(f"Unknown backend '{name}'; expected one of {', '.join(BACKENDS)}")
        return self.backends[key]

    def dispatch(
        self,
        backend: str,
        query_text: str,
        window: TimeWindow,
        step: Optional[float] = None,
    ) -> RawQueryResult:
        target = self.backend(backend)
        text = (query_text or "").strip()
        if not text:
            raise InvalidQueryError("Query text is empty")
        target.ensure_configured()
        return target.query(text, window, step)


def build_dispatcher(
    settings: "DashboardSettings",
    *,
    session: Optional[requests.Session] = None,
) -> QueryDispatcher:
    proxy = settings.proxy
    shared = session or requests.Session()
    backends = [
        PrometheusBackend(proxy.prometheus_url, timeout_s=proxy.timeout_s, session=shared),
        ClickHouseBackend(proxy.clickhouse_url, timeout_s=proxy.clickhouse_timeout_s, session=shared),
    ]
    for backend in backends:
        LOGGER.debug("Backend configured: %s", backend.describe())
    return QueryDispatcher(backends)
