"""Query pipeline orchestration: resolve, dispatch, normalize, stats, render."""
from __future__ import annotations

import asyncio
import functools
import itertools
import logging
import uuid
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional

from apscheduler.schedulers.base import BaseScheduler

from .core import CLICKHOUSE, PROMETHEUS, ChartState, TimeWindow
from .dispatch import QueryDispatcher
from .errors import QueryError
from .normalize import GENERIC, normalize_result
from .scheduler import RefreshScheduler
from .stats import compute_legend_stats
from .window import DEFAULT_PRESET, Bound, TimeWindowResolver

LOGGER = logging.getLogger(__name__)

Renderer = Callable[[ChartState], None]

DEFAULT_QUERIES: Dict[str, str] = {
    PROMETHEUS: "up",
    CLICKHOUSE: (
        "-- Example: rows with columns t (ms), value, series\n"
        "SELECT\n"
        "  toUnixTimestamp64Milli(ts) AS t,\n"
        "  value,\n"
        "  'seriesA' AS series\n"
        "FROM some_metrics\n"
        "WHERE ts BETWEEN toDateTime64({{start}}/1000, 3) AND toDateTime64({{end}}/1000, 3)\n"
        "ORDER BY ts"
    ),
}


@dataclass(frozen=True, slots=True)
class QuerySpec:
    """What the operator asked for; explicit bounds are reused until edited."""

    backend: str = PROMETHEUS
    query: str = DEFAULT_QUERIES[PROMETHEUS]
    range: str = DEFAULT_PRESET
    start: Bound = None
    end: Bound = None
    step: Optional[float] = None
    tabular_mode: str = GENERIC

    @property
    def title(self) -> str:
        if self.backend == CLICKHOUSE:
            return "ClickHouse"
        return self.query.strip()


class QuerySession:
    """State of one chart: its query, latest published result and refresh slot.

    Every run takes a new generation number; a completed run only replaces the
    published state if no newer run has been started in the meantime.
    """

    _ids = itertools.count(1)

    def __init__(
        self,
        spec: QuerySpec,
        dispatcher: QueryDispatcher,
        *,
        resolver: Optional[TimeWindowResolver] = None,
        renderers: Optional[List[Renderer]] = None,
        scheduler: Optional[BaseScheduler] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.id = session_id or f"session-{next(self._ids)}"
        self.spec = spec
        self._dispatcher = dispatcher
        self._resolver = resolver or TimeWindowResolver()
        self._renderers: List[Renderer] = list(renderers or [])
        self._issued = 0
        self._state = ChartState()
        self.refresh = RefreshScheduler(self.run, scheduler=scheduler, name=self.id)

    @property
    def state(self) -> ChartState:
        return self._state

    @property
    def generation(self) -> int:
        """Latest generation issued so far."""
        return self._issued

    def add_renderer(self, renderer: Renderer) -> None:
        self._renderers.append(renderer)

    def update(self, **changes) -> QuerySpec:
        self.spec = replace(self.spec, **changes)
        return self.spec

    def resolve_window(self) -> TimeWindow:
        spec = self.spec
        return self._resolver.resolve(spec.range, start=spec.start, end=spec.end)

    async def run(self) -> ChartState:
        """Run the pipeline once and return this run's state (published or stale)."""
        self._issued += 1
        generation = self._issued
        spec = self.spec
        try:
            window = self.resolve_window()
            loop = asyncio.get_running_loop()
            raw = await loop.run_in_executor(
                None,
                functools.partial(self._dispatcher.dispatch, spec.backend, spec.query, window, spec.step),
            )
            series = normalize_result(raw, tabular_mode=spec.tabular_mode)
            state = ChartState(
                title=spec.title,
                series=tuple(series),
                stats=compute_legend_stats(series),
                generation=generation,
            )
            LOGGER.info("Run %d of %s produced %d series", generation, self.id, len(series))
        except QueryError as exc:
            LOGGER.warning("Run %d of %s failed: %s", generation, self.id, exc)
            state = ChartState.failure(str(exc), generation, type(exc).__name__)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Run %d of %s failed unexpectedly", generation, self.id)
            state = ChartState.failure(str(exc) or type(exc).__name__, generation, type(exc).__name__)
        self._publish(state)
        return state

    def _publish(self, state: ChartState) -> bool:
        if state.generation != self._issued:
            LOGGER.debug(
                "Discarding stale run %d of %s (latest is %d)", state.generation, self.id, self._issued
            )
            return False
        self._state = state
        for renderer in self._renderers:
            try:
                renderer(state)
            except Exception:  # noqa: BLE001
                LOGGER.exception("Renderer %r failed for %s", renderer, self.id)
        return True

    def configure_refresh(self, interval_s: float) -> None:
        self.refresh.configure(interval_s)

    def close(self) -> None:
        self.refresh.shutdown()


class SessionRegistry:
    """Independent ``QuerySession`` objects sharing one dispatcher and scheduler."""

    def __init__(
        self,
        dispatcher: QueryDispatcher,
        *,
        scheduler: Optional[BaseScheduler] = None,
        resolver: Optional[TimeWindowResolver] = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._scheduler = scheduler
        self._resolver = resolver
        self._sessions: Dict[str, QuerySession] = {}

    def create(self, spec: QuerySpec, renderers: Optional[List[Renderer]] = None) -> QuerySession:
        session = QuerySession(
            spec,
            self._dispatcher,
            resolver=self._resolver,
            renderers=renderers,
            scheduler=self._scheduler,
            session_id=uuid.uuid4().hex,
        )
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> QuerySession:
        return self._sessions[session_id]

    def remove(self, session_id: str) -> None:
        session = self._sessions.pop(session_id)
        session.close()

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.remove(session_id)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
