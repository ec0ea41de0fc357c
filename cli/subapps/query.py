from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer

from tsquery.config import DashboardSettings
from tsquery.core import BACKENDS, ChartState
from tsquery.dispatch import build_dispatcher
from tsquery.normalize import TABULAR_MODES
from tsquery.pipeline import DEFAULT_QUERIES, QuerySession, QuerySpec
from tsquery.window import infer_preset

from ..common import console, fail, render_state, settings_or_exit

LOGGER = logging.getLogger(__name__)

query_app = typer.Typer(help="Run backend queries and inspect normalized series")


def _build_spec(
    settings: DashboardSettings,
    backend: Optional[str],
    query: Optional[str],
    range_: Optional[str],
    start: Optional[str],
    end: Optional[str],
    step: Optional[float],
    mode: Optional[str],
) -> QuerySpec:
    backend_name = (backend or settings.query.default_backend).strip().lower()
    if backend_name not in BACKENDS:
        raise typer.BadParameter(f"backend must be one of {', '.join(BACKENDS)}")
    tabular_mode = (mode or settings.query.tabular_mode).strip().lower()
    if tabular_mode not in TABULAR_MODES:
        raise typer.BadParameter(f"mode must be one of {', '.join(TABULAR_MODES)}")
    return QuerySpec(
        backend=backend_name,
        query=query if query is not None else DEFAULT_QUERIES[backend_name],
        range=infer_preset(range_, start, end) or settings.query.default_range,
        start=start,
        end=end,
        step=step if step is not None else settings.query.default_step,
        tabular_mode=tabular_mode,
    )


def _new_session(settings: DashboardSettings, spec: QuerySpec) -> QuerySession:
    return QuerySession(spec, build_dispatcher(settings))


@query_app.command("run")
def run(
    backend: Optional[str] = typer.Option(None, "--backend", "-b", help="prometheus or clickhouse"),
    query: Optional[str] = typer.Option(None, "--query", "-q", help="PromQL expression or SQL text"),
    range_: Optional[str] = typer.Option(None, "--range", "-r", help="1h, 6h, 24h, 2d, 7d or custom"),
    start: Optional[str] = typer.Option(None, help="Explicit start (ISO-8601 or epoch ms)"),
    end: Optional[str] = typer.Option(None, help="Explicit end (ISO-8601 or epoch ms)"),
    step: Optional[float] = typer.Option(None, help="Prometheus resolution in seconds"),
    mode: Optional[str] = typer.Option(None, help="Tabular grouping: generic or composite"),
    as_json: bool = typer.Option(False, "--json", help="Print the chart as JSON"),
    config: Optional[str] = typer.Option(None, help="Dashboard YAML config"),
) -> None:
    """Run one query and print its series with legend statistics."""
    settings = settings_or_exit(config)
    spec = _build_spec(settings, backend, query, range_, start, end, step, mode)
    session = _new_session(settings, spec)
    try:
        state = asyncio.run(session.run())
    finally:
        session.close()
    render_state(state, as_json=as_json)
    if not state.ok:
        raise typer.Exit(code=1)


async def _watch(session: QuerySession, refresh: float, cycles: Optional[int]) -> int:
    done = asyncio.Event()
    published = 0

    def _count(state: ChartState) -> None:
        nonlocal published
        published += 1
        if cycles and published >= cycles:
            done.set()

    session.add_renderer(_count)
    try:
        await session.run()
        if not done.is_set():
            session.configure_refresh(refresh)
            await done.wait()
    finally:
        session.close()
    return published


@query_app.command("watch")
def watch(
    backend: Optional[str] = typer.Option(None, "--backend", "-b"),
    query: Optional[str] = typer.Option(None, "--query", "-q"),
    range_: Optional[str] = typer.Option(None, "--range", "-r"),
    start: Optional[str] = typer.Option(None),
    end: Optional[str] = typer.Option(None),
    step: Optional[float] = typer.Option(None),
    mode: Optional[str] = typer.Option(None),
    refresh: Optional[float] = typer.Option(None, help="Seconds between runs (defaults to query.refresh_s)"),
    cycles: Optional[int] = typer.Option(None, min=1, help="Stop after this many published runs"),
    as_json: bool = typer.Option(False, "--json"),
    config: Optional[str] = typer.Option(None),
) -> None:
    """Re-run a query on an interval, printing every published result."""
    settings = settings_or_exit(config)
    interval = refresh if refresh is not None else settings.query.refresh_s
    if interval <= 0:
        fail("Refresh interval must be positive; pass --refresh or set query.refresh_s")
    spec = _build_spec(settings, backend, query, range_, start, end, step, mode)
    session = _new_session(settings, spec)
    session.add_renderer(lambda state: render_state(state, as_json=as_json))
    console().print(f"[cyan]Refreshing every {interval:g}s[/] (Ctrl+C to stop)")
    try:
        published = asyncio.run(_watch(session, interval, cycles))
    except KeyboardInterrupt:
        console().print("Stopped.")
        return
    LOGGER.info("Watch finished after %d published runs", published)
