from __future__ import annotations

import json
import logging
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from tsquery.config import DashboardSettings, load_settings, setup_logging
from tsquery.core import ChartState, LegendStat
from tsquery.errors import ConfigurationError
from tsquery.stats import format_stat

from . import APP_ROOT

_CONSOLE = Console()
LOG_DIR = APP_ROOT / "logs" / "cli"
LOGGER = logging.getLogger(__name__)


def console() -> Console:
    return _CONSOLE


_LEVEL_OVERRIDE: Optional[str] = None


def configure_logging(name: str, level: Optional[str] = None) -> None:
    """Early logging into ``logs/cli/<name>.log`` until the settings are loaded."""
    global _LEVEL_OVERRIDE
    _LEVEL_OVERRIDE = level
    setup_logging(level or "INFO", LOG_DIR / f"{name}.log")


def apply_logging_settings(settings: DashboardSettings) -> None:
    """Switch to the configured level and file; ``--log-level`` still wins."""
    setup_logging(_LEVEL_OVERRIDE or settings.logging.level, settings.logging.file)


def fail(message: str) -> NoReturn:
    console().print(f"[red]Error:[/] {message}")
    raise typer.Exit(code=1)


def settings_or_exit(config: Optional[str]) -> DashboardSettings:
    try:
        settings = load_settings(config)
    except ConfigurationError as exc:
        LOGGER.error("Configuration error: %s", exc)
        fail(str(exc))
    apply_logging_settings(settings)
    return settings


def legend_table(state: ChartState) -> Table:
    table = Table(title=state.title or None)
    table.add_column("Series", style="cyan")
    table.add_column("Points", justify="right")
    table.add_column("Last", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Mean", justify="right")
    for series in state.series:
        stat = state.stats.get(series.name, LegendStat())
        table.add_row(
            series.name,
            str(len(series.points)),
            format_stat(stat.last),
            format_stat(stat.max),
            format_stat(stat.mean),
        )
    return table


def render_state(state: ChartState, as_json: bool = False) -> None:
    if as_json:
        payload = {
            "title": state.title,
            "error": state.error,
            "generation": state.generation,
            "series": [
                {**series.as_payload(), "stats": state.stats.get(series.name, LegendStat()).as_dict()}
                for series in state.series
            ],
        }
        typer.echo(json.dumps(payload, default=str))
        return
    if not state.ok:
        console().print(f"[red]{state.title}[/]")
        return
    if not state.series:
        console().print(f"[yellow]{state.title}: no data[/]")
        return
    console().print(legend_table(state))
