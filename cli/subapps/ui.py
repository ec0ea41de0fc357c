from __future__ import annotations

from typing import Optional

import typer

from ..common import console, settings_or_exit

ui_app = typer.Typer(help="Launch the dashboard HTTP API")


@ui_app.command("start")
def start_ui(
    host: str = typer.Option("127.0.0.1", "--host", "-h"),
    port: int = typer.Option(8090, "--port", "-p"),
    open_browser: bool = typer.Option(True, "--open/--no-open", help="Open browser automatically"),
    config: Optional[str] = typer.Option(None, help="Dashboard YAML config"),
) -> None:
    """Start the FastAPI dashboard API."""
    from ui.server import start_ui as run_server

    settings = settings_or_exit(config)
    console().print(f"[cyan]Starting API on http://{host}:{port}[/]")

    try:
        run_server(host, port, open_browser=open_browser, settings=settings)
    except KeyboardInterrupt:
        console().print("Shutting down.")
