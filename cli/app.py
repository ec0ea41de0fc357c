from __future__ import annotations

from typing import Optional

import typer

from .common import configure_logging
from .subapps.query import query_app
from .subapps.ui import ui_app

app = typer.Typer(help="tsquery command line interface", no_args_is_help=True)
app.add_typer(query_app, name="query")
app.add_typer(ui_app, name="ui")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override logging.level from the config"),
) -> None:
    configure_logging("cli", log_level.upper() if log_level else None)


if __name__ == "__main__":
    app()
