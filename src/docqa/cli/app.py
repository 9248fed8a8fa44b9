"""
Root Typer application for the docqa CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from docqa.cli.utils import setup_logging

app = Typer(
    name="docqa",
    help="docqa — quality checks for Markdown documentation corpora.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from docqa import __version__

        typer.echo(f"docqa {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(  # noqa: UP007
        None,
        "--log-level",
        "-l",
        help="Log level for stderr diagnostics (DEBUG, INFO, WARNING, ERROR).",
    ),
    log_json: bool = typer.Option(False, "--log-json", help="Emit logs as JSON lines."),
) -> None:
    """docqa CLI — lint Markdown, inspect the link graph, run embedded examples."""
    setup_logging(log_level.upper() if log_level else None, True if log_json else None)


# ── Sub-command registration ─────────────────────────────────────────────

from docqa.cli.config import app as config_app  # noqa: E402
from docqa.cli.corpus import links_cmd, orphans_cmd, stats_cmd  # noqa: E402
from docqa.cli.examples import app as examples_app  # noqa: E402
from docqa.cli.lint import lint_cmd, rules_cmd  # noqa: E402

app.command("lint")(lint_cmd)
app.command("rules")(rules_cmd)
app.command("stats")(stats_cmd)
app.command("links")(links_cmd)
app.command("orphans")(orphans_cmd)
app.add_typer(examples_app, name="examples", help="Runnable examples embedded in documents.")
app.add_typer(config_app, name="config", help="Configuration inspection.")
