"""
CLI: ``docqa config`` — configuration inspection.
"""

from __future__ import annotations

import json

import typer

from docqa.cli.utils import console, handle_errors, load_settings

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show the effective configuration."""
    if format not in ("table", "json", "env"):
        typer.echo(f"Unknown format: {format}. Use: table, json, env", err=True)
        raise typer.Exit(code=1)

    with handle_errors():
        settings = load_settings()

    if format == "json":
        typer.echo(settings.model_dump_json(indent=2))
        return

    if format == "env":
        for key, value in sorted(settings.model_dump(mode="json").items()):
            rendered = json.dumps(value) if isinstance(value, list | dict) else ("" if value is None else value)
            typer.echo(f"DOCQA_{key.upper()}={rendered}")
        return

    from rich.table import Table

    project_root = getattr(settings, "_project_root", None)
    if project_root:
        console.print(f"[bold]Project Root:[/bold] {project_root}")
    config_file = getattr(settings, "_config_file", None)
    console.print(f"[bold]Config File:[/bold] {config_file or '[dim](none)[/dim]'}")

    table = Table(pad_edge=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", overflow="fold")
    for key, value in settings.model_dump(mode="json").items():
        table.add_row(key, json.dumps(value) if isinstance(value, list | dict) else str(value))
    console.print(table)
