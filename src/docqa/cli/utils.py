"""
CLI utility helpers — settings, error reporting and rich rendering.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from docqa.config import DocQASettings, find_project_root, get_settings
from docqa.errors import ConfigError, DocQAError
from docqa.examples import ExampleReport, ExampleResult, format_output_lines
from docqa.linter import LintResult, Severity
from docqa.logging import configure_logging
from docqa.terminal import hyperlinks_enabled, source_uri

console = Console()
err_console = Console(stderr=True)

_SEVERITY_STYLES = {
    Severity.ERROR: "bold red",
    Severity.WARNING: "yellow",
    Severity.INFO: "blue",
}

# Logging flags given on the command line; they win over settings.
_log_flags: dict[str, Any] = {}


# ── Settings / logging ───────────────────────────────────────────────────


def setup_logging(level: str | None, json_format: bool | None) -> None:
    """Configure logging from the global CLI flags."""
    _log_flags.clear()
    _log_flags.update(level=level, json_format=json_format)
    configure_logging(level=level or "WARNING", json_format=json_format)


def _apply_logging(settings: DocQASettings) -> None:
    level = _log_flags.get("level") or settings.log_level
    json_format = _log_flags.get("json_format")
    if json_format is None:
        json_format = {"json": True, "console": False}.get(settings.log_format)
    configure_logging(level=level, json_format=json_format)


def load_settings(paths: Sequence[Path] | None = None, **overrides: Any) -> DocQASettings:
    """Settings for the project containing the first of *paths* (or cwd)."""
    start = Path(paths[0]) if paths else Path.cwd()
    if not start.exists():
        start = Path.cwd()
    settings = get_settings(project_root=find_project_root(start), overrides=overrides)
    _apply_logging(settings)
    return settings


# ── Errors ───────────────────────────────────────────────────────────────


def print_error(error: DocQAError) -> None:
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value.upper()}): {escape(error.message)}")


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn :class:`DocQAError` into an error line and a non-zero exit."""
    try:
        yield
    except DocQAError as e:
        print_error(e)
        raise typer.Exit(code=2 if isinstance(e, ConfigError) else 1) from e


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> Any:
    """Convert result objects / dataclasses / pydantic models to plain data."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    return obj


def print_json(payload: Any) -> None:
    """Write *payload* as indented JSON on stdout."""
    if isinstance(payload, list | tuple):
        payload = [_to_dict(item) for item in payload]
    else:
        payload = _to_dict(payload)
    typer.echo(json.dumps(payload, indent=2, default=str))


def display_path(path: Path | None) -> str:
    """POSIX path relative to cwd when possible."""
    if path is None:
        return "<string>"
    try:
        return path.resolve().relative_to(Path.cwd().resolve()).as_posix()
    except ValueError:
        return path.as_posix()


def location_text(
    label: str,
    path: Path | None,
    settings: DocQASettings,
    line: int | None = None,
    column: int | None = None,
) -> Text:
    """*label* styled as a clickable editor link when hyperlinks are enabled."""
    text = Text(label, style="cyan")
    if path is not None and hyperlinks_enabled(settings.hyperlinks, console):
        uri = source_uri(path, line or 1, column or 1, editor=settings.editor or None)
        text.stylize(f"link {uri}")
    return text


# ── Lint rendering ───────────────────────────────────────────────────────


def render_lint_result(result: LintResult, root: Path, settings: DocQASettings) -> None:
    """Diagnostics as one table per document, then the summary line."""
    for display, diagnostics in result.by_path().items():
        absolute = root / display if display else None
        table = Table(title=None, show_header=True, header_style="bold", pad_edge=False, box=None)
        table.add_column("Location", no_wrap=True)
        table.add_column("Code", no_wrap=True)
        table.add_column("Severity", no_wrap=True)
        table.add_column("Message", overflow="fold")
        for d in diagnostics:
            message = Text(d.message)
            if d.suggestion:
                message.append(f"  {d.suggestion}", style="dim")
            table.add_row(
                location_text(d.location, absolute, settings, d.line, d.column),
                d.code,
                Text(d.severity.value, style=_SEVERITY_STYLES[d.severity]),
                message,
            )
        console.print(Text(display or "<corpus>", style="bold underline"))
        console.print(table)
        console.print()

    style = "bold green" if result.passed else "bold red"
    console.print(Text(result.summary(), style=style))


# ── Example rendering ────────────────────────────────────────────────────


def render_examples_header(source: Path, count: int) -> None:
    noun = "example" if count == 1 else "examples"
    console.print(Rule(f"{count} runnable {noun} · [bold]{escape(display_path(source))}[/bold]"))


def render_example_result(
    index: int,
    result: ExampleResult,
    settings: DocQASettings,
    max_lines: int,
) -> None:
    """One panel per example: output excerpt, status subtitle."""
    example = result.example
    body = Text()
    for i, line in enumerate(format_output_lines(result.output_lines, max_lines)):
        if i:
            body.append("\n")
        body.append(line, style="dim" if line in ("(no output)", "...") else "")
    if result.error:
        body.append(f"\n{result.error}", style="red")

    title = Text.assemble((f"#{index + 1} ", "dim"), (example.name, "bold"), "  ")
    title.append_text(
        location_text(f"{display_path(example.path)}:{example.line}", example.path, settings, example.line)
    )
    if result.passed:
        subtitle = f"[green]✓ passed[/green] [dim]{result.duration:.2f}s[/dim]"
    else:
        code = "timeout" if result.timed_out else f"exit {result.returncode}" if result.returncode is not None else "not run"
        subtitle = f"[red]✗ FAILED[/red] [dim]{code}[/dim]"

    console.print(
        Panel(
            body,
            title=title,
            title_align="left",
            subtitle=subtitle,
            subtitle_align="right",
            border_style="green" if result.passed else "red",
        )
    )


def render_examples_summary(report: ExampleReport) -> None:
    passed = report.total - report.failures
    lines = Text()
    lines.append(f"{report.total} run", style="bold")
    lines.append("  ·  ")
    lines.append(f"{passed} passed", style="green")
    lines.append("  ·  ")
    lines.append(f"{report.failures} failed", style="red" if report.failures else "dim")
    console.print(
        Panel(lines, title="Results", title_align="left", border_style="green" if report.passed else "red")
    )
