"""
CLI: ``docqa examples`` — list and run the runnable examples in a document.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from docqa.cli.utils import (
    console,
    display_path,
    handle_errors,
    load_settings,
    location_text,
    print_json,
    render_example_result,
    render_examples_header,
    render_examples_summary,
)

app = typer.Typer(no_args_is_help=True)


def _load_examples(file: Path) -> list:
    from docqa.corpus import read_document
    from docqa.errors import DocumentReadError
    from docqa.examples import extract_examples

    if not file.is_file():
        raise DocumentReadError(f"File not found: {file}").with_context(path=str(file))
    return extract_examples(read_document(file.resolve()))


# ── docqa examples list ──────────────────────────────────────────────


@app.command("list")
def list_cmd(
    file: Path = typer.Argument(..., help="Markdown document."),
    json_out: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
) -> None:
    """List runnable examples (fenced blocks starting with a shebang)."""
    with handle_errors():
        settings = load_settings([file])
        examples = _load_examples(file)

    if json_out:
        print_json(
            [
                {"name": e.name, "line": e.line, "language": e.language, "interpreter": list(e.interpreter)}
                for e in examples
            ]
        )
        return

    if not examples:
        console.print(f"[dim]No runnable examples in {display_path(file)}.[/dim]")
        return

    table = Table(title=f"Runnable examples: {display_path(file)}", pad_edge=False)
    table.add_column("#", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Location")
    table.add_column("Language")
    table.add_column("Interpreter", overflow="fold")
    for i, example in enumerate(examples, start=1):
        table.add_row(
            str(i),
            example.name,
            location_text(f"{display_path(example.path)}:{example.line}", example.path, settings, example.line),
            example.language or "-",
            " ".join(example.interpreter),
        )
    console.print(table)


# ── docqa examples run ───────────────────────────────────────────────


@app.command("run")
def run_cmd(
    file: Path = typer.Argument(..., help="Markdown document."),
    timeout: float | None = typer.Option(None, "--timeout", "-t", help="Seconds before an example is killed."),  # noqa: UP007
    jobs: int | None = typer.Option(None, "--jobs", "-j", help="Examples to run in parallel."),  # noqa: UP007
    max_lines: int | None = typer.Option(None, "--max-lines", "-n", help="Output lines shown per example."),  # noqa: UP007
    name: str | None = typer.Option(None, "--name", help="Only run the example with this name."),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """Run every runnable example in a document and report the results.

    Exits non-zero when any example fails, times out, or cannot start.

    Example:
        docqa examples run docs/effects/handlers.md
        docqa examples run docs/effects/handlers.md --jobs 4 --timeout 120
    """
    from docqa.errors import ExampleError
    from docqa.examples import ExampleReport, run_examples

    with handle_errors():
        settings = load_settings(
            [file],
            example_timeout=timeout,
            example_jobs=jobs,
            example_max_lines=max_lines,
        )
        examples = _load_examples(file)
        if name is not None:
            examples = [e for e in examples if e.name == name]
            if not examples:
                raise ExampleError(
                    f"No runnable example named '{name}' in {display_path(file)}"
                ).with_context(path=str(file))

        report = ExampleReport(source=display_path(file))
        if not examples:
            if json_out:
                print_json(report)
            else:
                console.print(f"[yellow]No runnable examples found in {display_path(file)}.[/yellow]")
            return

        if not json_out:
            render_examples_header(file, len(examples))

        def on_result(index: int, result) -> None:
            if not json_out:
                render_example_result(index, result, settings, settings.example_max_lines)

        report.results = run_examples(examples, settings, on_result=on_result)

    if json_out:
        print_json(report)
    else:
        render_examples_summary(report)

    if not report.passed:
        raise typer.Exit(code=1)
