"""
CLI: ``docqa lint`` and ``docqa rules``.
"""

from __future__ import annotations

import re
from pathlib import Path

import typer
from rich.table import Table

from docqa.cli.utils import console, handle_errors, load_settings, print_json, render_lint_result

_CODE_PREFIX_RE = re.compile(r"^(?P<code>[A-Z]\d{3}):\s*(?P<text>.*)$")


def lint_cmd(
    paths: list[Path] | None = typer.Argument(  # noqa: UP007
        None,
        help="Markdown files or directories (default: current directory).",
    ),
    json_out: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
    strict: bool = typer.Option(False, "--strict", help="Exit non-zero on warnings too."),
    no_infos: bool = typer.Option(False, "--no-infos", help="Suppress info-level diagnostics."),
    select: list[str] | None = typer.Option(  # noqa: UP007
        None, "--select", "-s", help="Only report these code prefixes (repeatable)."
    ),
    ignore: list[str] | None = typer.Option(  # noqa: UP007
        None, "--ignore", "-i", help="Never report these code prefixes (repeatable)."
    ),
    root: Path | None = typer.Option(  # noqa: UP007
        None, "--root", help="Corpus root for '/absolute' links and display paths."
    ),
) -> None:
    """Lint Markdown documents for broken links, anchors, tables and headings.

    Example:
        docqa lint docs/
        docqa lint docs/ --strict --ignore I
        docqa lint README.md --json
    """
    from docqa.corpus import Corpus
    from docqa.linter import lint_corpus

    with handle_errors():
        settings = load_settings(paths, root=root.resolve() if root else None)
        corpus = Corpus.load(paths or [Path.cwd()], settings)
        result = lint_corpus(
            corpus,
            include_infos=False if no_infos else None,
            select=select or None,
            ignore=ignore or None,
        )

    if json_out:
        print_json(result)
    else:
        render_lint_result(result, corpus.root, settings)

    if not result.passed:
        raise typer.Exit(code=1)
    if strict and result.warnings:
        raise typer.Exit(code=1)


def rules_cmd(
    json_out: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
) -> None:
    """List the lint rules (built-in and registered) with their codes."""
    from docqa.linter import describe_lint_rules

    rows = []
    for name, description in describe_lint_rules():
        match = _CODE_PREFIX_RE.match(description)
        code, text = (match.group("code"), match.group("text")) if match else ("", description)
        rows.append({"code": code, "name": name, "description": text})

    if json_out:
        print_json(rows)
        return

    table = Table(title="Lint rules", pad_edge=False)
    table.add_column("Code", style="bold", no_wrap=True)
    table.add_column("Rule", style="cyan", no_wrap=True)
    table.add_column("Checks", overflow="fold")
    for row in rows:
        table.add_row(row["code"] or "-", row["name"], row["description"])
    console.print(table)
