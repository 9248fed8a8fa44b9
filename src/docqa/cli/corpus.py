"""
CLI: ``docqa stats``, ``docqa links`` and ``docqa orphans`` — corpus inspection.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table
from rich.text import Text

from docqa.cli.utils import console, handle_errors, load_settings, location_text, print_json


def stats_cmd(
    paths: list[Path] | None = typer.Argument(None, help="Markdown files or directories."),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
) -> None:
    """Show per-document and total corpus statistics."""
    from docqa.corpus import Corpus

    with handle_errors():
        settings = load_settings(paths)
        corpus = Corpus.load(paths or [Path.cwd()], settings)
        stats = corpus.stats()

    if json_out:
        print_json(stats)
        return

    columns = ("headings", "internal_links", "external_links", "tables", "code_blocks", "words")
    table = Table(title=f"Corpus: {stats.root}", pad_edge=False, show_footer=True)
    table.add_column("Document", footer="Total", overflow="fold")
    totals = stats.totals
    for column in columns:
        table.add_column(column.replace("_", " "), justify="right", footer=str(totals[column]))
    for doc in stats.documents:
        table.add_row(
            location_text(doc.path, corpus.root / doc.path, settings),
            *(str(getattr(doc, column)) for column in columns),
        )
    console.print(table)
    console.print(f"[dim]{totals['documents']} documents[/dim]")


def links_cmd(
    path: Path = typer.Argument(..., help="Markdown document to inspect."),
    root: Path | None = typer.Option(None, "--root", help="Corpus directory (default: the document's directory)."),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
) -> None:
    """Show outbound links and backlinks for one document.

    Example:
        docqa links docs/effects/papers.md --root docs/
    """
    from docqa.corpus import Corpus
    from docqa.errors import DocumentReadError

    with handle_errors():
        if not path.is_file():
            raise DocumentReadError(f"File not found: {path}").with_context(path=str(path))
        corpus_dir = root or path.resolve().parent
        settings = load_settings([corpus_dir], root=root.resolve() if root else None)
        corpus = Corpus.load([corpus_dir], settings)
        document = corpus.get(path)
        if document is None:
            raise DocumentReadError(f"{path} is not part of the corpus at {corpus_dir}").with_context(path=str(path))

        outbound = []
        for link in document.links:
            resolved = corpus.resolve(document, link)
            outbound.append(
                {
                    "line": link.line,
                    "text": link.text,
                    "target": link.target,
                    "kind": link.target_kind.value,
                    "exists": None if resolved is None else resolved.exists,
                }
            )
        backlinks = [
            {"source": corpus.relpath(edge.source), "line": edge.link.line, "target": edge.link.target}
            for edge in corpus.backlinks(path)
        ]

    if json_out:
        print_json({"document": corpus.relpath(document.path), "outbound": outbound, "backlinks": backlinks})
        return

    table = Table(title=f"Outbound links: {corpus.relpath(document.path)}", pad_edge=False)
    table.add_column("Line", justify="right")
    table.add_column("Target", overflow="fold")
    table.add_column("Kind")
    table.add_column("Status")
    for row in outbound:
        status = {True: "[green]ok[/green]", False: "[red]missing[/red]", None: "[dim]-[/dim]"}[row["exists"]]
        table.add_row(str(row["line"]), Text(row["target"]) if row["target"] else "[dim](empty)[/dim]", row["kind"], status)
    console.print(table)

    if not backlinks:
        console.print("[dim]No backlinks.[/dim]")
        return
    back = Table(title="Backlinks", pad_edge=False)
    back.add_column("Source", overflow="fold")
    back.add_column("Line", justify="right")
    back.add_column("Target", overflow="fold")
    for row in backlinks:
        back.add_row(
            location_text(row["source"], corpus.root / row["source"], settings, row["line"]),
            str(row["line"]),
            Text(row["target"]),
        )
    console.print(back)


def orphans_cmd(
    paths: list[Path] | None = typer.Argument(None, help="Markdown files or directories."),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
) -> None:
    """List documents no other document links to."""
    from docqa.corpus import Corpus

    with handle_errors():
        settings = load_settings(paths)
        corpus = Corpus.load(paths or [Path.cwd()], settings)
        orphans = [corpus.relpath(p) for p in corpus.orphans()]

    if json_out:
        print_json({"root": str(corpus.root), "orphans": orphans})
        return

    if not orphans:
        console.print("[green]✓ No orphan documents[/green]")
        return
    console.print(f"[bold]{len(orphans)} orphan document(s):[/bold]")
    for display in orphans:
        console.print("  • ", location_text(display, corpus.root / display, settings), sep="")
