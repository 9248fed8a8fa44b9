"""Corpus Linter - static checks for Markdown research documents.

Catches editorial breakage that a static site or GitHub would render
silently wrong: links to files that are not there, anchors that no heading
produces, tables whose rows do not line up, duplicate headings that shift
anchors.  Extensible via a rule registry so projects can add their own
checks.

Architecture::

    lint_corpus(corpus)
    │
    ├── for each document:
    │     ├── _check_broken_links          E001
    │     ├── _check_broken_anchors        E002
    │     ├── _check_table_columns         E003
    │     ├── _check_unclosed_fences       E004
    │     ├── _check_duplicate_headings    W001
    │     ├── _check_undefined_references  W002
    │     ├── _check_heading_levels        W003
    │     ├── _check_empty_links           W004
    │     ├── _check_orphan_document       I001
    │     ├── _check_unused_definitions    I002
    │     └── (custom rules via register_lint_rule)
    │
    ▼
    LintResult
    ├── diagnostics: list[LintDiagnostic]
    ├── passed → bool (no errors)
    ├── errors / warnings / infos / by_path()
    └── summary() → str

Example::

    from docqa.corpus import Corpus
    from docqa.linter import lint_corpus

    result = lint_corpus(Corpus.load(["docs/research/algebraic-effects"]))
    if not result.passed:
        for d in result.errors:
            print(d)
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from difflib import get_close_matches
from enum import Enum
from pathlib import Path
from typing import Any

from docqa.config import DocQASettings
from docqa.corpus import Corpus
from docqa.errors import RuleError
from docqa.logging import LogContext, get_logger
from docqa.markdown import Document, LinkKind, TargetKind

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Diagnostic model
# ---------------------------------------------------------------------------

class Severity(str, Enum):
    """Severity level for a lint diagnostic."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class LintDiagnostic:
    """A single lint finding.

    Attributes:
        code: Short identifier (e.g. ``"E001"``).
        severity: ``error``, ``warning``, or ``info``.
        message: Human-readable description.
        path: Display path of the offending document.
        line: 1-based line (if applicable).
        column: 1-based column (if applicable).
        suggestion: Recommended fix (optional).
    """

    code: str
    severity: Severity
    message: str
    path: str = ""
    line: int | None = None
    column: int | None = None
    suggestion: str | None = None

    @property
    def location(self) -> str:
        parts = [self.path or "<corpus>"]
        if self.line is not None:
            parts.append(str(self.line))
            if self.column is not None:
                parts.append(str(self.column))
        return ":".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "severity": self.severity.value,
            "message": self.message,
            "path": self.path,
            "line": self.line,
            "column": self.column,
            "suggestion": self.suggestion,
        }

    def __str__(self) -> str:
        hint = f" ({self.suggestion})" if self.suggestion else ""
        return f"{self.location}: [{self.code}] {self.severity.value.upper()}: {self.message}{hint}"


@dataclass
class LintResult:
    """Aggregated result of linting a corpus.

    Attributes:
        name: What was linted (usually the corpus root).
        diagnostics: All findings from all rules.
        documents_checked: Number of documents the rules ran on.
    """

    name: str
    diagnostics: list[LintDiagnostic] = field(default_factory=list)
    documents_checked: int = 0

    @property
    def passed(self) -> bool:
        """True if there are no error-level diagnostics."""
        return not any(d.severity == Severity.ERROR for d in self.diagnostics)

    @property
    def errors(self) -> list[LintDiagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[LintDiagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    @property
    def infos(self) -> list[LintDiagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.INFO]

    def by_path(self) -> dict[str, list[LintDiagnostic]]:
        """Diagnostics grouped per document, sorted by line."""
        grouped: dict[str, list[LintDiagnostic]] = defaultdict(list)
        for d in self.diagnostics:
            grouped[d.path].append(d)
        return {
            path: sorted(items, key=lambda d: (d.line or 0, d.column or 0, d.code))
            for path, items in sorted(grouped.items())
        }

    def summary(self) -> str:
        """One-line summary of the lint result."""
        counts = {
            "errors": len(self.errors),
            "warnings": len(self.warnings),
            "infos": len(self.infos),
        }
        status = "PASS" if self.passed else "FAIL"
        parts = [f"{status}: {self.name}", f"{self.documents_checked} documents"]
        for label, count in counts.items():
            if count:
                parts.append(f"{count} {label}")
        return " | ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "passed": self.passed,
            "documents_checked": self.documents_checked,
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "info_count": len(self.infos),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }

    def __str__(self) -> str:
        lines = [self.summary()]
        for items in self.by_path().values():
            lines.extend(f"  {d}" for d in items)
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Rule registry
# ---------------------------------------------------------------------------

# Lint rules take a document and its corpus, and return diagnostics
LintRule = Callable[[Document, Corpus], list[LintDiagnostic]]

_RULES: list[tuple[str, LintRule]] = []


def register_lint_rule(name: str, rule: LintRule) -> None:
    """Register a custom lint rule.

    Parameters
    ----------
    name
        Human-readable rule name (e.g. ``"check_glossary_terms"``).
    rule
        Callable that takes a ``Document`` and its ``Corpus`` and returns a
        list of ``LintDiagnostic`` objects.

    Raises
    ------
    RuleError
        *rule* is not callable.
    """
    if not callable(rule):
        raise RuleError(f"Lint rule '{name}' is not callable").with_context(rule=name)
    _RULES.append((name, rule))
    logger.debug("registered_lint_rule", rule=name)


def list_lint_rules() -> list[str]:
    """Return names of all registered lint rules (built-in + custom)."""
    return [name for name, _ in _BUILT_IN_RULES] + [name for name, _ in _RULES]


def describe_lint_rules() -> list[tuple[str, str]]:
    """``(name, first docstring line)`` for every rule, built-in first."""
    result = []
    for name, rule in list(_BUILT_IN_RULES) + list(_RULES):
        doc = (rule.__doc__ or "").strip().splitlines()
        result.append((name, doc[0] if doc else ""))
    return result


def clear_custom_rules() -> None:
    """Remove all custom lint rules (built-in rules are preserved)."""
    _RULES.clear()


# ---------------------------------------------------------------------------
# Built-in rules
# ---------------------------------------------------------------------------

def _check_broken_links(document: Document, corpus: Corpus) -> list[LintDiagnostic]:
    """E001: Relative link target does not exist."""
    diagnostics: list[LintDiagnostic] = []
    for link in document.links:
        resolved = corpus.resolve(document, link)
        if resolved is None or resolved.exists:
            continue
        suggestion = "Fix the path or remove the link."
        parent = resolved.target_path.parent
        if parent.is_dir():
            siblings = [p.name for p in parent.iterdir()]
            close = get_close_matches(resolved.target_path.name, siblings, n=1, cutoff=0.6)
            if close:
                suggestion = f"Did you mean '{close[0]}'?"
        noun = "Image" if link.is_image else "Link"
        diagnostics.append(
            LintDiagnostic(
                code="E001",
                severity=Severity.ERROR,
                message=f"{noun} target '{link.target}' does not exist.",
                path=corpus.relpath(document.path),
                line=link.line,
                column=link.column,
                suggestion=suggestion,
            )
        )
    return diagnostics


def _check_broken_anchors(document: Document, corpus: Corpus) -> list[LintDiagnostic]:
    """E002: Link fragment matches no heading or HTML anchor in the target document."""
    diagnostics: list[LintDiagnostic] = []
    for link in document.links:
        resolved = corpus.resolve(document, link)
        if resolved is None or not resolved.exists or not resolved.is_markdown:
            continue
        fragment = resolved.fragment
        if not fragment or fragment.lower() == "top":
            continue
        target = corpus.document_at(resolved.target_path)
        if target is None or target.has_anchor(fragment):
            continue

        close = get_close_matches(fragment.lower(), sorted(target.anchors), n=1, cutoff=0.6)
        where = "this document" if target is document else f"'{corpus.relpath(target.path)}'"
        diagnostics.append(
            LintDiagnostic(
                code="E002",
                severity=Severity.ERROR,
                message=f"Anchor '#{fragment}' not found in {where}.",
                path=corpus.relpath(document.path),
                line=link.line,
                column=link.column,
                suggestion=f"Did you mean '#{close[0]}'?" if close else "Link to an existing heading.",
            )
        )
    return diagnostics


def _check_table_columns(document: Document, corpus: Corpus) -> list[LintDiagnostic]:
    """E003: Table row column count differs from the header."""
    diagnostics: list[LintDiagnostic] = []
    path = corpus.relpath(document.path)
    for table in document.tables:
        if table.delimiter_cells != table.columns:
            diagnostics.append(
                LintDiagnostic(
                    code="E003",
                    severity=Severity.ERROR,
                    message=(
                        f"Table delimiter row has {table.delimiter_cells} columns, "
                        f"header has {table.columns}; the table will not render."
                    ),
                    path=path,
                    line=table.line + 1,
                    suggestion="Make the ---|--- row match the header.",
                )
            )
        for row in table.rows:
            if len(row.cells) != table.columns:
                diagnostics.append(
                    LintDiagnostic(
                        code="E003",
                        severity=Severity.ERROR,
                        message=f"Table row has {len(row.cells)} columns, header has {table.columns}.",
                        path=path,
                        line=row.line,
                        suggestion="Add or remove cells; escape literal pipes as \\|.",
                    )
                )
    return diagnostics


def _check_unclosed_fences(document: Document, corpus: Corpus) -> list[LintDiagnostic]:
    """E004: Fenced code block is never closed."""
    return [
        LintDiagnostic(
            code="E004",
            severity=Severity.ERROR,
            message=f"Code fence '{block.fence}' is never closed; the rest of the document renders as code.",
            path=corpus.relpath(document.path),
            line=block.line,
            suggestion=f"Close the block with '{block.fence}'.",
        )
        for block in document.code_blocks
        if not block.closed
    ]


def _check_duplicate_headings(document: Document, corpus: Corpus) -> list[LintDiagnostic]:
    """W001: Duplicate heading within a document shifts its anchor."""
    diagnostics: list[LintDiagnostic] = []
    first_seen: dict[str, int] = {}
    for heading in document.headings:
        if not heading.slug:
            continue
        if heading.slug not in first_seen:
            first_seen[heading.slug] = heading.line
            continue
        diagnostics.append(
            LintDiagnostic(
                code="W001",
                severity=Severity.WARNING,
                message=(
                    f"Heading '{heading.text}' duplicates line {first_seen[heading.slug]}; "
                    f"its anchor becomes '#{heading.anchor}'."
                ),
                path=corpus.relpath(document.path),
                line=heading.line,
                suggestion="Make the heading text unique.",
            )
        )
    return diagnostics


def _check_undefined_references(document: Document, corpus: Corpus) -> list[LintDiagnostic]:
    """W002: Reference link uses an undefined label."""
    return [
        LintDiagnostic(
            code="W002",
            severity=Severity.WARNING,
            message=f"Reference '[{link.label}]' has no definition; it renders as plain text.",
            path=corpus.relpath(document.path),
            line=link.line,
            column=link.column,
            suggestion=f"Add '[{link.label}]: <url>' to the document.",
        )
        for link in document.links
        if link.kind is LinkKind.REFERENCE and not link.defined
    ]


def _check_heading_levels(document: Document, corpus: Corpus) -> list[LintDiagnostic]:
    """W003: Heading level skips (e.g. ## followed by ####)."""
    max_skip = corpus.settings.max_heading_skip
    diagnostics: list[LintDiagnostic] = []
    previous: int | None = None
    for heading in document.headings:
        if previous is not None and heading.level > previous + max_skip:
            diagnostics.append(
                LintDiagnostic(
                    code="W003",
                    severity=Severity.WARNING,
                    message=f"Heading level jumps from h{previous} to h{heading.level}.",
                    path=corpus.relpath(document.path),
                    line=heading.line,
                    suggestion=f"Use h{previous + 1} or restructure the section.",
                )
            )
        previous = heading.level
    return diagnostics


def _check_empty_links(document: Document, corpus: Corpus) -> list[LintDiagnostic]:
    """W004: Link has an empty target."""
    return [
        LintDiagnostic(
            code="W004",
            severity=Severity.WARNING,
            message=f"Link '{link.text or '<html>'}' has an empty target.",
            path=corpus.relpath(document.path),
            line=link.line,
            column=link.column,
            suggestion="Fill in the destination or drop the link syntax.",
        )
        for link in document.links
        if link.kind in (LinkKind.INLINE, LinkKind.HTML) and link.target_kind is TargetKind.EMPTY
    ]


def _check_orphan_document(document: Document, corpus: Corpus) -> list[LintDiagnostic]:
    """I001: No other document links to this one."""
    if document.path is None or document.path not in corpus.orphans():
        return []
    return [
        LintDiagnostic(
            code="I001",
            severity=Severity.INFO,
            message="No other document in the corpus links here.",
            path=corpus.relpath(document.path),
            suggestion="Link it from an index page or the related articles.",
        )
    ]


def _check_unused_definitions(document: Document, corpus: Corpus) -> list[LintDiagnostic]:
    """I002: Link reference definition is never used."""
    used = {link.label for link in document.links if link.kind is LinkKind.REFERENCE}
    return [
        LintDiagnostic(
            code="I002",
            severity=Severity.INFO,
            message=f"Link definition '[{definition.label}]' is never used.",
            path=corpus.relpath(document.path),
            line=definition.line,
            suggestion="Remove it or reference it.",
        )
        for definition in document.definition_map.values()
        if definition.label not in used
    ]


# Ordered list of built-in rules
_BUILT_IN_RULES: list[tuple[str, LintRule]] = [
    ("check_broken_links", _check_broken_links),
    ("check_broken_anchors", _check_broken_anchors),
    ("check_table_columns", _check_table_columns),
    ("check_unclosed_fences", _check_unclosed_fences),
    ("check_duplicate_headings", _check_duplicate_headings),
    ("check_undefined_references", _check_undefined_references),
    ("check_heading_levels", _check_heading_levels),
    ("check_empty_links", _check_empty_links),
    ("check_orphan_document", _check_orphan_document),
    ("check_unused_definitions", _check_unused_definitions),
]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def _code_selected(code: str, select: Iterable[str], ignore: Iterable[str]) -> bool:
    select = [s.upper() for s in select]
    if select and not any(code.startswith(prefix) for prefix in select):
        return False
    return not any(code.startswith(prefix.upper()) for prefix in ignore)


def lint_corpus(corpus: Corpus,
                *, include_infos: bool | None = None,
                select: Iterable[str] | None = None,
                ignore: Iterable[str] | None = None,
                extra_rules: list[LintRule] | None = None) -> LintResult:
    """Run all lint rules against every document in a corpus.

    Parameters
    ----------
    corpus
        The documents to lint.
    include_infos
        If ``False``, info-level diagnostics are suppressed.  Defaults to
        ``corpus.settings.include_infos``.
    select, ignore
        Code prefixes to keep / drop (``"E"``, ``"W001"``).  Default to the
        corpus settings.
    extra_rules
        One-shot rules to run in addition to built-in and registered rules.

    Returns
    -------
    LintResult
        Aggregated diagnostics from all rules.
    """
    settings = corpus.settings
    include_infos = settings.include_infos if include_infos is None else include_infos
    select = list(settings.select if select is None else select)
    ignore = list(settings.ignore if ignore is None else ignore)

    result = LintResult(name=str(corpus.root), documents_checked=len(corpus))
    all_rules = list(_BUILT_IN_RULES) + list(_RULES)

    if extra_rules:
        for i, rule in enumerate(extra_rules):
            all_rules.append((f"extra_rule_{i}", rule))

    for document in corpus.documents:
        display = corpus.relpath(document.path)
        with LogContext(path=display):
            for rule_name, rule in all_rules:
                try:
                    result.diagnostics.extend(rule(document, corpus))
                except Exception:
                    logger.warning("lint_rule_failed", rule=rule_name, exc_info=True)
                    result.diagnostics.append(
                        LintDiagnostic(
                            code="X001",
                            severity=Severity.WARNING,
                            message=f"Lint rule '{rule_name}' raised an exception.",
                            path=display,
                        )
                    )

    result.diagnostics = [
        d for d in result.diagnostics
        if (include_infos or d.severity != Severity.INFO) and _code_selected(d.code, select, ignore)
    ]

    logger.info("corpus_linted", summary=result.summary())
    return result


def lint_paths(paths: Iterable[str | Path], settings: DocQASettings | None = None, **kwargs: Any) -> LintResult:
    """Load a corpus from *paths* and lint it (keyword arguments go to :func:`lint_corpus`)."""
    return lint_corpus(Corpus.load(paths, settings), **kwargs)


__all__ = [
    "LintDiagnostic",
    "LintResult",
    "LintRule",
    "Severity",
    "clear_custom_rules",
    "describe_lint_rules",
    "lint_corpus",
    "lint_paths",
    "list_lint_rules",
    "register_lint_rule",
]
