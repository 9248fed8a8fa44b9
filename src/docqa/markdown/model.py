"""Document model produced by :func:`docqa.markdown.parser.parse_markdown`."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from urllib.parse import unquote

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")


class TargetKind(str, Enum):
    """What a link target points at."""

    EMPTY = "empty"
    FRAGMENT = "fragment"
    EXTERNAL = "external"
    RELATIVE = "relative"


class LinkKind(str, Enum):
    """How a link was written."""

    INLINE = "inline"
    REFERENCE = "reference"
    AUTOLINK = "autolink"
    HTML = "html"


def classify_target(target: str) -> TargetKind:
    """Classify a link destination.

    >>> classify_target("https://koka-lang.github.io")
    <TargetKind.EXTERNAL: 'external'>
    >>> classify_target("#handlers")
    <TargetKind.FRAGMENT: 'fragment'>
    >>> classify_target("../papers.md#2009")
    <TargetKind.RELATIVE: 'relative'>
    """
    t = target.strip()
    if not t:
        return TargetKind.EMPTY
    if t.startswith("#"):
        return TargetKind.FRAGMENT
    if t.startswith("//") or _SCHEME_RE.match(t):
        return TargetKind.EXTERNAL
    return TargetKind.RELATIVE


def split_target(target: str) -> tuple[str, str]:
    """Split a destination into a percent-decoded path and fragment.

    Query strings are dropped; the fragment is returned without ``#``.
    """
    path, _, fragment = target.strip().partition("#")
    path = path.split("?", 1)[0]
    return unquote(path), unquote(fragment)


@dataclass(frozen=True)
class Heading:
    level: int
    text: str
    line: int
    anchor: str
    slug: str


@dataclass(frozen=True)
class Link:
    """A link or image found in the document body.

    For reference links ``label`` is the normalized label and ``target``
    comes from the matching definition (empty when the label is undefined).
    """

    text: str
    target: str
    line: int
    column: int
    kind: LinkKind = LinkKind.INLINE
    is_image: bool = False
    label: str | None = None
    defined: bool = True

    @property
    def target_kind(self) -> TargetKind:
        return classify_target(self.target)


@dataclass(frozen=True)
class LinkDefinition:
    label: str
    target: str
    line: int


@dataclass(frozen=True)
class TableRow:
    line: int
    cells: tuple[str, ...]


@dataclass
class Table:
    """A GitHub-flavoured pipe table.

    Attributes:
        line: Line of the header row.
        header: Header cells.
        delimiter_cells: Number of cells in the ``---|---`` row.
        alignments: ``"left"``, ``"right"``, ``"center"`` or ``None`` per delimiter cell.
        rows: Body rows (header and delimiter excluded).
    """

    line: int
    header: list[str]
    delimiter_cells: int
    alignments: list[str | None] = field(default_factory=list)
    rows: list[TableRow] = field(default_factory=list)

    @property
    def columns(self) -> int:
        return len(self.header)


@dataclass
class CodeBlock:
    line: int
    fence: str
    info: str
    lines: list[str] = field(default_factory=list)
    end_line: int | None = None
    closed: bool = False

    @property
    def language(self) -> str:
        return self.info.split()[0].lower() if self.info.strip() else ""

    @property
    def code(self) -> str:
        return "\n".join(self.lines)


@dataclass
class Document:
    """A parsed Markdown document. Read-only once built."""

    path: Path | None
    text: str
    headings: list[Heading] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)
    definitions: list[LinkDefinition] = field(default_factory=list)
    tables: list[Table] = field(default_factory=list)
    code_blocks: list[CodeBlock] = field(default_factory=list)
    html_anchors: list[str] = field(default_factory=list)
    word_count: int = 0

    @property
    def name(self) -> str:
        return self.path.name if self.path else "<string>"

    @property
    def anchors(self) -> set[str]:
        """Every fragment id a link may target in this document."""
        return {h.anchor for h in self.headings} | set(self.html_anchors)

    @property
    def definition_map(self) -> dict[str, LinkDefinition]:
        """Definitions by normalized label; the first definition wins."""
        result: dict[str, LinkDefinition] = {}
        for definition in self.definitions:
            result.setdefault(definition.label, definition)
        return result

    def has_anchor(self, fragment: str) -> bool:
        """True if *fragment* names a heading or HTML anchor (case-insensitive)."""
        wanted = fragment.lower()
        return any(anchor.lower() == wanted for anchor in self.anchors)
