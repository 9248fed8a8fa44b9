"""
Line-oriented Markdown parser.

Extracts the structure docqa checks: headings (ATX and setext) with their
GitHub anchors, links (inline, reference, autolink, ``<a href>``), link
reference definitions, GitHub pipe tables and fenced code blocks.  It is not
a renderer: paragraphs, emphasis and list nesting are not modelled.

Architecture::

    parse_markdown(text, path)
    │
    ├── skip YAML front matter
    ├── per line:
    │     ├── HTML comment masking
    │     ├── fenced code block  → CodeBlock   (contents never scanned)
    │     ├── link definition    → LinkDefinition
    │     ├── table header+delim → Table (+ rows)
    │     ├── inline scan        → Link, html anchors, word count
    │     └── ATX / setext       → Heading
    └── resolve reference links against definitions
    │
    ▼
    Document

Indented (4-space) code blocks are treated as ordinary text; list item
continuation lines use the same indentation and must still be scanned.
Fences are also recognised inside blockquotes and list items: indentation
is measured from the item's content column, and such a fence ends with its
container.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from docqa.logging import get_logger
from docqa.markdown.anchors import AnchorIndex, normalize_label, slugify
from docqa.markdown.model import (
    CodeBlock,
    Document,
    Heading,
    Link,
    LinkDefinition,
    LinkKind,
    Table,
    TableRow,
)

logger = get_logger(__name__)

_FENCE_OPEN_RE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
_FENCE_CLOSE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})[ \t]*$")
_ATX_RE = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?[ \t]*$")
_ATX_CLOSING_RE = re.compile(r"(?:^|[ \t]+)#+[ \t]*$")
_SETEXT_RE = re.compile(r"^ {0,3}(=+|-+)[ \t]*$")
_THEMATIC_BREAK_RE = re.compile(r"^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$")
_LIST_ITEM_RE = re.compile(r"^\s*(?:[-+*]|\d{1,9}[.)])(?:\s+|$)")
_BLOCKQUOTE_RE = re.compile(r"^ {0,3}>")
_BLOCKQUOTE_PREFIX_RE = re.compile(r"^(?: {0,3}> ?)+")
_LIST_MARKER_RE = re.compile(r"^(?P<indent> *)(?P<marker>[-+*]|\d{1,9}[.)])(?P<space> {1,4}(?=\S)|[ \t]*$)")
_DELIMITER_ROW_RE = re.compile(r"^\s*\|?\s*:?-+:?\s*(?:\|\s*:?-+:?\s*)*\|?\s*$")

_DEFINITION_RE = re.compile(
    r"^ {0,3}\[(?P<label>(?:[^\[\]\\]|\\.)+)\]:[ \t]*"
    r"(?P<dest><[^<>]*>|\S+)"
    r"(?:[ \t]+(?P<title>\"[^\"]*\"|'[^']*'|\([^)]*\)))?[ \t]*$"
)
_CODE_SPAN_RE = re.compile(r"(`+)(.+?)(?<!`)\1(?!`)")
_INLINE_LINK_RE = re.compile(
    r"(?P<bang>!?)\[(?P<text>(?:[^\[\]\\]|\\.|\[(?:[^\[\]\\]|\\.)*\])*)\]"
    r"\(\s*(?P<dest><[^<>\n]*>|(?:[^\s()\\]|\\.|\((?:[^\s()\\]|\\.)*\))*)"
    r"(?:\s+(?P<title>\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*'|\((?:[^()\\]|\\.)*\)))?\s*\)"
)
_REF_LINK_RE = re.compile(
    r"(?<![\w\\])(?P<bang>!?)\[(?P<text>(?:[^\[\]\\]|\\.)*)\]\[(?P<label>(?:[^\[\]\\]|\\.)*)\]"
)
_SHORTCUT_REF_RE = re.compile(r"(?<![\w\\\]])(?P<bang>!?)\[(?P<label>(?:[^\[\]\\]|\\.)+)\](?![\[(:])")
_AUTOLINK_RE = re.compile(r"<(?P<uri>[A-Za-z][A-Za-z0-9+.\-]{1,31}:[^\s<>]*|[^\s<>@]+@[^\s<>@]+\.[^\s<>@]+)>")
_HTML_HREF_RE = re.compile(r"<a\s[^>]*?\bhref\s*=\s*[\"']([^\"']*)[\"']", re.IGNORECASE)
_HTML_ID_RE = re.compile(r"<[A-Za-z][^>]*?\s(?:id|name)\s*=\s*[\"']([^\"']+)[\"']")
_WORD_RE = re.compile(r"\w+")
_ESCAPE_RE = re.compile(r"\\([!-/:-@\[-`{-~])")


@dataclass(frozen=True)
class _RefCandidate:
    text: str
    label: str
    line: int
    column: int
    is_image: bool
    shortcut: bool


def split_row(line: str) -> list[str]:
    """Split a table row into cells on unescaped pipes.

    A single leading and trailing pipe are optional; ``\\|`` is a literal
    pipe inside a cell.

    >>> split_row("| Koka | `ctl` \\\\| `fun` |")
    ['Koka', '`ctl` | `fun`']
    """
    s = line.strip()
    if s.startswith("|"):
        s = s[1:]
    if s.endswith("|") and not s.endswith("\\|"):
        s = s[:-1]

    cells: list[str] = []
    buf: list[str] = []
    i = 0
    while i < len(s):
        ch = s[i]
        if ch == "\\" and i + 1 < len(s) and s[i + 1] == "|":
            buf.append("|")
            i += 2
            continue
        if ch == "|":
            cells.append("".join(buf).strip())
            buf = []
        else:
            buf.append(ch)
        i += 1
    cells.append("".join(buf).strip())
    return cells


def is_delimiter_row(line: str) -> bool:
    """True for a table delimiter row such as ``|---|:--:|``."""
    return "|" in line and bool(_DELIMITER_ROW_RE.match(line))


def _alignment(cell: str) -> str | None:
    c = cell.strip()
    left, right = c.startswith(":"), c.endswith(":")
    if left and right:
        return "center"
    if right:
        return "right"
    if left:
        return "left"
    return None


def _blank(match: re.Match[str]) -> str:
    return " " * (match.end() - match.start())


def _mask_code_spans(line: str) -> str:
    return _CODE_SPAN_RE.sub(_blank, line)


def _mask_html_comments(line: str, in_comment: bool) -> tuple[str, bool]:
    """Blank out ``<!-- ... -->`` regions; returns the masked line and the new state."""
    out = line
    if in_comment:
        end = out.find("-->")
        if end < 0:
            return "", True
        out = " " * (end + 3) + out[end + 3:]
    while True:
        start = out.find("<!--")
        if start < 0:
            return out, False
        end = out.find("-->", start + 4)
        if end < 0:
            return out[:start], True
        out = out[:start] + " " * (end + 3 - start) + out[end + 3:]


def _unwrap_destination(dest: str) -> str:
    if dest.startswith("<") and dest.endswith(">"):
        dest = dest[1:-1]
    return _ESCAPE_RE.sub(r"\1", dest)


def _strip_indent(line: str, indent: int) -> str:
    removable = len(line) - len(line.lstrip(" "))
    return line[min(indent, removable):]


def _split_blockquote(line: str) -> tuple[int, str]:
    """``(depth, content)`` with the leading ``>`` markers removed."""
    match = _BLOCKQUOTE_PREFIX_RE.match(line)
    if not match:
        return 0, line
    return match.group(0).count(">"), line[match.end():]


def _container_content(line: str, quote_depth: int, list_offset: int) -> str | None:
    """*line* inside its blockquote / list item, or ``None`` once the container has ended."""
    if quote_depth:
        match = re.match(r"(?: {0,3}> ?){%d}" % quote_depth, line)
        if not match:
            return None
        line = line[match.end():]
    if line.strip() and len(line) - len(line.lstrip(" ")) < list_offset:
        return None
    return _strip_indent(line, list_offset)


class _MarkdownParser:
    def __init__(self, text: str, path: Path | None):
        self.lines = text.splitlines()
        self.doc = Document(path=path, text=text)
        self._anchors = AnchorIndex()
        self._pending_refs: list[_RefCandidate] = []
        self._paragraph: list[tuple[int, str]] = []
        self._list_offsets: list[int] = []

    def parse(self) -> Document:
        n = len(self.lines)
        i = self._skip_front_matter()
        in_comment = False

        while i < n:
            lineno = i + 1
            line, in_comment = _mask_html_comments(self.lines[i], in_comment)

            if not line.strip():
                self._paragraph = []
                i += 1
                continue

            quote_depth, content = _split_blockquote(line)
            list_offset = self._list_offset(content)
            fence = _FENCE_OPEN_RE.match(content[list_offset:])
            if fence and not (fence.group("fence")[0] == "`" and "`" in fence.group("info")):
                i = self._consume_fence(i, fence, quote_depth, list_offset)
                self._paragraph = []
                continue
            self._open_list_item(content)

            definition = _DEFINITION_RE.match(line)
            if definition and not definition.group("label").startswith("^"):
                self.doc.definitions.append(
                    LinkDefinition(
                        label=normalize_label(definition.group("label")),
                        target=_unwrap_destination(definition.group("dest")),
                        line=lineno,
                    )
                )
                self._paragraph = []
                i += 1
                continue

            if "|" in line and i + 1 < n and is_delimiter_row(self.lines[i + 1]):
                i = self._consume_table(i)
                self._paragraph = []
                continue

            self._scan_inline(line, lineno)

            atx = _ATX_RE.match(line)
            if atx:
                text = _ATX_CLOSING_RE.sub("", (atx.group(2) or "").strip())
                self._add_heading(len(atx.group(1)), text.strip(), lineno)
                self._paragraph = []
                i += 1
                continue

            setext = _SETEXT_RE.match(line)
            if setext and self._paragraph:
                level = 1 if setext.group(1)[0] == "=" else 2
                text = " ".join(part.strip() for _, part in self._paragraph)
                self._add_heading(level, text, self._paragraph[0][0])
                self._paragraph = []
                i += 1
                continue

            if (
                _THEMATIC_BREAK_RE.match(line)
                or _LIST_ITEM_RE.match(line)
                or _BLOCKQUOTE_RE.match(line)
                or line.lstrip().startswith("<")
            ):
                self._paragraph = []
            else:
                self._paragraph.append((lineno, line))
            i += 1

        self._resolve_references()
        return self.doc

    # ── Blocks ───────────────────────────────────────────────────────

    def _skip_front_matter(self) -> int:
        if self.lines and self.lines[0].strip() == "---":
            for j in range(1, len(self.lines)):
                if self.lines[j].strip() in ("---", "..."):
                    return j + 1
        return 0

    def _list_offset(self, content: str) -> int:
        """Content column of the innermost list item *content* still belongs to."""
        indent = len(content) - len(content.lstrip(" "))
        while self._list_offsets and indent < self._list_offsets[-1]:
            self._list_offsets.pop()
        return self._list_offsets[-1] if self._list_offsets else 0

    def _open_list_item(self, content: str) -> None:
        item = _LIST_MARKER_RE.match(content)
        if item:
            width = len(item.group("space")) if content[item.end():] else 1
            self._list_offsets.append(len(item.group("indent")) + len(item.group("marker")) + width)

    def _consume_fence(self, i: int, match: re.Match[str], quote_depth: int = 0, list_offset: int = 0) -> int:
        indent = len(match.group("indent"))
        fence = match.group("fence")
        block = CodeBlock(line=i + 1, fence=fence, info=match.group("info").strip())

        j = i + 1
        while j < len(self.lines):
            line = _container_content(self.lines[j], quote_depth, list_offset)
            if line is None:
                # the enclosing blockquote or list item ended first
                block.end_line = j
                self.doc.code_blocks.append(block)
                return j
            close = _FENCE_CLOSE_RE.match(line)
            if close and close.group(1)[0] == fence[0] and len(close.group(1)) >= len(fence):
                block.closed = True
                block.end_line = j + 1
                self.doc.code_blocks.append(block)
                return j + 1
            block.lines.append(_strip_indent(line, indent))
            j += 1

        block.end_line = len(self.lines)
        self.doc.code_blocks.append(block)
        logger.debug("unclosed_fence", path=str(self.doc.path), line=block.line)
        return len(self.lines)

    def _consume_table(self, i: int) -> int:
        header_line = self.lines[i]
        delimiter = split_row(self.lines[i + 1])
        table = Table(
            line=i + 1,
            header=split_row(header_line),
            delimiter_cells=len(delimiter),
            alignments=[_alignment(cell) for cell in delimiter],
        )
        self._scan_inline(header_line, i + 1)

        j = i + 2
        while j < len(self.lines):
            row = self.lines[j]
            if not row.strip() or "|" not in row or _FENCE_OPEN_RE.match(row):
                break
            table.rows.append(TableRow(line=j + 1, cells=tuple(split_row(row))))
            self._scan_inline(row, j + 1)
            j += 1

        self.doc.tables.append(table)
        return j

    def _add_heading(self, level: int, text: str, lineno: int) -> None:
        slug = slugify(text)
        anchor = self._anchors.add(slug)
        self.doc.headings.append(Heading(level=level, text=text, line=lineno, anchor=anchor, slug=slug))

    # ── Inline ───────────────────────────────────────────────────────

    def _scan_inline(self, line: str, lineno: int) -> None:
        masked = _mask_code_spans(line)
        self.doc.word_count += len(_WORD_RE.findall(masked))

        for m in _HTML_ID_RE.finditer(masked):
            self.doc.html_anchors.append(m.group(1))

        for m in _HTML_HREF_RE.finditer(masked):
            self.doc.links.append(
                Link(text="", target=m.group(1).strip(), line=lineno, column=m.start() + 1, kind=LinkKind.HTML)
            )

        for m in _AUTOLINK_RE.finditer(masked):
            uri = m.group("uri")
            target = uri if ":" in uri else f"mailto:{uri}"
            self.doc.links.append(
                Link(text=uri, target=target, line=lineno, column=m.start() + 1, kind=LinkKind.AUTOLINK)
            )
        masked = _AUTOLINK_RE.sub(_blank, masked)

        chars = list(masked)
        self._collect_inline_links(line, masked, lineno, 0, len(masked), chars)
        masked = "".join(chars)

        for m in _REF_LINK_RE.finditer(masked):
            label = m.group("label") or m.group("text")
            if not label.strip() or label.startswith("^"):
                continue
            self._pending_refs.append(
                _RefCandidate(
                    text=line[m.start("text"):m.end("text")],
                    label=normalize_label(label),
                    line=lineno,
                    column=m.start() + 1,
                    is_image=bool(m.group("bang")),
                    shortcut=False,
                )
            )
        masked = _REF_LINK_RE.sub(_blank, masked)

        for m in _SHORTCUT_REF_RE.finditer(masked):
            label = m.group("label")
            if not label.strip() or label.startswith("^"):
                continue
            self._pending_refs.append(
                _RefCandidate(
                    text=line[m.start("label"):m.end("label")],
                    label=normalize_label(label),
                    line=lineno,
                    column=m.start() + 1,
                    is_image=bool(m.group("bang")),
                    shortcut=True,
                )
            )

    def _collect_inline_links(
        self, line: str, masked: str, lineno: int, start: int, end: int, chars: list[str]
    ) -> None:
        for m in _INLINE_LINK_RE.finditer(masked, start, end):
            self.doc.links.append(
                Link(
                    text=line[m.start("text"):m.end("text")],
                    target=_unwrap_destination(m.group("dest")),
                    line=lineno,
                    column=m.start() + 1,
                    kind=LinkKind.INLINE,
                    is_image=bool(m.group("bang")),
                )
            )
            if "](" in m.group("text"):
                self._collect_inline_links(line, masked, lineno, m.start("text"), m.end("text"), chars)
            for k in range(m.start(), m.end()):
                chars[k] = " "

    def _resolve_references(self) -> None:
        definitions = self.doc.definition_map
        for ref in self._pending_refs:
            definition = definitions.get(ref.label)
            if ref.shortcut and definition is None:
                continue
            self.doc.links.append(
                Link(
                    text=ref.text,
                    target=definition.target if definition else "",
                    line=ref.line,
                    column=ref.column,
                    kind=LinkKind.REFERENCE,
                    is_image=ref.is_image,
                    label=ref.label,
                    defined=definition is not None,
                )
            )
        self.doc.links.sort(key=lambda link: (link.line, link.column))


def parse_markdown(text: str, path: Path | None = None) -> Document:
    """Parse Markdown *text* into a :class:`Document`.

    Args:
        text: Document source.
        path: Where the text came from; used for link resolution and reports.
    """
    return _MarkdownParser(text, path).parse()
