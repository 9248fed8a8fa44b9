"""Markdown document model and parser."""

from docqa.markdown.anchors import AnchorIndex, heading_plain_text, normalize_label, slugify
from docqa.markdown.model import (
    CodeBlock,
    Document,
    Heading,
    Link,
    LinkDefinition,
    LinkKind,
    Table,
    TableRow,
    TargetKind,
    classify_target,
    split_target,
)
from docqa.markdown.parser import is_delimiter_row, parse_markdown, split_row

__all__ = [
    "AnchorIndex",
    "CodeBlock",
    "Document",
    "Heading",
    "Link",
    "LinkDefinition",
    "LinkKind",
    "Table",
    "TableRow",
    "TargetKind",
    "classify_target",
    "heading_plain_text",
    "is_delimiter_row",
    "normalize_label",
    "parse_markdown",
    "slugify",
    "split_row",
    "split_target",
]
