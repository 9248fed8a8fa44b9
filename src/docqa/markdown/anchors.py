"""
Heading anchors, computed the way GitHub renders them.

``slugify`` works on the *rendered* heading text: inline code keeps its
content, links and images keep their text, emphasis markers and HTML tags
disappear.  The remaining text is lower-cased, every character that is not
a letter, digit, space, hyphen or underscore is dropped, and spaces become
hyphens (runs of spaces are not collapsed).

Repeated slugs get ``-1``, ``-2``, ... suffixes in document order; see
:class:`AnchorIndex`.
"""

from __future__ import annotations

import re
import unicodedata

_CODE_SPAN_RE = re.compile(r"(`+)(.+?)(?<!`)\1(?!`)")
_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_INLINE_LINK_RE = re.compile(r"\[([^\]]*)\]\([^)]*\)")
_REF_LINK_RE = re.compile(r"\[([^\]]*)\]\[[^\]]*\]")
_HTML_TAG_RE = re.compile(r"<[^>]+>")
_UNDERSCORE_EMPHASIS_RE = re.compile(r"(?<!\w)_+|_+(?!\w)")
_WHITESPACE_RE = re.compile(r"\s+")


def _strip_inline_markup(text: str) -> str:
    text = _IMAGE_RE.sub(r"\1", text)
    text = _INLINE_LINK_RE.sub(r"\1", text)
    text = _REF_LINK_RE.sub(r"\1", text)
    text = _HTML_TAG_RE.sub("", text)
    return _UNDERSCORE_EMPHASIS_RE.sub("", text)


def heading_plain_text(text: str) -> str:
    """Rendered text of a heading: markup removed, code span content kept."""
    parts: list[str] = []
    pos = 0
    for match in _CODE_SPAN_RE.finditer(text):
        parts.append(_strip_inline_markup(text[pos:match.start()]))
        parts.append(match.group(2).strip())
        pos = match.end()
    parts.append(_strip_inline_markup(text[pos:]))
    return "".join(parts).strip()


def slugify(text: str) -> str:
    """GitHub-style anchor slug for a heading.

    >>> slugify("Koka & Effekt: row-polymorphic effects")
    'koka--effekt-row-polymorphic-effects'
    >>> slugify("`Eff` monad (freer)")
    'eff-monad-freer'
    """
    plain = heading_plain_text(text).lower()
    kept = [
        ch
        for ch in plain
        if ch.isalnum() or ch in " -_" or unicodedata.category(ch).startswith("M")
    ]
    return "".join(kept).replace(" ", "-")


def normalize_label(label: str) -> str:
    """Normalize a link reference label (case-fold, collapse whitespace)."""
    return _WHITESPACE_RE.sub(" ", label.strip()).casefold()


class AnchorIndex:
    """Assigns unique anchors within one document.

    >>> index = AnchorIndex()
    >>> [index.add("usage"), index.add("usage"), index.add("usage-1")]
    ['usage', 'usage-1', 'usage-1-1']
    """

    def __init__(self) -> None:
        self._occurrences: dict[str, int] = {}

    def add(self, slug: str) -> str:
        result = slug
        while result in self._occurrences:
            self._occurrences[slug] += 1
            result = f"{slug}-{self._occurrences[slug]}"
        self._occurrences[result] = 0
        return result
