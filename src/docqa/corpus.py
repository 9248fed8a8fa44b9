"""
Corpus - a set of Markdown documents and the links between them.

A corpus is what ``docqa`` checks: every Markdown file found under the
given paths, parsed once.  The articles are independent; the only
structure between them is plain relative hyperlinks, which the corpus
resolves into a cross-reference graph (outbound links, backlinks,
orphans).

Architecture::

    Corpus.load(paths, settings)
    │
    ├── discover_documents()   walk dirs, filter extensions / excludes
    ├── read_document()        UTF-8 read + parse_markdown()
    │
    ▼
    Corpus
    ├── resolve(doc, link)     → ResolvedLink (exists? markdown? fragment)
    ├── document_at(path)      corpus docs + lazily parsed outside docs
    ├── outbound / backlinks   cross-reference graph edges
    ├── orphans()              docs nothing links to
    └── stats()                CorpusStats

Example::

    corpus = Corpus.load(["docs/research/algebraic-effects"])
    for doc in corpus.documents:
        for link in doc.links:
            resolved = corpus.resolve(doc, link)
            if resolved and not resolved.exists:
                print(corpus.relpath(doc.path), link.line, link.target)
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Any

from docqa.config import DocQASettings, get_settings
from docqa.errors import DocumentReadError
from docqa.logging import get_logger
from docqa.markdown import Document, Link, TargetKind, parse_markdown, split_target

logger = get_logger(__name__)

INDEX_FILENAMES = ("README.md", "index.md")


@dataclass(frozen=True)
class ResolvedLink:
    """A relative or same-document link resolved against the filesystem.

    Attributes:
        link: The link as written.
        source: Document the link appears in.
        target_path: Absolute target (for directories, their README/index if present).
        fragment: Fragment without ``#`` (empty when absent).
        exists: Whether ``target_path`` exists.
        is_markdown: Whether the target is a Markdown file whose anchors can be checked.
    """

    link: Link
    source: Path
    target_path: Path
    fragment: str
    exists: bool
    is_markdown: bool


@dataclass
class DocumentStats:
    path: str
    headings: int
    internal_links: int
    external_links: int
    tables: int
    code_blocks: int
    words: int


@dataclass
class CorpusStats:
    root: str
    documents: list[DocumentStats] = field(default_factory=list)

    @property
    def totals(self) -> dict[str, int]:
        keys = ("headings", "internal_links", "external_links", "tables", "code_blocks", "words")
        result = {key: sum(getattr(d, key) for d in self.documents) for key in keys}
        result["documents"] = len(self.documents)
        return result

    def to_dict(self) -> dict[str, Any]:
        return {
            "root": self.root,
            "totals": self.totals,
            "documents": [asdict(d) for d in self.documents],
        }


def _pattern_path(candidate: Path, anchor: Path) -> str:
    try:
        return candidate.relative_to(anchor).as_posix()
    except ValueError:
        return candidate.as_posix()


def discover_documents(paths: Iterable[str | Path], settings: DocQASettings) -> list[Path]:
    """Find Markdown documents under *paths*.

    Files are taken as given; directories are walked recursively.  Directory
    names in ``settings.exclude_dirs`` are pruned and ``settings.exclude``
    fnmatch patterns are matched against the POSIX path relative to
    ``settings.root``, else the project root, else the walked directory.

    Raises:
        DocumentReadError: a given path does not exist.
    """
    found: set[Path] = set()
    extensions = {ext.lower() for ext in settings.extensions}
    excluded_dirs = set(settings.exclude_dirs)
    anchor = settings.root or settings._project_root
    anchor = anchor.resolve() if anchor is not None else None

    for raw in paths:
        path = Path(raw)
        if not path.exists():
            raise DocumentReadError(f"Path not found: {path}").with_context(path=str(path))
        if path.is_file():
            found.add(path.resolve())
            continue

        base = path.resolve()
        for candidate in base.rglob("*"):
            if candidate.suffix.lower() not in extensions or not candidate.is_file():
                continue
            relative = candidate.relative_to(base)
            if any(part in excluded_dirs for part in relative.parts[:-1]):
                continue
            if any(fnmatch(_pattern_path(candidate, anchor or base), pattern) for pattern in settings.exclude):
                continue
            found.add(candidate)

    logger.debug("documents_discovered", count=len(found))
    return sorted(found)


def read_document(path: Path) -> Document:
    """Read and parse one Markdown file.

    Raises:
        DocumentReadError: the file cannot be read or is not valid UTF-8.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise DocumentReadError(f"{path} is not valid UTF-8", cause=e).with_context(path=str(path))
    except OSError as e:
        raise DocumentReadError(f"Cannot read {path}: {e.strerror or e}", cause=e).with_context(path=str(path))
    return parse_markdown(text, path)


class Corpus:
    """Parsed Markdown documents plus their cross-reference graph."""

    def __init__(self, root: Path, documents: Iterable[Document], settings: DocQASettings | None = None):
        self.root = root
        self.settings = settings or DocQASettings()
        self._documents: dict[Path, Document] = {}
        for document in documents:
            if document.path is None:
                raise ValueError("corpus documents need a path")
            self._documents[document.path] = document
        self._outside: dict[Path, Document | None] = {}
        self._graph: dict[Path, list[ResolvedLink]] | None = None

    @classmethod
    def load(cls, paths: Iterable[str | Path], settings: DocQASettings | None = None) -> Corpus:
        """Discover and parse every document under *paths*."""
        settings = settings or get_settings()
        path_list = [Path(p) for p in paths] or [Path.cwd()]
        files = discover_documents(path_list, settings)

        if settings.root is not None:
            root = settings.root.resolve()
        else:
            dirs = [p.resolve() if p.is_dir() else p.resolve().parent for p in path_list]
            root = Path(os.path.commonpath([str(d) for d in dirs]))

        documents = [read_document(f) for f in files]
        logger.info("corpus_loaded", root=str(root), documents=len(documents))
        return cls(root, documents, settings)

    # ── Access ───────────────────────────────────────────────────────

    @property
    def documents(self) -> list[Document]:
        return [self._documents[p] for p in sorted(self._documents)]

    @property
    def paths(self) -> list[Path]:
        return sorted(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, Path) and path.resolve() in self._documents

    def get(self, path: Path) -> Document | None:
        return self._documents.get(path.resolve())

    def relpath(self, path: Path | None) -> str:
        """Display path: POSIX and relative to the corpus root when inside it."""
        if path is None:
            return "<string>"
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return str(path)

    def is_markdown(self, path: Path) -> bool:
        return path.suffix.lower() in {ext.lower() for ext in self.settings.extensions}

    def document_at(self, path: Path) -> Document | None:
        """Corpus document at *path*, or a lazily parsed Markdown file outside the corpus."""
        key = path.resolve()
        if key in self._documents:
            return self._documents[key]
        if key not in self._outside:
            document: Document | None = None
            if key.is_file() and self.is_markdown(key):
                try:
                    document = read_document(key)
                except DocumentReadError as e:
                    logger.warning("linked_document_unreadable", path=str(key), error=e.message)
            self._outside[key] = document
        return self._outside[key]

    # ── Links ────────────────────────────────────────────────────────

    def resolve(self, document: Document, link: Link) -> ResolvedLink | None:
        """Resolve a relative or same-document link; ``None`` for external and empty targets."""
        if document.path is None:
            return None

        kind = link.target_kind
        if kind is TargetKind.FRAGMENT:
            _, fragment = split_target(link.target)
            return ResolvedLink(
                link=link,
                source=document.path,
                target_path=document.path,
                fragment=fragment,
                exists=True,
                is_markdown=True,
            )
        if kind is not TargetKind.RELATIVE:
            return None

        rel, fragment = split_target(link.target)
        if not rel:
            target = document.path
        elif rel.startswith("/"):
            target = self.root / rel.lstrip("/")
        else:
            target = document.path.parent / rel
        target = Path(os.path.normpath(target))

        if target.is_dir():
            for name in INDEX_FILENAMES:
                if (target / name).is_file():
                    target = target / name
                    break

        exists = target.exists()
        return ResolvedLink(
            link=link,
            source=document.path,
            target_path=target,
            fragment=fragment,
            exists=exists,
            is_markdown=exists and target.is_file() and self.is_markdown(target),
        )

    def _build_graph(self) -> dict[Path, list[ResolvedLink]]:
        if self._graph is None:
            graph: dict[Path, list[ResolvedLink]] = {}
            for path, document in sorted(self._documents.items()):
                edges: list[ResolvedLink] = []
                for link in document.links:
                    resolved = self.resolve(document, link)
                    if resolved is None or not resolved.exists:
                        continue
                    if resolved.target_path.resolve() == path:
                        continue
                    if resolved.target_path.resolve() in self._documents:
                        edges.append(resolved)
                graph[path] = edges
            self._graph = graph
        return self._graph

    def outbound(self, path: Path) -> list[ResolvedLink]:
        """Links from *path* to other corpus documents."""
        return list(self._build_graph().get(path.resolve(), []))

    def backlinks(self, path: Path) -> list[ResolvedLink]:
        """Links from other corpus documents to *path*."""
        key = path.resolve()
        return [
            edge
            for edges in self._build_graph().values()
            for edge in edges
            if edge.target_path.resolve() == key
        ]

    def link_graph(self) -> dict[Path, set[Path]]:
        """Adjacency map: document → corpus documents it links to."""
        return {
            source: {edge.target_path.resolve() for edge in edges}
            for source, edges in self._build_graph().items()
        }

    def orphans(self) -> list[Path]:
        """Documents with no inbound link from another corpus document.

        Empty when the corpus has a single document; names listed in
        ``settings.orphan_exempt`` (entry points) are never orphans.
        """
        if len(self._documents) < 2:
            return []
        linked: set[Path] = set()
        for targets in self.link_graph().values():
            linked |= targets
        exempt = set(self.settings.orphan_exempt)
        return [p for p in self.paths if p not in linked and p.name not in exempt]

    # ── Stats ────────────────────────────────────────────────────────

    def stats(self) -> CorpusStats:
        result = CorpusStats(root=str(self.root))
        for document in self.documents:
            kinds = [link.target_kind for link in document.links]
            result.documents.append(
                DocumentStats(
                    path=self.relpath(document.path),
                    headings=len(document.headings),
                    internal_links=sum(k in (TargetKind.RELATIVE, TargetKind.FRAGMENT) for k in kinds),
                    external_links=sum(k is TargetKind.EXTERNAL for k in kinds),
                    tables=len(document.tables),
                    code_blocks=len(document.code_blocks),
                    words=document.word_count,
                )
            )
        return result
