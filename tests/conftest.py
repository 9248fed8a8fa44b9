"""
Shared pytest fixtures and configuration for docqa tests.

This module provides:
- Registry / cache cleanup fixtures for test isolation
- ``write_docs`` for building Markdown corpora under ``tmp_path``
- Sample corpora: a clean one and one with every kind of breakage

Usage:
    Fixtures are auto-discovered by pytest.

    def test_something(clean_docs):
        corpus = Corpus.load([clean_docs])
"""

from __future__ import annotations

import os
import textwrap
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
import structlog

from docqa.config import clear_settings_cache
from docqa.linter import clear_custom_rules


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests without explicit markers as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_state(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """
    Reset global state around each test.

    Clears the settings cache and custom lint rules, drops DOCQA_* and
    editor variables from the environment, and restores structlog's
    defaults (CLI tests reconfigure it against CliRunner's streams).
    """
    for key in list(os.environ):
        if key.startswith("DOCQA_") or key in ("VISUAL", "EDITOR"):
            monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    clear_custom_rules()
    structlog.reset_defaults()
    yield
    clear_settings_cache()
    clear_custom_rules()
    structlog.reset_defaults()


# =============================================================================
# Corpus Fixtures
# =============================================================================


@pytest.fixture
def write_docs(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """
    Write ``{relative path: markdown}`` under ``tmp_path/docs`` and return that dir.

    Content is dedented and a leading newline dropped, so line numbers in
    tests count from the first written line.  An empty ``docqa.toml`` at
    ``tmp_path`` pins the project root.
    """
    (tmp_path / "docqa.toml").touch()
    base = tmp_path / "docs"

    def write(files: dict[str, str]) -> Path:
        for name, content in files.items():
            target = base / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        base.mkdir(parents=True, exist_ok=True)
        return base

    return write


CLEAN_DOCS = {
    "README.md": """
        # Project

        See the [guide](guide.md) and the [papers](papers.md#handlers).
    """,
    "guide.md": """
        # Guide

        ## Usage

        Back to [the index](README.md). Jump to [usage](#usage).

        | Language | Keyword |
        |----------|---------|
        | Koka     | `ctl`   |
        | Eff      | `perform` |
    """,
    "papers.md": """
        # Papers

        ## Handlers

        Link to the [guide](guide.md#usage) and [Koka](https://koka-lang.github.io).
    """,
}


BROKEN_DOCS = {
    "index.md": """
        # Index

        - [missing](nope.md)
        - [bad anchor](other.md#nowhere)
        - [undefined][ghost]
        - [empty]()

        ### Skipped level

        | a | b |
        |---|---|
        | 1 | 2 | 3 |

        [unused]: https://example.com
    """,
    "other.md": """
        # Other

        ## Dup
        ## Dup

        ```python
        never closed
    """,
}


@pytest.fixture
def clean_docs(write_docs: Callable[[dict[str, str]], Path]) -> Path:
    """Three interlinked documents with no diagnostics."""
    return write_docs(CLEAN_DOCS)


@pytest.fixture
def broken_docs(write_docs: Callable[[dict[str, str]], Path]) -> Path:
    """
    Two documents that trigger every built-in rule except I001.

    index.md: E001 (3), E002 (4), W002 (5), W004 (6), W003 (8), E003 (12), I002 (14)
    other.md: W001 (4), E004 (6)
    """
    return write_docs(BROKEN_DOCS)
