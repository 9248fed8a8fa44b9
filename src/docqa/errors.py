"""
Structured error types for docqa.

Lint findings (a broken link, a ragged table) are *diagnostics*, never
exceptions.  The types here cover failures of the tool itself: a document
that cannot be read, a configuration file that does not validate, an
example interpreter that cannot be started.

Every error carries:
- **Category:** what kind of failure (config, io, parse, execution, internal)
- **Context:** where it happened (path, line, rule, command, extra fields)
- **Cause:** the chained underlying exception, if any

Architecture:
    ::

        DocQAError (category, context, cause)
        ├── ConfigError          CONFIG
        ├── DocumentReadError    IO
        ├── ExampleError         EXECUTION
        └── RuleError            INTERNAL

Usage:
    from docqa.errors import DocumentReadError

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DocumentReadError(f"Cannot read {path}", cause=e).with_context(path=str(path))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for reporting and CLI exit codes."""

    CONFIG = "CONFIG"
    IO = "IO"
    PARSE = "PARSE"
    EXECUTION = "EXECUTION"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """Where an error happened.

    Attributes:
        path: Document or config file involved.
        line: 1-based line number inside ``path``.
        rule: Lint rule name, for rule failures.
        command: Command line, for example-runner failures.
        extra: Anything else worth reporting.
    """

    path: str | None = None
    line: int | None = None
    rule: str | None = None
    command: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Non-empty fields as a plain dict (``extra`` is flattened in)."""
        result: dict[str, Any] = {}
        for key in ("path", "line", "rule", "command"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        result.update(self.extra)
        return result


class DocQAError(Exception):
    """Base class for all docqa errors."""

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DocQAError:
        """Add context fields; unknown keys go into ``context.extra``.

        Returns ``self`` so it can be chained into a ``raise``.
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "extra":
                setattr(self.context, key, value)
            else:
                self.context.extra[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output and structured logs."""
        result: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "context": self.context.to_dict(),
        }
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, category={self.category.value})"


class ConfigError(DocQAError):
    """Invalid or unreadable configuration (TOML file, env vars)."""

    default_category = ErrorCategory.CONFIG


class DocumentReadError(DocQAError):
    """A Markdown document could not be read or decoded."""

    default_category = ErrorCategory.IO


class ExampleError(DocQAError):
    """The example runner could not prepare or start an example."""

    default_category = ErrorCategory.EXECUTION


class RuleError(DocQAError):
    """A lint rule is misconfigured (bad registration, bad code)."""

    default_category = ErrorCategory.INTERNAL


__all__ = [
    "ConfigError",
    "DocQAError",
    "DocumentReadError",
    "ErrorCategory",
    "ErrorContext",
    "ExampleError",
    "RuleError",
]
