"""
Runnable examples embedded in Markdown documents.

A fenced code block is a *runnable example* when its first line is a
shebang::

    ```python
    #!/usr/bin/env python3
    # name: state-handler
    print("resumed", 42)
    ```

The shebang names the interpreter (``env -S`` is understood).  The example
name comes from the first ``name "x"`` / ``name: x`` / ``name = "x"`` in the
header lines that follow, which end at a blank line or a block-comment
terminator (``+/``, ``*/``, ``-}``).  A D single-file program with a
``/+ dub.sdl: name "x" +/`` header is therefore picked up as-is.

Running an example writes it to a temporary directory, executes it with
merged stdout/stderr and a timeout, strips ANSI styling, and drops build
noise lines.  Missing interpreters and timeouts are reported as failed
results; they do not raise.

Example::

    from docqa.corpus import read_document
    from docqa.examples import extract_examples, run_examples

    examples = extract_examples(read_document(Path("docs/handlers.md")))
    for result in run_examples(examples, settings, jobs=4):
        print(result.example.name, "ok" if result.passed else "FAILED")
"""

from __future__ import annotations

import functools
import re
import shlex
import subprocess
import tempfile
import time
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from docqa.config import DocQASettings
from docqa.errors import ConfigError, ExampleError
from docqa.logging import get_logger
from docqa.markdown import Document
from docqa.terminal import unstyle

logger = get_logger(__name__)

NO_OUTPUT = "(no output)"
TRUNCATED = "..."

_NAME_RE = re.compile(r"""^\W*name\b\s*(?:[:=]\s*["']?|\s+["'])(?P<name>[A-Za-z0-9_.\-]+)["']?""")
_HEADER_TERMINATORS = ("+/", "*/", "-}")
_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9_.\-]")

_EXTENSIONS = {
    "python": ".py", "py": ".py", "python3": ".py",
    "sh": ".sh", "bash": ".sh", "shell": ".sh", "zsh": ".zsh",
    "d": ".d",
    "haskell": ".hs", "hs": ".hs",
    "ocaml": ".ml", "ml": ".ml",
    "scala": ".scala",
    "rust": ".rs", "rs": ".rs",
    "typescript": ".ts", "ts": ".ts",
    "javascript": ".js", "js": ".js",
    "koka": ".kk",
    "ruby": ".rb", "rb": ".rb",
    "lua": ".lua",
}


@dataclass(frozen=True)
class Example:
    """A runnable code block.

    Attributes:
        name: Name from the header, or ``"unnamed"``.
        language: Fence info language (lower-case, may be empty).
        code: Block contents including the shebang line.
        path: Document the block came from.
        line: Line of the opening fence.
        interpreter: Shebang argv without ``/usr/bin/env``.
    """

    name: str
    language: str
    code: str
    path: Path | None
    line: int
    interpreter: tuple[str, ...]


@dataclass
class ExampleResult:
    example: Example
    command: list[str]
    returncode: int | None
    output_lines: list[str] = field(default_factory=list)
    duration: float = 0.0
    timed_out: bool = False
    error: str | None = None

    @property
    def passed(self) -> bool:
        return self.returncode == 0 and not self.timed_out and self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.example.name,
            "line": self.example.line,
            "command": self.command,
            "returncode": self.returncode,
            "passed": self.passed,
            "timed_out": self.timed_out,
            "error": self.error,
            "duration": round(self.duration, 3),
            "output": self.output_lines,
        }


@dataclass
class ExampleReport:
    source: str
    results: list[ExampleResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def failures(self) -> int:
        return sum(not r.passed for r in self.results)

    @property
    def passed(self) -> bool:
        return self.failures == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "total": self.total,
            "failures": self.failures,
            "passed": self.passed,
            "results": [r.to_dict() for r in self.results],
        }


# ── Extraction ───────────────────────────────────────────────────────────

def parse_shebang(line: str) -> list[str]:
    """Interpreter argv from a shebang line (``[]`` when there is none).

    >>> parse_shebang("#!/usr/bin/env -S python3 -u")
    ['python3', '-u']
    >>> parse_shebang("#!/bin/sh")
    ['/bin/sh']
    """
    stripped = line.strip()
    if not stripped.startswith("#!"):
        return []
    try:
        parts = shlex.split(stripped[2:])
    except ValueError:
        parts = stripped[2:].split()
    if parts and Path(parts[0]).name == "env":
        parts = parts[1:]
        if parts and parts[0] == "-S":
            parts = parts[1:]
    return parts


def extract_example_name(header_lines: Iterable[str]) -> str:
    """Name from the header lines following the shebang, or ``"unnamed"``."""
    for line in header_lines:
        stripped = line.strip()
        if not stripped:
            break
        match = _NAME_RE.match(stripped)
        if match:
            return match.group("name")
        if stripped.startswith(_HEADER_TERMINATORS):
            break
    return "unnamed"


def extract_examples(document: Document) -> list[Example]:
    """Runnable examples in *document*, in document order."""
    examples: list[Example] = []
    for block in document.code_blocks:
        if not block.closed or len(block.lines) < 2:
            continue
        interpreter = parse_shebang(block.lines[0])
        if not interpreter:
            continue
        examples.append(
            Example(
                name=extract_example_name(block.lines[1:]),
                language=block.language,
                code=block.code,
                path=document.path,
                line=block.line,
                interpreter=tuple(interpreter),
            )
        )
    logger.debug("examples_extracted", path=str(document.path), count=len(examples))
    return examples


# ── Running ──────────────────────────────────────────────────────────────

@functools.lru_cache(maxsize=32)
def _compile_patterns(patterns: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
    try:
        return tuple(re.compile(p) for p in patterns)
    except re.error as e:
        raise ConfigError(f"Invalid noise pattern: {e}", cause=e).with_context(pattern=e.pattern)


def is_noise(line: str, patterns: Sequence[str]) -> bool:
    """True if *line* is build noise. Blank lines are never noise."""
    if not line.strip():
        return False
    return any(p.search(line) for p in _compile_patterns(tuple(patterns)))


def format_output_lines(lines: Sequence[str], max_lines: int = 8) -> list[str]:
    """Lines to display for an example, truncated to *max_lines*.

    Raises:
        ValueError: *max_lines* is below 2 (no room for the truncation marker).
    """
    if max_lines < 2:
        raise ValueError("max_lines must be at least 2 for the truncation marker")
    if not lines:
        return [NO_OUTPUT]
    if len(lines) > max_lines:
        return list(lines[: max_lines - 1]) + [TRUNCATED]
    return list(lines)


def example_filename(example: Example) -> str:
    """Safe file name for *example*, with an extension derived from its language."""
    base = _UNSAFE_CHARS_RE.sub("_", example.name) or "unnamed"
    extension = _EXTENSIONS.get(example.language, "")
    if extension and base.endswith(extension):
        return base
    return base + extension


def build_command(example: Example, file: Path, settings: DocQASettings) -> list[str]:
    """argv for running *file*: a configured template, else the shebang argv plus the file."""
    template = settings.example_commands.get(Path(example.interpreter[0]).name)
    if template:
        return [part.replace("{file}", str(file)) for part in template]
    return [*example.interpreter, str(file)]


def _decode(output: str | bytes | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


def run_example(example: Example, settings: DocQASettings) -> ExampleResult:
    """Run one example and capture its result.

    Raises:
        ExampleError: the example file cannot be written.
    """
    started = time.monotonic()
    cwd = example.path.parent if example.path else None

    with tempfile.TemporaryDirectory(prefix="docqa-examples-") as tmp:
        file = Path(tmp) / example_filename(example)
        try:
            file.write_text(example.code + "\n", encoding="utf-8")
        except OSError as e:
            raise ExampleError(f"Cannot write example '{example.name}'", cause=e).with_context(
                path=str(example.path), line=example.line,
            )

        command = build_command(example, file, settings)
        logger.debug("example_started", name=example.name, command=command)

        timed_out = False
        error: str | None = None
        returncode: int | None = None
        try:
            completed = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=settings.example_timeout,
                cwd=cwd,
                check=False,
            )
            output = completed.stdout
            returncode = completed.returncode
        except subprocess.TimeoutExpired as e:
            output = _decode(e.output)
            timed_out = True
            error = f"timed out after {settings.example_timeout:g}s"
        except FileNotFoundError:
            output = ""
            error = f"interpreter not found: {command[0]}"
        except OSError as e:
            output = ""
            error = f"cannot start {command[0]}: {e.strerror or e}"

    lines = [unstyle(line) for line in (output or "").splitlines()]
    result = ExampleResult(
        example=example,
        command=command,
        returncode=returncode,
        output_lines=[line for line in lines if not is_noise(line, settings.example_noise_patterns)],
        duration=time.monotonic() - started,
        timed_out=timed_out,
        error=error,
    )
    logger.info(
        "example_finished",
        name=example.name,
        passed=result.passed,
        returncode=returncode,
        duration=round(result.duration, 3),
    )
    return result


def run_examples(
    examples: Sequence[Example],
    settings: DocQASettings,
    jobs: int | None = None,
    on_result: Callable[[int, ExampleResult], None] | None = None,
) -> list[ExampleResult]:
    """Run *examples*; results (and ``on_result`` callbacks) come in document order.

    Args:
        examples: Examples to run.
        settings: Timeout, commands and noise patterns.
        jobs: Worker threads; defaults to ``settings.example_jobs``.
        on_result: Called with ``(index, result)`` as each result becomes available.
    """
    jobs = jobs or settings.example_jobs
    results: list[ExampleResult] = []

    def collect(items: Iterable[ExampleResult]) -> None:
        for index, result in enumerate(items):
            results.append(result)
            if on_result is not None:
                on_result(index, result)

    if jobs <= 1 or len(examples) <= 1:
        collect(run_example(example, settings) for example in examples)
    else:
        with ThreadPoolExecutor(max_workers=jobs, thread_name_prefix="docqa-example") as pool:
            collect(pool.map(lambda example: run_example(example, settings), examples))

    return results
