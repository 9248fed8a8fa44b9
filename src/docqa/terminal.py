"""
Terminal helpers: ANSI stripping and editor source links.

Editor links turn ``path:line:col`` locations in reports into OSC 8
hyperlinks that open the file in the user's editor.  The scheme is picked
from an alias table (``code``, ``idea``, ``subl``, ...), usually detected
from ``$VISUAL`` / ``$EDITOR``.  Terminal editors have no URI scheme and
fall back to ``file://``.

Example::

    >>> source_uri("/src/docs/papers.md", 12, 3, editor="code")
    'vscode://file/src/docs/papers.md:12:3'
    >>> source_uri("/src/docs/papers.md", 12, editor="nvim")
    'file:///src/docs/papers.md#L12'
"""

from __future__ import annotations

import os
import re
import shlex
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.text import Text

# rich decodes SGR and ST-terminated OSC sequences; BEL-terminated OSC
# (the common OSC 8 form) is removed first.
_OSC_BEL_RE = re.compile(r"\x1b\][^\x07\x1b]*\x07")


def unstyle(text: str) -> str:
    """Remove ANSI styling and OSC 8 hyperlink sequences from a single line."""
    return Text.from_ansi(_OSC_BEL_RE.sub("", text)).plain


def unstyled_length(text: str) -> int:
    """Visible length of *text* once escape sequences are removed."""
    return len(unstyle(text))


# ── Editor scheme table ──────────────────────────────────────────────────

def file_uri(path: str, line: int, column: int) -> str:
    return f"file://{path}#L{line}"


def _file_scheme(prefix: str) -> Callable[[str, int, int], str]:
    def build(path: str, line: int, column: int) -> str:
        return f"{prefix}://file{path}:{line}:{column}"
    return build


def jetbrains_uri(path: str, line: int, column: int) -> str:
    return f"jetbrains://open?file={path}&line={line}&column={column}"


def sublime_uri(path: str, line: int, column: int) -> str:
    return f"subl://open?url=file://{path}&line={line}&column={column}"


def emacs_uri(path: str, line: int, column: int) -> str:
    return f"org-protocol://open-file?url=file://{path}&line={line}&column={column}"


def atom_uri(path: str, line: int, column: int) -> str:
    return f"atom://core/open/file?filename={path}&line={line}&column={column}"


def lapce_uri(path: str, line: int, column: int) -> str:
    return f"lapce://open?path={path}&line={line}&column={column}"


@dataclass(frozen=True)
class EditorScheme:
    name: str
    build: Callable[[str, int, int], str]
    aliases: tuple[str, ...]


EDITOR_SCHEMES: tuple[EditorScheme, ...] = (
    EditorScheme("VS Code", _file_scheme("vscode"), ("code",)),
    EditorScheme("VS Code Insiders", _file_scheme("vscode-insiders"), ("code-insiders",)),
    EditorScheme("Cursor", _file_scheme("cursor"), ("cursor",)),
    EditorScheme("Zed", _file_scheme("zed"), ("zed",)),
    EditorScheme("IntelliJ IDEA", jetbrains_uri, ("idea",)),
    EditorScheme("GoLand", jetbrains_uri, ("goland",)),
    EditorScheme("CLion", jetbrains_uri, ("clion",)),
    EditorScheme("PyCharm", jetbrains_uri, ("pycharm", "charm")),
    EditorScheme("RustRover", jetbrains_uri, ("rustrover",)),
    EditorScheme("WebStorm", jetbrains_uri, ("webstorm",)),
    EditorScheme("Sublime Text", sublime_uri, ("subl", "sublime_text")),
    EditorScheme("Emacs", emacs_uri, ("emacs", "emacsclient")),
    EditorScheme("Atom", atom_uri, ("atom",)),
    EditorScheme("Lapce", lapce_uri, ("lapce",)),
    # Terminal editors: no URI scheme of their own
    EditorScheme("Helix", file_uri, ("helix", "hx")),
    EditorScheme("Neovim", file_uri, ("nvim",)),
    EditorScheme("Vim", file_uri, ("vim", "vi")),
    EditorScheme("nano", file_uri, ("nano",)),
    EditorScheme("micro", file_uri, ("micro",)),
    EditorScheme("Kakoune", file_uri, ("kak",)),
)

DEFAULT_SCHEME = EditorScheme("Default", file_uri, ())


def find_scheme(alias: str) -> EditorScheme:
    """Scheme for an editor alias; unknown aliases get ``file://``."""
    for scheme in EDITOR_SCHEMES:
        if alias in scheme.aliases:
            return scheme
    return DEFAULT_SCHEME


def detect_editor(environ: Mapping[str, str] | None = None) -> str:
    """Editor alias from ``$VISUAL``, then ``$EDITOR`` (``"code --wait"`` → ``"code"``)."""
    env = os.environ if environ is None else environ
    value = env.get("VISUAL") or env.get("EDITOR") or ""
    try:
        parts = shlex.split(value)
    except ValueError:
        parts = value.split()
    return Path(parts[0]).name if parts else ""


def source_uri(path: str | Path, line: int = 1, column: int = 1, editor: str | None = None) -> str:
    """URI that opens *path* at *line*/*column* in *editor* (detected when ``None`` or empty)."""
    alias = editor or detect_editor()
    absolute = Path(path).resolve().as_posix()
    return find_scheme(alias).build(absolute, line, column)


def hyperlinks_enabled(mode: str, console: Console) -> bool:
    """Resolve the ``hyperlinks`` setting (``auto``/``on``/``off``) for *console*."""
    if mode == "on":
        return True
    if mode == "off":
        return False
    return console.is_terminal
