"""
docqa — quality checks for Markdown documentation corpora.

Lints a set of Markdown documents for broken relative links and anchors,
ragged tables, unclosed fences and heading problems; inspects the
cross-reference graph between documents; and runs the shebang-headed
code examples embedded in them.
"""

__version__ = "0.1.0"
