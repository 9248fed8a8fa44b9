"""docqa command-line interface (``docqa ...``)."""

from docqa.cli.app import app

__all__ = ["app"]
