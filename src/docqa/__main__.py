"""Allow ``python -m docqa``."""

from docqa.cli.app import app

if __name__ == "__main__":
    app()
