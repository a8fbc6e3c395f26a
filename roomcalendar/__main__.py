"""
Entry point for ``python -m roomcalendar``.
"""

from .cli.app import app

if __name__ == "__main__":
    app()
