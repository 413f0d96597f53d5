"""Command-line interface registration for the Flask application."""

from __future__ import annotations

from flask import Flask

from .tokens import tokens_cli
from .users import users_cli


def init_app(app: Flask) -> None:
    """Register the ``users`` and ``tokens`` command groups on ``app.cli``."""
    app.cli.add_command(users_cli)
    app.cli.add_command(tokens_cli)
