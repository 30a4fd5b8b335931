"""Jinja2 environment for blog_reader templates."""

from __future__ import annotations

from datetime import datetime
from importlib import resources

from jinja2 import Environment, FileSystemLoader

_ENV: Environment | None = None

DATE_FORMAT = "%e %b %y"


def format_date(value: datetime | None) -> str:
    """Format an entry date the way list rows show it, blank when unknown."""
    if value is None:
        return ""
    return value.strftime(DATE_FORMAT).strip()


def get_environment() -> Environment:
    """Return a cached Jinja environment configured for package templates."""
    global _ENV
    if _ENV is None:
        template_dir = resources.files(__package__) / "templates"
        loader = FileSystemLoader(str(template_dir))
        _ENV = Environment(
            loader=loader,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        _ENV.filters["entry_date"] = format_date
    return _ENV
