"""Rendering helpers for check reports."""

from __future__ import annotations

from .models import CheckReport, FeedUpdate, ManualUpdate, SourceFailure
from .templating import get_environment


def build_report_text(report: CheckReport, save_error: str | None = None) -> str:
    """Render a check cycle as plain text using the Jinja2 template."""
    env = get_environment()
    template = env.get_template("report.txt.j2")
    return template.render(
        report=report,
        feeds=[item for item in report.results if isinstance(item, FeedUpdate)],
        changed=[
            item
            for item in report.results
            if isinstance(item, ManualUpdate) and item.changed
        ],
        failures=[item for item in report.results if isinstance(item, SourceFailure)],
        save_error=save_error,
    )
