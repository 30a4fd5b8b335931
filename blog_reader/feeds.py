"""Feed parsing helpers."""

from __future__ import annotations

import calendar
import logging
import re
import time
from datetime import datetime, timezone
from typing import List, Optional

import feedparser
from bs4 import BeautifulSoup

from .errors import ParseError
from .models import FeedEntry

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "No Title"


def to_datetime(value: Optional[time.struct_time]) -> Optional[datetime]:
    """Convert feedparser UTC timestamps to timezone-aware datetimes."""
    if value is None:
        return None
    return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)


def parse_feed(payload: bytes) -> List[FeedEntry]:
    """Parse an RSS or Atom payload into entries, keeping document order."""
    parsed = feedparser.parse(payload)

    if not parsed.get("version"):
        reason = parsed.get("bozo_exception")
        if reason is not None:
            raise ParseError(f"Not an RSS or Atom document: {reason}")
        raise ParseError("Not an RSS or Atom document")

    if parsed.get("bozo"):
        logger.debug(
            "Feed parsed with recoverable problems: %s", parsed.get("bozo_exception")
        )

    entries: List[FeedEntry] = []
    for entry in parsed.entries:
        link = entry.get("link") or ""
        entry_id = entry.get("id") or link
        if not entry_id:
            logger.debug("Skipping entry without id or link: %r", entry.get("title"))
            continue
        if not link and entry_id.startswith(("http://", "https://")):
            link = entry_id

        title = _strip_html(entry.get("title") or "") or DEFAULT_TITLE

        published = None
        for attr in ("published_parsed", "updated_parsed", "created_parsed"):
            published = entry.get(attr)
            if published:
                break

        entries.append(
            FeedEntry(
                id=entry_id,
                title=title,
                link=link,
                published=to_datetime(published),
                summary=_extract_summary(entry),
            )
        )

    logger.debug("Parsed %d entries (%s)", len(entries), parsed.get("version"))
    return entries


def _extract_summary(entry) -> Optional[str]:
    summary = entry.get("summary")
    if not summary:
        summary_detail = entry.get("summary_detail")
        if summary_detail:
            summary = summary_detail.get("value")
    if not summary:
        content = entry.get("content")
        if content:
            try:
                summary = content[0].get("value")
            except (TypeError, KeyError, IndexError, AttributeError):
                summary = None
    if summary:
        return _strip_html(summary) or None
    return None


def _strip_html(raw_value: str) -> str:
    """Return text content extracted from HTML fragments."""
    if "<" not in raw_value and "&" not in raw_value:
        return re.sub(r"\s{2,}", " ", raw_value).strip()
    soup = BeautifulSoup(raw_value, "html.parser")
    text = soup.get_text(separator=" ", strip=True)
    text = re.sub(r"\s+([.,;:!?])", r"\1", text)
    text = re.sub(r"\s{2,}", " ", text)
    return text.strip()
