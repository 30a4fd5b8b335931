"""Novelty detection against previously stored markers."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from .models import (
    FeedEntry,
    FeedUpdate,
    ManualUpdate,
    SeenHash,
    SeenIds,
    Source,
    SourceState,
)

logger = logging.getLogger(__name__)


def new_feed_entries(
    entries: Iterable[FeedEntry], seen: Optional[SeenIds]
) -> List[FeedEntry]:
    """Return entries whose id is not in ``seen``, preserving fetch order."""
    fresh: List[FeedEntry] = []
    emitted = set()
    for entry in entries:
        if entry.id in emitted:
            continue
        emitted.add(entry.id)
        if seen is not None and entry.id in seen:
            continue
        fresh.append(entry)
    return fresh


def merge_seen_ids(
    seen: Optional[SeenIds],
    entries: Iterable[FeedEntry],
    max_ids: Optional[int] = None,
) -> SeenIds:
    """Union stored ids with fetched ones.

    Stored ids keep their order and newly observed ids are appended in feed
    order. When ``max_ids`` is set, ids missing from the current fetch are
    dropped oldest-first until the cap is met; ids in the current fetch are
    never dropped.
    """
    merged: List[str] = list(seen.ids) if seen is not None else []
    known = set(merged)
    current = set()
    for entry in entries:
        current.add(entry.id)
        if entry.id not in known:
            merged.append(entry.id)
            known.add(entry.id)

    if max_ids is not None and len(merged) > max_ids:
        excess = len(merged) - max_ids
        pruned: List[str] = []
        for entry_id in merged:
            if excess and entry_id not in current:
                excess -= 1
                continue
            pruned.append(entry_id)
        logger.debug("Pruned %d stale ids", len(merged) - len(pruned))
        merged = pruned

    return SeenIds(tuple(merged))


def manual_changed(new_digest: str, stored: Optional[SeenHash]) -> bool:
    """A manual source changed when its digest differs from the stored one.

    Without a stored digest the new one becomes the baseline and nothing is
    reported.
    """
    if stored is None:
        return False
    return new_digest != stored.digest


def detect_feed(
    source: Source,
    entries: List[FeedEntry],
    previous: Optional[SourceState],
    max_ids: Optional[int] = None,
) -> Tuple[FeedUpdate, SourceState]:
    seen = _marker(previous, SeenIds)
    fresh = new_feed_entries(entries, seen)
    logger.info("%d new of %d entries in '%s'", len(fresh), len(entries), source.name)
    state = SourceState(source.name, merge_seen_ids(seen, entries, max_ids))
    return FeedUpdate(source.name, source.url, fresh), state


def detect_manual(
    source: Source, new_digest: str, previous: Optional[SourceState]
) -> Tuple[ManualUpdate, SourceState]:
    stored = _marker(previous, SeenHash)
    if stored is None:
        logger.info("Recorded baseline digest for '%s'", source.name)
    changed = manual_changed(new_digest, stored)
    state = SourceState(source.name, SeenHash(new_digest))
    return ManualUpdate(source.name, source.url, changed), state


def _marker(previous: Optional[SourceState], kind):
    if previous is None:
        return None
    if not isinstance(previous.last_seen, kind):
        logger.info(
            "Ignoring stored %s marker for '%s'",
            type(previous.last_seen).__name__,
            previous.source_name,
        )
        return None
    return previous.last_seen
