"""Check cycle orchestration: fetch, parse or hash, and diff every source."""

from __future__ import annotations

import concurrent.futures
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .detector import detect_feed, detect_manual
from .errors import BlogReaderError, StateIOError
from .feeds import parse_feed
from .fetcher import DEFAULT_TIMEOUT, fetch
from .hashing import digest
from .models import (
    CheckReport,
    Source,
    SourceFailure,
    SourceKind,
    SourceState,
    StateMapping,
    UpdateResult,
)

logger = logging.getLogger(__name__)

Fetcher = Callable[..., bytes]


def check_source(
    source: Source,
    previous: Optional[SourceState],
    timeout: float = DEFAULT_TIMEOUT,
    max_seen_ids: Optional[int] = None,
    fetcher: Optional[Fetcher] = None,
) -> Tuple[UpdateResult, Optional[SourceState]]:
    """Run the pipeline for one source.

    Returns the result and the state to store, or ``previous`` when the
    source failed.
    """
    fetcher = fetcher or fetch
    try:
        payload = fetcher(source.url, timeout=timeout)
        if source.kind is SourceKind.FEED:
            return detect_feed(source, parse_feed(payload), previous, max_seen_ids)
        return detect_manual(source, digest(payload), previous)
    except BlogReaderError as exc:
        logger.warning("Check failed for '%s': %s", source.name, exc)
        return SourceFailure(source.name, source.url, str(exc)), previous
    except Exception as exc:  # noqa: BLE001 - one broken source must not end the cycle
        logger.exception("Unexpected error while checking '%s'", source.name)
        return SourceFailure(source.name, source.url, f"unexpected error: {exc}"), previous


def run_check_cycle(
    sources: Sequence[Source],
    state: StateMapping,
    concurrency: int = 8,
    timeout: float = DEFAULT_TIMEOUT,
    max_seen_ids: Optional[int] = None,
    fetcher: Optional[Fetcher] = None,
) -> CheckReport:
    """Check all sources over a bounded thread pool.

    ``state`` is keyed by :attr:`Source.state_key` and is not modified; the
    report carries the updated mapping.
    """
    started_at = datetime.now(timezone.utc)
    logger.info("Checking %d sources (concurrency=%d)", len(sources), concurrency)

    outcomes: Dict[int, Tuple[UpdateResult, Optional[SourceState]]] = {}
    if sources:
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=max(1, min(concurrency, len(sources)))
        ) as executor:
            future_to_index = {
                executor.submit(
                    check_source,
                    source,
                    state.get(source.state_key),
                    timeout,
                    max_seen_ids,
                    fetcher,
                ): index
                for index, source in enumerate(sources)
            }
            for future in concurrent.futures.as_completed(future_to_index):
                outcomes[future_to_index[future]] = future.result()

    results: List[UpdateResult] = []
    new_state: StateMapping = dict(state)
    for index in range(len(sources)):
        result, source_state = outcomes[index]
        results.append(result)
        if source_state is not None:
            new_state[sources[index].state_key] = source_state

    report = CheckReport(
        results=results,
        state=new_state,
        started_at=started_at,
        finished_at=datetime.now(timezone.utc),
    )
    logger.info(
        "Check finished: %d new entries, %d changed pages, %d failures",
        report.new_entry_count,
        report.changed_count,
        len(report.failures),
    )
    return report


def check_and_save(store, sources: Sequence[Source], state: StateMapping, **options):
    """Run a check cycle and persist its state.

    Returns ``(report, save_error)``; ``save_error`` is the StateIOError
    raised by the store, or None when the state was written.
    """
    report = run_check_cycle(sources, state, **options)
    try:
        store.save(report.state)
    except StateIOError as exc:
        logger.error("State not saved: %s", exc)
        return report, exc
    return report, None
