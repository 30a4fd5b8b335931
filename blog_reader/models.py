"""Shared data models for blog_reader."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Tuple, Union


class SourceKind(enum.Enum):
    """How a source is tracked."""

    FEED = "feed"
    MANUAL = "manual"


@dataclass(frozen=True)
class Source:
    """A configured feed or manually tracked page."""

    name: str
    kind: SourceKind
    url: str

    @property
    def state_key(self) -> str:
        """Key of the stored marker; names are only for display."""
        return f"{self.kind.value}:{self.url}"


@dataclass(frozen=True)
class FeedEntry:
    """Single entry parsed from an RSS or Atom document."""

    id: str
    title: str
    link: str
    published: Optional[datetime] = None
    summary: Optional[str] = None


@dataclass(frozen=True)
class SeenIds:
    """Entry ids already observed for a feed, oldest first."""

    ids: Tuple[str, ...] = ()
    _lookup: FrozenSet[str] = field(
        init=False, repr=False, compare=False, default=frozenset()
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "_lookup", frozenset(self.ids))

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._lookup

    def __len__(self) -> int:
        return len(self.ids)


@dataclass(frozen=True)
class SeenHash:
    """Digest of the last fetched body of a manual source."""

    digest: str


SeenMarker = Union[SeenIds, SeenHash]


@dataclass(frozen=True)
class SourceState:
    """Persisted marker for one source."""

    source_name: str
    last_seen: SeenMarker


@dataclass
class FeedUpdate:
    """Entries of a feed that were not seen before."""

    source_name: str
    url: str
    new_entries: List[FeedEntry] = field(default_factory=list)


@dataclass
class ManualUpdate:
    """Change flag for a manual source."""

    source_name: str
    url: str
    changed: bool = False


@dataclass
class SourceFailure:
    """A source that could not be fetched or parsed during a check."""

    source_name: str
    url: str
    error: str


UpdateResult = Union[FeedUpdate, ManualUpdate, SourceFailure]
# keyed by Source.state_key
StateMapping = Dict[str, SourceState]


@dataclass
class CheckReport:
    """Outcome of a check cycle over all configured sources."""

    results: List[UpdateResult]
    state: StateMapping
    started_at: datetime
    finished_at: datetime

    @property
    def failures(self) -> List[SourceFailure]:
        return [item for item in self.results if isinstance(item, SourceFailure)]

    @property
    def new_entry_count(self) -> int:
        return sum(
            len(item.new_entries)
            for item in self.results
            if isinstance(item, FeedUpdate)
        )

    @property
    def changed_count(self) -> int:
        return sum(
            1 for item in self.results if isinstance(item, ManualUpdate) and item.changed
        )
