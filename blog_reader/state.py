"""Persistence of per-source seen markers."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import StateIOError
from .models import SeenHash, SeenIds, SeenMarker, SourceState, StateMapping

logger = logging.getLogger(__name__)

STATE_VERSION = 2


def marker_to_dict(marker: SeenMarker) -> Dict[str, Any]:
    if isinstance(marker, SeenIds):
        return {"kind": "feed", "seen_ids": list(marker.ids)}
    if isinstance(marker, SeenHash):
        return {"kind": "manual", "digest": marker.digest}
    raise TypeError(f"Unsupported marker: {marker!r}")


def marker_from_dict(data: Any) -> SeenMarker:
    if not isinstance(data, dict):
        raise ValueError("state record must be an object")
    kind = data.get("kind")
    if kind == "feed":
        ids = data.get("seen_ids")
        if not isinstance(ids, list):
            raise ValueError("feed record is missing 'seen_ids'")
        return SeenIds(tuple(str(item) for item in ids))
    if kind == "manual":
        digest = data.get("digest")
        if not isinstance(digest, str):
            raise ValueError("manual record is missing 'digest'")
        return SeenHash(digest)
    raise ValueError(f"unknown record kind {kind!r}")


def state_to_dict(state: SourceState) -> Dict[str, Any]:
    record = marker_to_dict(state.last_seen)
    record["name"] = state.source_name
    return record


def state_from_dict(key: str, record: Any) -> SourceState:
    marker = marker_from_dict(record)
    name = record.get("name")
    return SourceState(name if isinstance(name, str) and name else key, marker)


class JsonStateStore:
    """State kept in a single JSON document, replaced atomically on save."""

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def load(self) -> StateMapping:
        if not self.path.exists():
            logger.info("No state file at %s; starting fresh", self.path)
            return {}

        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            raise StateIOError(f"Cannot read state file {self.path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise StateIOError(f"State file is not valid JSON: {self.path}") from exc

        if not isinstance(payload, dict) or payload.get("version") != STATE_VERSION:
            raise StateIOError(f"Unsupported state file format: {self.path}")

        sources = payload.get("sources")
        if not isinstance(sources, dict):
            raise StateIOError(f"State file has no 'sources' object: {self.path}")

        mapping: StateMapping = {}
        for key, record in sources.items():
            try:
                mapping[key] = state_from_dict(key, record)
            except ValueError as exc:
                raise StateIOError(f"Invalid state for '{key}': {exc}") from exc

        logger.info("Loaded state for %d sources from %s", len(mapping), self.path)
        return mapping

    def save(self, mapping: StateMapping) -> None:
        document = {
            "version": STATE_VERSION,
            "sources": {
                key: state_to_dict(state) for key, state in sorted(mapping.items())
            },
        }
        text = json.dumps(document, indent=2, ensure_ascii=False)

        tmp_name: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StateIOError(f"Cannot write state file {self.path}: {exc}") from exc

        logger.info("Saved state for %d sources to %s", len(mapping), self.path)


def load_state(store) -> StateMapping:
    """Load state, falling back to an empty mapping when the store is unusable."""
    try:
        return store.load()
    except StateIOError as exc:
        logger.warning("Starting with empty state: %s", exc)
        return {}


def open_state_store(config):
    """Return the state store selected by the application config."""
    database = config.database
    if database.enabled:
        if database.connection_string:
            from .db import SqlStateStore

            return SqlStateStore(database.connection_string)
        logger.warning(
            "Database enabled but no connection string provided. Using %s.",
            config.state_file,
        )
    return JsonStateStore(config.state_file)
