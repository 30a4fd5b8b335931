"""Content hashing for manually tracked pages."""

from __future__ import annotations

import hashlib


def digest(payload: bytes) -> str:
    """Return the hex SHA-256 digest of a page body.

    The raw bytes are hashed as-is, so any change in markup (rotating ads,
    embedded timestamps, whitespace) is reported as a possible change.
    """
    return hashlib.sha256(payload).hexdigest()
