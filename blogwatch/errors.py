"""Error taxonomy for the feed check run.

Per-feed errors (FetchError, ParseError) and per-send errors (SendError) are
isolated by the runner; state errors decide whether a run counts as failed.
"""

from __future__ import annotations

from typing import Optional


class BlogwatchError(Exception):
    """Base class for all blogwatch errors"""
    pass


class FetchError(BlogwatchError):
    """Network or HTTP failure while retrieving one feed."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{url}: {reason}")


class ParseError(BlogwatchError):
    """Feed content could not be parsed as RSS/Atom."""
    pass


class StateCorruptError(BlogwatchError):
    """Stored checkpoint exists but cannot be read or fails validation.

    version is the store version of the bad value when it is known.
    """

    def __init__(self, message: str, version: Optional[int] = None):
        self.version = version
        super().__init__(message)


class StateReadError(BlogwatchError):
    """Checkpoint store could not be read; whether a value exists is unknown."""
    pass


class StatePersistError(BlogwatchError):
    """Checkpoint could not be written."""
    pass


class StateConflictError(StatePersistError):
    """Checkpoint changed in the store since it was loaded."""
    pass


class StaleVersionError(BlogwatchError):
    """Compare-and-swap write rejected by a key-value store."""

    def __init__(self, key: str, expected: Optional[int], actual: Optional[int]):
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(f"stale write for {key!r}: expected version {expected}, found {actual}")


class SendError(BlogwatchError):
    """Notification transport failed for one message."""
    pass
