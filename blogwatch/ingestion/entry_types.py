"""Shared feed entry data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class RawEntry:
    """Normalized feed item as returned by the parser.

    candidate_id is the first non-empty of guid/link/title; publish_time is
    epoch milliseconds or None when the item carries no usable date.
    """

    candidate_id: str
    title: str = "Untitled"
    link: str = "#"
    publish_time: Optional[int] = None
    author: Optional[str] = None
    summary: Optional[str] = None
    feed_title: str = "Unknown Blog"

    @property
    def has_identity(self) -> bool:
        return bool(self.candidate_id)


@dataclass(frozen=True)
class NewEntry:
    """Entry that passed the novelty test during one run (never persisted)."""

    entry: RawEntry
    effective_publish_time: int
    dedup_key: str

    @property
    def title(self) -> str:
        return self.entry.title

    @property
    def link(self) -> str:
        return self.entry.link

    @property
    def feed_title(self) -> str:
        return self.entry.feed_title


@dataclass(frozen=True)
class ParsedFeed:
    title: str
    entries: List[RawEntry] = field(default_factory=list)
    skipped: int = 0
