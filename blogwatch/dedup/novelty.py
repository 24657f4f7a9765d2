"""Novelty test for feed entries (core domain).

An entry is new iff its dedup key has not been seen AND its effective
publish time is later than the checkpoint's last check time. Entries
without a publish time are treated as published "now".

The seen set lives on the CheckpointState passed in and is updated as soon
as an entry is accepted, so duplicates later in the same run (same feed or
another feed) are rejected. Ids share one namespace across feeds in the
"global" scope; two feeds emitting the same guid/link/title suppress each
other. The "per_feed" scope prefixes ids with the feed URL instead.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from blogwatch.ingestion.entry_types import NewEntry, RawEntry
from blogwatch.storage.checkpoint import CheckpointState

SCOPE_GLOBAL = "global"
SCOPE_PER_FEED = "per_feed"


def dedup_key(candidate_id: str, feed_key: Optional[str], scope: str = SCOPE_GLOBAL) -> str:
    if scope == SCOPE_GLOBAL:
        return candidate_id
    if scope == SCOPE_PER_FEED:
        if not feed_key:
            raise ValueError("per_feed dedup scope requires a feed key")
        return f"{feed_key}\n{candidate_id}"
    raise ValueError(f"Unsupported dedup scope: {scope}")


def evaluate(
    entries: Iterable[RawEntry],
    state: CheckpointState,
    now: int,
    *,
    feed_key: Optional[str] = None,
    scope: str = SCOPE_GLOBAL,
) -> Tuple[List[NewEntry], CheckpointState]:
    """Select new entries and record them in state.seen_entry_ids.

    state is mutated in place and returned so one state can accumulate
    results across all feeds of a run.
    """
    new_entries: List[NewEntry] = []
    for entry in entries:
        cid = (entry.candidate_id or "").strip()
        if not cid:
            continue
        effective = entry.publish_time if entry.publish_time is not None else now
        key = dedup_key(cid, feed_key, scope)
        if key in state.seen_entry_ids or effective <= state.last_check_time:
            continue
        new_entries.append(NewEntry(entry=entry, effective_publish_time=effective, dedup_key=key))
        state.seen_entry_ids.add(key)
    return new_entries, state


def advance(state: CheckpointState, now: int) -> CheckpointState:
    """Move the checkpoint to now once every feed has been handled.

    Feeds that failed this run do not hold the checkpoint back. The max()
    keeps last_check_time non-decreasing if the clock steps backwards.
    """
    state.last_check_time = max(state.last_check_time, int(now))
    return state


def sort_newest_first(entries: Sequence[NewEntry]) -> List[NewEntry]:
    return sorted(entries, key=lambda e: e.effective_publish_time, reverse=True)
