"""Checkpoint state and its JSON representation.

Stored value (single key):
    {"lastCheckTime": <epoch ms>, "seenEntryIds": ["id", ...]}

Values written by the first worker generation,
    {"lastCheck": <epoch ms>, "seenEntries": {"id": <epoch ms>, ...}}
are still accepted on read and rewritten in the current shape on save.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Set

from blogwatch.errors import StateCorruptError


@dataclass
class CheckpointState:
    last_check_time: int = 0
    seen_entry_ids: Set[str] = field(default_factory=set)
    # Store version at load time; None when nothing has been stored yet.
    version: Optional[int] = None

    @classmethod
    def default(cls, version: Optional[int] = None) -> 'CheckpointState':
        return cls(last_check_time=0, seen_entry_ids=set(), version=version)

    def copy(self) -> 'CheckpointState':
        return CheckpointState(self.last_check_time, set(self.seen_entry_ids), self.version)

    @property
    def last_check_iso(self) -> str:
        return datetime.fromtimestamp(self.last_check_time / 1000, tz=timezone.utc).isoformat()


def encode_state(state: CheckpointState) -> str:
    return json.dumps(
        {
            "lastCheckTime": int(state.last_check_time),
            "seenEntryIds": sorted(state.seen_entry_ids),
        },
        separators=(",", ":"),
    )


# 9999-12-31T23:59:59.999Z, the latest instant datetime can represent
MAX_CHECK_TIME_MS = 253402300799999


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def decode_state(raw: str, version: Optional[int] = None) -> CheckpointState:
    """Parse and validate a stored checkpoint; raises StateCorruptError."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise StateCorruptError(f"checkpoint is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise StateCorruptError(f"checkpoint must be a JSON object, got {type(data).__name__}")

    if "lastCheckTime" in data or "seenEntryIds" in data:
        last_check = data.get("lastCheckTime")
        seen = data.get("seenEntryIds")
        if not isinstance(seen, list):
            raise StateCorruptError("seenEntryIds must be an array")
    elif "lastCheck" in data or "seenEntries" in data:
        last_check = data.get("lastCheck")
        seen = data.get("seenEntries")
        if not isinstance(seen, dict):
            raise StateCorruptError("seenEntries must be an object")
        seen = list(seen.keys())
    else:
        raise StateCorruptError("checkpoint has no recognised fields")

    # NaN and infinities fail the range comparison too
    if not _is_number(last_check) or not 0 <= last_check <= MAX_CHECK_TIME_MS:
        raise StateCorruptError(f"invalid lastCheckTime: {last_check!r}")
    if not all(isinstance(s, str) for s in seen):
        raise StateCorruptError("seen entry ids must be strings")

    return CheckpointState(last_check_time=int(last_check), seen_entry_ids=set(seen), version=version)
