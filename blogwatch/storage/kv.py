"""Key-value port used for checkpoint persistence.

Every value carries an integer version bumped on each write so callers can
do compare-and-swap updates:

- put(key, value) always writes
- put(key, value, expected_version=0) writes only if the key is absent
- put(key, value, expected_version=n) writes only if the stored version is n
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from blogwatch.errors import StaleVersionError


@dataclass(frozen=True)
class VersionedValue:
    value: str
    version: int


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[VersionedValue]:
        ...

    def put(self, key: str, value: str, expected_version: Optional[int] = None) -> int:
        ...

    def list_values(self, prefix: str) -> List[str]:
        ...


class MemoryKeyValueStore:
    """Process-local store (tests, dry runs)."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, VersionedValue] = {}
        self._lock = threading.Lock()
        for key, value in (initial or {}).items():
            self._data[key] = VersionedValue(value, 1)

    def get(self, key: str) -> Optional[VersionedValue]:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: str, expected_version: Optional[int] = None) -> int:
        with self._lock:
            current = self._data.get(key)
            current_version = current.version if current else 0
            if expected_version is not None and expected_version != current_version:
                raise StaleVersionError(key, expected_version, current_version)
            new_version = current_version + 1
            self._data[key] = VersionedValue(value, new_version)
            return new_version

    def list_values(self, prefix: str) -> List[str]:
        with self._lock:
            return [self._data[k].value for k in sorted(self._data) if k.startswith(prefix)]
