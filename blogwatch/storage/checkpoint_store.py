"""Durable checkpoint persistence on top of a key-value store.

No caching: each run reloads the store of record.
"""

from __future__ import annotations

import logging

from blogwatch.errors import StaleVersionError, StateConflictError, StateCorruptError, StatePersistError, StateReadError
from blogwatch.storage.checkpoint import CheckpointState, decode_state, encode_state
from blogwatch.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

STORAGE_KEY = "last_check_data"


class CheckpointStore:
    def __init__(self, kv: KeyValueStore, key: str = STORAGE_KEY):
        self.kv = kv
        self.key = key

    def load(self) -> CheckpointState:
        """Return stored state, or the default if nothing is stored.

        Raises StateCorruptError when a value exists but cannot be decoded,
        StateReadError when the backend itself fails.
        """
        try:
            stored = self.kv.get(self.key)
        except Exception as e:
            raise StateReadError(f"could not read checkpoint {self.key!r}: {e}") from e
        if stored is None:
            return CheckpointState.default()
        try:
            return decode_state(stored.value, version=stored.version)
        except StateCorruptError as e:
            # Keep the version so a later save can replace the bad value
            raise StateCorruptError(str(e), version=stored.version) from e

    def load_or_default(self) -> CheckpointState:
        try:
            return self.load()
        except StateCorruptError as e:
            logger.error(f"Checkpoint {self.key!r} unusable, starting from default state: {e}")
            return CheckpointState.default(version=e.version)

    def save(self, state: CheckpointState) -> CheckpointState:
        """Replace the stored checkpoint with state.

        Uses compare-and-swap against state.version when the state came from
        load(); raises StateConflictError if another writer got there first.
        """
        payload = encode_state(state)
        try:
            new_version = self.kv.put(self.key, payload, expected_version=state.version or 0)
        except StaleVersionError as e:
            raise StateConflictError(f"checkpoint {self.key!r} changed during the run: {e}") from e
        except Exception as e:
            raise StatePersistError(f"could not write checkpoint {self.key!r}: {e}") from e
        logger.info(
            f"Checkpoint saved (version {new_version}, last check {state.last_check_iso}, "
            f"{len(state.seen_entry_ids)} seen ids)"
        )
        return CheckpointState(state.last_check_time, set(state.seen_entry_ids), new_version)
