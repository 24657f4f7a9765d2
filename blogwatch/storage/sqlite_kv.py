"""SQLite-backed key-value store (default checkpoint backend)."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional

from blogwatch.errors import StaleVersionError
from blogwatch.storage.kv import VersionedValue

logger = logging.getLogger(__name__)


class SQLiteKeyValueStore:
    def __init__(self, db_path: str = "state/blogwatch.db"):
        self.db_path = db_path
        self._ensure_db_directory()
        self.init_database()

    def _ensure_db_directory(self):
        """Ensure database directory exists"""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def get_connection(self):
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        try:
            yield conn
        finally:
            conn.close()

    def init_database(self):
        with self.get_connection() as conn:
            conn.execute('PRAGMA journal_mode=WAL;')
            conn.execute('''
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            ''')
            conn.commit()

    def get(self, key: str) -> Optional[VersionedValue]:
        with self.get_connection() as conn:
            row = conn.execute('SELECT value, version FROM kv_store WHERE key = ?', (key,)).fetchone()
        if row is None:
            return None
        return VersionedValue(row[0], int(row[1]))

    def put(self, key: str, value: str, expected_version: Optional[int] = None) -> int:
        with self.get_connection() as conn:
            # BEGIN IMMEDIATE takes the write lock before the version check
            conn.isolation_level = None
            conn.execute('BEGIN IMMEDIATE')
            try:
                row = conn.execute('SELECT version FROM kv_store WHERE key = ?', (key,)).fetchone()
                current_version = int(row[0]) if row else 0
                if expected_version is not None and expected_version != current_version:
                    raise StaleVersionError(key, expected_version, current_version)
                new_version = current_version + 1
                conn.execute(
                    '''
                    INSERT INTO kv_store (key, value, version, updated_at)
                    VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        version = excluded.version,
                        updated_at = CURRENT_TIMESTAMP
                    ''',
                    (key, value, new_version),
                )
                conn.execute('COMMIT')
            except BaseException:
                conn.execute('ROLLBACK')
                raise
        return new_version

    def list_values(self, prefix: str) -> List[str]:
        with self.get_connection() as conn:
            rows = conn.execute(
                'SELECT value FROM kv_store WHERE substr(key, 1, length(?)) = ? ORDER BY key',
                (prefix, prefix),
            ).fetchall()
        return [r[0] for r in rows]
