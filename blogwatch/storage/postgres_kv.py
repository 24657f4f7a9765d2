"""Postgres-backed key-value store.

Schema creation is idempotent (CREATE IF NOT EXISTS) and runs on construction.
"""

from __future__ import annotations

from typing import List, Optional

import psycopg

from blogwatch.errors import StaleVersionError
from blogwatch.storage.kv import VersionedValue


SCHEMA_STATEMENTS: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS kv_store (
      key TEXT PRIMARY KEY,
      value TEXT NOT NULL,
      version BIGINT NOT NULL DEFAULT 1,
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
]


def ensure_kv_schema(pg_dsn: str) -> None:
    with psycopg.connect(pg_dsn, autocommit=True) as conn:
        with conn.cursor() as cur:
            for stmt in SCHEMA_STATEMENTS:
                cur.execute(stmt)


class PostgresKeyValueStore:
    def __init__(self, pg_dsn: str):
        self.pg_dsn = pg_dsn
        ensure_kv_schema(pg_dsn)

    def get(self, key: str) -> Optional[VersionedValue]:
        with psycopg.connect(self.pg_dsn) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT value, version FROM kv_store WHERE key = %s", (key,))
                row = cur.fetchone()
        if row is None:
            return None
        return VersionedValue(row[0], int(row[1]))

    def put(self, key: str, value: str, expected_version: Optional[int] = None) -> int:
        with psycopg.connect(self.pg_dsn) as conn:
            with conn.cursor() as cur:
                if expected_version is None:
                    cur.execute(
                        """
                        INSERT INTO kv_store (key, value, version)
                        VALUES (%s, %s, 1)
                        ON CONFLICT (key) DO UPDATE SET
                          value = EXCLUDED.value,
                          version = kv_store.version + 1,
                          updated_at = now()
                        RETURNING version
                        """,
                        (key, value),
                    )
                    return int(cur.fetchone()[0])

                if expected_version == 0:
                    cur.execute(
                        """
                        INSERT INTO kv_store (key, value, version)
                        VALUES (%s, %s, 1)
                        ON CONFLICT (key) DO NOTHING
                        RETURNING version
                        """,
                        (key, value),
                    )
                else:
                    cur.execute(
                        """
                        UPDATE kv_store
                        SET value = %s, version = version + 1, updated_at = now()
                        WHERE key = %s AND version = %s
                        RETURNING version
                        """,
                        (value, key, expected_version),
                    )
                row = cur.fetchone()
                if row is None:
                    cur.execute("SELECT version FROM kv_store WHERE key = %s", (key,))
                    current = cur.fetchone()
                    raise StaleVersionError(key, expected_version, int(current[0]) if current else 0)
                return int(row[0])

    def list_values(self, prefix: str) -> List[str]:
        with psycopg.connect(self.pg_dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT value FROM kv_store WHERE left(key, length(%s)) = %s ORDER BY key",
                    (prefix, prefix),
                )
                return [r[0] for r in cur.fetchall()]
