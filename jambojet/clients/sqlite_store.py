"""SQLite-backed shared tier for processes that run on the same host."""

from __future__ import annotations

import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

from jambojet.core.exceptions import SharedTierUnavailable


class SQLiteSharedCache:
    """Key-value cache in a single table with an absolute expiry per row.

    Expiry is stored as wall-clock epoch seconds because the file is shared
    between processes; rows past their expiry read as missing and are purged
    opportunistically.
    """

    def __init__(
        self,
        db_path: str,
        *,
        timeout_seconds: float = 2.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db_path = Path(db_path)
        self._timeout = timeout_seconds
        self._clock = clock
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=self._timeout, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _session(self, operation: str, key: str) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise SharedTierUnavailable(f"SQLite {operation} {key!r} failed: {exc}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise SharedTierUnavailable(f"SQLite {operation} {key!r} failed: {exc}") from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._session("schema", "kv_cache") as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_cache (
                    cache_key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL NOT NULL
                )
                """
            )

    def get(self, key: str) -> Optional[str]:
        now = self._clock()
        with self._session("get", key) as conn:
            row = conn.execute(
                "SELECT value, expires_at FROM kv_cache WHERE cache_key = ?",
                (key,),
            ).fetchone()
            if row and row["expires_at"] <= now:
                conn.execute(
                    "DELETE FROM kv_cache WHERE cache_key = ? AND expires_at <= ?",
                    (key, now),
                )
                return None
        if not row:
            return None
        return row["value"]

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        expires_at = self._clock() + ttl_seconds
        with self._session("set", key) as conn:
            conn.execute(
                """
                INSERT INTO kv_cache (cache_key, value, expires_at)
                VALUES (?, ?, ?)
                ON CONFLICT(cache_key) DO UPDATE SET
                    value = excluded.value,
                    expires_at = excluded.expires_at
                """,
                (key, value, expires_at),
            )

    def delete(self, key: str) -> None:
        with self._session("delete", key) as conn:
            conn.execute("DELETE FROM kv_cache WHERE cache_key = ?", (key,))

    def add(self, key: str, value: str, ttl_seconds: float) -> bool:
        now = self._clock()
        with self._session("add", key) as conn:
            cursor = conn.execute(
                """
                INSERT INTO kv_cache (cache_key, value, expires_at)
                VALUES (?, ?, ?)
                ON CONFLICT(cache_key) DO UPDATE SET
                    value = excluded.value,
                    expires_at = excluded.expires_at
                WHERE kv_cache.expires_at <= ?
                """,
                (key, value, now + ttl_seconds, now),
            )
            return cursor.rowcount == 1

    def delete_if_equals(self, key: str, value: str) -> bool:
        with self._session("delete_if_equals", key) as conn:
            cursor = conn.execute(
                "DELETE FROM kv_cache WHERE cache_key = ? AND value = ?",
                (key, value),
            )
            return cursor.rowcount == 1


__all__ = ["SQLiteSharedCache"]
