from __future__ import annotations

import os
import sqlite3
import threading
import time
from contextlib import contextmanager
from typing import Iterator

MEMORY_PATH = ":memory:"


class KeyValueStore:
    """Durable string key-value store with optional per-key expiry.

    File-backed stores open a new sqlite connection per operation, so one
    store can be shared between the timer thread and the manual trigger
    server. An in-memory store lives in a single connection guarded by a lock.
    Writes are unconditional; the last writer for a key wins.
    """

    def __init__(self, path: str, *, clock=time.time):
        self._path = path
        self._clock = clock
        self._shared: sqlite3.Connection | None = None
        self._lock = threading.Lock()

        if path == MEMORY_PATH:
            self._shared = sqlite3.connect(path, check_same_thread=False)
        else:
            folder = os.path.dirname(os.path.abspath(path))
            if folder and not os.path.exists(folder):
                os.makedirs(folder, exist_ok=True)

        with self._session() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL
                );
                """
            )

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        # Commits on success, rolls back on error.
        if self._shared is not None:
            with self._lock, self._shared:
                yield self._shared
            return

        conn = sqlite3.connect(self._path, timeout=10)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def get(self, key: str) -> str | None:
        with self._session() as conn:
            row = conn.execute("SELECT value, expires_at FROM kv WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        value, expires_at = row
        if expires_at is not None and expires_at <= self._clock():
            self.delete(key)
            return None
        return value

    def put(self, key: str, value: str, *, ttl_seconds: int | None = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        with self._session() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv(key, value, expires_at) VALUES (?, ?, ?)",
                (key, value, expires_at),
            )

    def delete(self, key: str) -> None:
        with self._session() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
