"""Key-Value Backends - Durable byte storage for the ledger.

Provides the host storage primitives (get/set/has) over two backends:
- ``MemoryKVStore`` for tests and ephemeral runs
- ``SQLiteKVStore`` for durable storage across service restarts

``TransactionalStore`` overlays either backend with a write buffer so that a
call's writes become visible only when the call completes.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Protocol

from ..errors import MissingKeyError

logger = logging.getLogger(__name__)


# SQL schema for the key-value table
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value BLOB NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


class KVStore(Protocol):
    """Host storage primitives."""

    def get(self, key: str) -> bytes: ...

    def set(self, key: str, value: bytes) -> None: ...

    def has(self, key: str) -> bool: ...


class MemoryKVStore:
    """Dict-backed store."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes:
        try:
            return self._data[key]
        except KeyError:
            raise MissingKeyError(f"Missing storage key: {key}") from None

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def has(self, key: str) -> bool:
        return key in self._data

    def set_many(self, items: dict[str, bytes]) -> None:
        self._data.update({k: bytes(v) for k, v in items.items()})

    def keys(self) -> list[str]:
        return sorted(self._data)

    def __len__(self) -> int:
        return len(self._data)


class SQLiteKVStore:
    """SQLite-backed store.

    Example:
        with SQLiteKVStore("data/autosplit.db") as store:
            store.set("autosplit:counter:team", b"...")
            raw = store.get("autosplit:counter:team")
    """

    def __init__(self, db_path: str | Path | None = None) -> None:
        """Initialize store with database connection.

        Args:
            db_path: Path to SQLite database file. Defaults to data/autosplit.db
        """
        if db_path is None:
            db_path = Path.cwd() / "data" / "autosplit.db"
        else:
            db_path = Path(db_path)

        db_path.parent.mkdir(parents=True, exist_ok=True)

        self.db_path = str(db_path)
        self._conn: sqlite3.Connection | None = None
        self._ensure_connection()
        self._ensure_schema()

    def _ensure_connection(self) -> None:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute("PRAGMA synchronous = NORMAL")
            self._conn.execute("PRAGMA busy_timeout = 5000")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        conn.executescript(SCHEMA_SQL)
        conn.commit()

    def _get_conn(self) -> sqlite3.Connection:
        self._ensure_connection()
        assert self._conn is not None
        return self._conn

    def get(self, key: str) -> bytes:
        row = self._get_conn().execute(
            "SELECT value FROM kv WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            raise MissingKeyError(f"Missing storage key: {key}")
        return bytes(row[0])

    def set(self, key: str, value: bytes) -> None:
        self.set_many({key: value})

    def has(self, key: str) -> bool:
        row = self._get_conn().execute(
            "SELECT 1 FROM kv WHERE key = ?", (key,)
        ).fetchone()
        return row is not None

    def set_many(self, items: dict[str, bytes]) -> None:
        """Write all items in a single SQLite transaction."""
        if not items:
            return
        conn = self._get_conn()
        with conn:
            conn.executemany(
                """
                INSERT INTO kv (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = datetime('now')
                """,
                [(key, sqlite3.Binary(value)) for key, value in items.items()],
            )

    def count_all(self) -> int:
        row = self._get_conn().execute("SELECT COUNT(*) FROM kv").fetchone()
        return row[0] if row else 0

    def ping(self) -> None:
        self._get_conn().execute("SELECT 1")

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> SQLiteKVStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class TransactionalStore:
    """Write-buffer overlay giving each call all-or-nothing semantics.

    Reads see buffered writes first. ``commit()`` flushes the buffer to the
    backend in one batch; ``rollback()`` discards it.
    """

    def __init__(self, backend: KVStore) -> None:
        self._backend = backend
        self._pending: dict[str, bytes] = {}
        self._depth = 0

    @property
    def backend(self) -> KVStore:
        return self._backend

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def get(self, key: str) -> bytes:
        if key in self._pending:
            return self._pending[key]
        return self._backend.get(key)

    def set(self, key: str, value: bytes) -> None:
        if self._depth == 0:
            self._backend.set(key, value)
        else:
            self._pending[key] = bytes(value)

    def has(self, key: str) -> bool:
        return key in self._pending or self._backend.has(key)

    def begin(self) -> None:
        if self._depth > 0:
            raise RuntimeError("Nested storage transactions are not supported")
        self._depth = 1
        self._pending = {}

    def commit(self) -> None:
        pending, self._pending = self._pending, {}
        self._depth = 0
        set_many = getattr(self._backend, "set_many", None)
        if set_many is not None:
            set_many(pending)
        else:
            for key, value in pending.items():
                self._backend.set(key, value)
        logger.debug("storage commit: %d keys", len(pending))

    def rollback(self) -> None:
        discarded = len(self._pending)
        self._pending = {}
        self._depth = 0
        logger.debug("storage rollback: %d keys discarded", discarded)
