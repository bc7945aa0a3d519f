"""Persistence layer - Key-value backends and typed ledger storage."""

from .database import KVStore, MemoryKVStore, SQLiteKVStore, TransactionalStore
from .storage import LedgerStorage

__all__ = [
    "KVStore",
    "MemoryKVStore",
    "SQLiteKVStore",
    "TransactionalStore",
    "LedgerStorage",
]
