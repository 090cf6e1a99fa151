"""
Storage module for persisting claim records.

Provides:
- Key-value media (in-memory and SQLite)
- Record codec and key layout
- The claims store with its global and per-user indices
"""

from .claim_store import (
    ClaimStats,
    ClaimStore,
    get_claim_store,
)
from .kv import (
    KeyValueStore,
    MemoryKeyValueStore,
    SQLiteKeyValueStore,
    create_kv_store,
)

__all__ = [
    "ClaimStats",
    "ClaimStore",
    "get_claim_store",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "create_kv_store",
]
