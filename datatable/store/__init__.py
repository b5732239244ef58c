"""
Row store backends.

- RowStore: Protocol every backend implements
- InMemoryRowStore: dict-backed store for tests and small tables
- SqliteRowStore: store over one SQLite table
"""

from .base import NULL_ROW_ID, MappingAccess, RowStore
from .memory import InMemoryRowStore
from .sqlite import SqliteRowStore, connect_sqlite

__all__ = [
    "NULL_ROW_ID",
    "MappingAccess",
    "RowStore",
    "InMemoryRowStore",
    "SqliteRowStore",
    "connect_sqlite",
]
