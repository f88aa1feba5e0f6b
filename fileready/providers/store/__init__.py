"""File and chunk stores.

MemoryFileStore keeps rows in dicts (tests, dry runs).  SQLiteFileStore
persists to a local database via aiosqlite.  Both implement IFileStore, so
main.py can swap one for the other without touching pipeline code.
"""

from fileready.providers.store.memory_store import MemoryFileStore
from fileready.providers.store.sqlite_store import SQLiteFileStore

__all__ = ["MemoryFileStore", "SQLiteFileStore"]
