from .memory import MemoryEventStorage
from .sqlite import SQLiteEventStorage, sqlite_storage_factory

__all__ = ["MemoryEventStorage", "SQLiteEventStorage", "sqlite_storage_factory"]
