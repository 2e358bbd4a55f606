from .factory import sqlite_storage_factory
from .handle import SQLiteEventStorage

__all__ = ["sqlite_storage_factory", "SQLiteEventStorage"]
