from .database import Database
from .local_store import (
    ATTENDANCE,
    BIMESTERS,
    CLASSES,
    COLLECTIONS,
    HOLIDAYS,
    STUDENTS,
    SYNC_QUEUE,
    LocalStore,
    ParseError,
    StorageError,
    StoreResult,
    WriteError,
)
from .repository import SNAPSHOT_COLLECTIONS, SchoolRepository

__all__ = [
    "Database",
    "LocalStore",
    "SchoolRepository",
    "StoreResult",
    "StorageError",
    "ParseError",
    "WriteError",
    "COLLECTIONS",
    "SNAPSHOT_COLLECTIONS",
    "CLASSES",
    "STUDENTS",
    "ATTENDANCE",
    "BIMESTERS",
    "HOLIDAYS",
    "SYNC_QUEUE",
]
