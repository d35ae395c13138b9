"""
Storage Services Package

Provides the abstract record store interface and its implementations.
The backend is picked from StorageSettings.backend.
"""

from treasury.services.storage.interface import (
    GLOBAL_NAMESPACE,
    ConnectionError,
    NotFoundError,
    RecordStore,
    StorageError,
)
from treasury.services.storage.memory import InMemoryRecordStore
from treasury.services.storage.local_file import LocalFileRecordStore
from treasury.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
)

__all__ = [
    # Interface
    "GLOBAL_NAMESPACE",
    "RecordStore",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    "InMemoryRecordStore",
    "LocalFileRecordStore",
]
