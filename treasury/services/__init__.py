"""Services package."""

from treasury.services.storage import (
    GLOBAL_NAMESPACE,
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    LocalFileRecordStore,
    NotFoundError,
    RecordStore,
    StorageError,
)

__all__ = [
    "GLOBAL_NAMESPACE",
    "ConnectionError",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    "InMemoryRecordStore",
    "LocalFileRecordStore",
    "NotFoundError",
    "RecordStore",
    "StorageError",
]
