"""
Abstract Record Store Interface

DESIGN DECISION: The ledger is persisted as a handful of whole-collection
records per user (accounts, transactions, recurringRules, baseCurrency),
so storage is a plain key-value store split into namespaces. This allows us
to:
1. Keep the ledger format independent of the backend
2. Use in-memory storage for testing
3. Move from local files to Google Sheets without touching the session code

Values are anything the json module can serialize. A namespace is a user id
or the global namespace that holds the current-user record.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


GLOBAL_NAMESPACE = "global"


class RecordStore(ABC):
    """
    Abstract interface for record storage.

    Any storage implementation (local files, Google Sheets, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def get(self, namespace: str, key: str) -> Optional[Any]:
        """
        Read one record.

        Args:
            namespace: User id or GLOBAL_NAMESPACE
            key: Record name, e.g. 'transactions'

        Returns:
            The stored value, or None if there is no such record

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def put(self, namespace: str, key: str, value: Any) -> None:
        """
        Create or overwrite one record.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, namespace: str, key: str) -> bool:
        """
        Remove one record.

        Returns:
            True if a record was removed, False if it did not exist
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Record or backing resource not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
