"""In-memory record store, used by tests and the `memory` backend."""

import copy
import threading
from typing import Any, Optional

from treasury.services.storage.interface import RecordStore


class InMemoryRecordStore(RecordStore):
    """
    Keeps records in a dict of dicts.

    Values are deep-copied on the way in and out so callers can't
    modify stored records by accident.
    """

    def __init__(self):
        self._records: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    async def get(self, namespace: str, key: str) -> Optional[Any]:
        with self._lock:
            value = self._records.get(namespace, {}).get(key)
        return copy.deepcopy(value)

    async def put(self, namespace: str, key: str, value: Any) -> None:
        with self._lock:
            self._records.setdefault(namespace, {})[key] = copy.deepcopy(value)

    async def delete(self, namespace: str, key: str) -> bool:
        with self._lock:
            records = self._records.get(namespace, {})
            if key not in records:
                return False
            del records[key]
            return True

    def keys(self, namespace: str) -> list[str]:
        """Record names stored under a namespace."""
        with self._lock:
            return sorted(self._records.get(namespace, {}))
