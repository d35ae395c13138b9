"""
Local File Storage Implementation

One JSON document per namespace under the configured data directory:

    .treasury/
        global.json        {"current_user": {...}}
        jane_example_com.json  {"accounts": [...], "transactions": [...], ...}

Writes go to a temporary file first and are moved into place, so a crash
mid-write never leaves a half-written document behind.
"""

import json
import os
import re
import threading
from pathlib import Path
from typing import Any, Optional, Union

from treasury.services.storage.interface import RecordStore, StorageError


_SAFE_NAMESPACE = re.compile(r"^[A-Za-z0-9_.-]+$")


class LocalFileRecordStore(RecordStore):
    """JSON-file implementation of the record store."""

    def __init__(self, data_dir: Union[str, Path]):
        self._data_dir = Path(data_dir)
        self._lock = threading.Lock()

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path_for(self, namespace: str) -> Path:
        if not _SAFE_NAMESPACE.match(namespace) or namespace in (".", ".."):
            raise StorageError(f"Invalid namespace: {namespace!r}")
        return self._data_dir / f"{namespace}.json"

    def _read(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read {path}: {e}")
        if not isinstance(data, dict):
            raise StorageError(f"Unexpected document in {path}")
        return data

    def _write(self, path: Path, data: dict[str, Any]) -> None:
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to write {path}: {e}")

    async def get(self, namespace: str, key: str) -> Optional[Any]:
        path = self._path_for(namespace)
        with self._lock:
            return self._read(path).get(key)

    async def put(self, namespace: str, key: str, value: Any) -> None:
        path = self._path_for(namespace)
        with self._lock:
            data = self._read(path)
            data[key] = value
            self._write(path, data)

    async def delete(self, namespace: str, key: str) -> bool:
        path = self._path_for(namespace)
        with self._lock:
            data = self._read(path)
            if key not in data:
                return False
            del data[key]
            self._write(path, data)
            return True
