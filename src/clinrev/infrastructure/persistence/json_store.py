"""
JSON File Store — Infrastructure adapter for a single JSON document on disk.

Implements KeyValueStore. Every write rewrites the whole document through a
temporary file and an atomic rename, so a crash mid-write leaves the
previous version intact.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from clinrev.domain.errors import StorageError
from clinrev.domain.ports import KeyValueStore

logger = logging.getLogger(__name__)


class JsonFileKeyValueStore(KeyValueStore):
    """Key-value store persisted as one JSON object."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Could not read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"{self.path} does not contain a JSON object")
        return data

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Could not write {self.path}: {e}") from e

    async def get(self, key: str) -> Any | None:
        return self._read().get(key)

    async def set(self, key: str, value: Any) -> None:
        await self.set_many({key: value})

    async def set_many(self, values: dict[str, Any]) -> None:
        async with self._lock:
            data = self._read()
            data.update(values)
            self._write(data)
        logger.debug(f"Wrote {', '.join(values)} to {self.path}")

    async def clear(self) -> None:
        async with self._lock:
            self._write({})
        logger.debug(f"Cleared {self.path}")
