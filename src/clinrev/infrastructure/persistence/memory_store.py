"""In-memory KeyValueStore, used by tests and ephemeral runs."""

import copy
from typing import Any

from clinrev.domain.ports import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """
    Process-local key-value store.

    Values are deep-copied in both directions so callers never share
    mutable state with the store.
    """

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(initial or {})

    async def get(self, key: str) -> Any | None:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def set_many(self, values: dict[str, Any]) -> None:
        staged = copy.deepcopy(values)
        self._data.update(staged)

    async def clear(self) -> None:
        self._data = {}
