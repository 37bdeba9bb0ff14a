"""
Ports (interfaces) for collaborators outside the core.

Infrastructure adapters implement these; application services depend on
the abstractions only.
"""

from abc import ABC, abstractmethod
from typing import Any

from .models import MasteryCard, Question


class KeyValueStore(ABC):
    """
    Port for the persistence collaborator.

    Implementations must give read-your-writes consistency; callers await
    ``set`` before treating data as saved.

    Implementations:
        - InMemoryKeyValueStore: process-local dictionary.
        - JsonFileKeyValueStore: a single JSON document on disk.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None when the key is absent."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    async def set_many(self, values: dict[str, Any]) -> None:
        """Write several keys as one unit: either all become visible or none do."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass


class MasteryCardGenerator(ABC):
    """Port for the generator that produces mastery artifacts for a question."""

    @abstractmethod
    async def generate(self, question: Question) -> list[MasteryCard]:
        """
        Produce mastery cards for the question.

        Returns:
            Cards whose ``parent_id`` is ``question.id``.
        """
        pass
