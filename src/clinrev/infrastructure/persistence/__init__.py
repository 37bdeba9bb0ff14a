# Infrastructure Persistence Package
from .json_store import JsonFileKeyValueStore
from .memory_store import InMemoryKeyValueStore
from .schema import StudySnapshot, parse_snapshot

__all__ = ["InMemoryKeyValueStore", "JsonFileKeyValueStore", "StudySnapshot", "parse_snapshot"]
