"""Persistence for courses, progress and quiz attempts.

Provides:
- LearningStore: the async store contract
- InMemoryStore: dict-backed implementation (default backend)
- CassandraStore: see ``learnpath.storage.cassandra``
"""

from .base import DuplicateRecordError, LearningStore, StorageError
from .memory import InMemoryStore


__all__ = [
    "DuplicateRecordError",
    "InMemoryStore",
    "LearningStore",
    "StorageError",
]
