"""Content store collaborators."""

from curator.storage.base import ContentStore, DuplicateItemError, StoreError
from curator.storage.memory import InMemoryContentStore
from curator.storage.rest import RestContentStore

__all__ = [
    "ContentStore",
    "DuplicateItemError",
    "StoreError",
    "InMemoryContentStore",
    "RestContentStore",
]
