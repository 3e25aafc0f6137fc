from .base import EntityStore, StorageError
from .json_store import JsonFileStore
from .replicator import Replicator

__all__ = ['EntityStore', 'StorageError', 'JsonFileStore', 'Replicator']
