# Overview: Durable entity store contract shared by the file and SQL backends.

from __future__ import annotations

from abc import ABC, abstractmethod


class StorageError(Exception):
    """Raised by a backend when a durable read or write fails."""


class EntityStore(ABC):
    """
    Durable replica of the entity collections.

    CONTRACT:
    - One collection per entity type; records are flat documents keyed by "id".
    - upsert() writes the whole document (no field-level patches).
    - replace_collection() makes the collection equal to the given documents.
    """

    @abstractmethod
    def load(self, collection: str) -> list[dict]:
        """Return every document of a collection."""

    @abstractmethod
    def upsert(self, collection: str, document: dict) -> None:
        """Insert or overwrite one document by id."""

    @abstractmethod
    def delete(self, collection: str, entity_id: str) -> None:
        """Remove one document; unknown ids are ignored."""

    @abstractmethod
    def replace_collection(self, collection: str, documents: list[dict]) -> None:
        """Bulk restore: drop documents not listed, upsert the rest."""

    def describe(self) -> str:
        return type(self).__name__
