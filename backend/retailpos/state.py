# Overview: Authoritative in-memory entity collections with change notification.

"""
In-memory state container.

WHY: The running session treats memory as the source of truth. Durable
storage is a replica fed by change events, so the core never waits on I/O.

DESIGN:
- One collection per entity type, keyed by id, insertion-ordered.
- Every write emits a ChangeEvent to subscribers after the write is applied.
  The event carries the entity's document, captured at write time.
- Bulk replacement can skip notification (loading from storage must not
  echo every record back to the store).
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from .entities import ENTITY_TYPES


logger = logging.getLogger(__name__)

COLLECTIONS = tuple(ENTITY_TYPES)

UPSERT = "upsert"
DELETE = "delete"
REPLACE = "replace"


@dataclass(frozen=True)
class ChangeEvent:
    collection: str
    action: str  # upsert, delete, replace
    entity_id: Optional[str] = None
    document: Optional[dict] = None
    documents: list[dict] = field(default_factory=list)


Listener = Callable[[ChangeEvent], None]


class LedgerState:
    def __init__(self):
        self._collections: dict[str, dict[str, Any]] = {name: {} for name in COLLECTIONS}
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: ChangeEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # Listener failures never roll back the applied write
                logger.exception("Change listener failed for %s %s", event.collection, event.action)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _collection(self, name: str) -> dict[str, Any]:
        try:
            return self._collections[name]
        except KeyError:
            raise KeyError(f"Unknown collection: {name}") from None

    def get(self, collection: str, entity_id: str) -> Any:
        with self._lock:
            return self._collection(collection).get(entity_id)

    def all(self, collection: str) -> list:
        with self._lock:
            return list(self._collection(collection).values())

    def filter(self, collection: str, predicate: Callable[[Any], bool]) -> list:
        return [e for e in self.all(collection) if predicate(e)]

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._collection(collection))

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def put(self, collection: str, entity: Any) -> Any:
        """Insert or replace an entity by id (whole-entity write)."""
        with self._lock:
            self._collection(collection)[entity.id] = entity
            document = entity.to_dict()
        self._emit(ChangeEvent(collection, UPSERT, entity_id=entity.id, document=document))
        return entity

    def remove(self, collection: str, entity_id: str) -> Any:
        with self._lock:
            entity = self._collection(collection).pop(entity_id, None)
        if entity is not None:
            self._emit(ChangeEvent(collection, DELETE, entity_id=entity_id))
        return entity

    def replace(self, collection: str, entities: Iterable[Any], *, notify: bool = False) -> None:
        """Swap a whole collection (bulk load, remote snapshot, import)."""
        with self._lock:
            items = {e.id: e for e in entities}
            self._collections[collection] = items
            documents = [e.to_dict() for e in items.values()] if notify else []
        if notify:
            self._emit(ChangeEvent(collection, REPLACE, documents=documents))

    def clear(self) -> None:
        with self._lock:
            for name in COLLECTIONS:
                self._collections[name] = {}

    @property
    def lock(self) -> threading.RLock:
        return self._lock
