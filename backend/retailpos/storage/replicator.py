# Overview: Fire-and-forget replication of in-memory changes to the durable store.

"""
Asynchronous replication.

WHY: Ledger operations complete against memory and return immediately;
the durable write follows on a background worker.

DESIGN:
- Subscribes to LedgerState change events.
- A single worker thread applies writes in the order the changes happened.
- Write failures are logged and dropped: no retry, no rollback of memory.
- drain() blocks until every queued write has been attempted.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait

from ..state import ChangeEvent, DELETE, REPLACE, UPSERT
from .base import EntityStore


logger = logging.getLogger(__name__)


class Replicator:
    def __init__(self, store: EntityStore):
        self.store = store
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="retailpos-replicator")
        self._pending: set[Future] = set()
        self._lock = threading.Lock()
        self.failures = 0

    def __call__(self, event: ChangeEvent) -> None:
        self.dispatch(event)

    def dispatch(self, event: ChangeEvent) -> Future:
        future = self._executor.submit(self._apply, event)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _apply(self, event: ChangeEvent) -> None:
        try:
            if event.action == UPSERT:
                self.store.upsert(event.collection, event.document)
            elif event.action == DELETE:
                self.store.delete(event.collection, event.entity_id)
            elif event.action == REPLACE:
                self.store.replace_collection(event.collection, event.documents)
            else:
                logger.warning("Ignoring unknown change action %r", event.action)
        except Exception:
            self.failures += 1
            logger.exception(
                "Durable write failed (%s %s %s); in-memory state kept",
                event.action,
                event.collection,
                event.entity_id or "",
            )

    def drain(self, timeout: float | None = None) -> bool:
        """Wait for queued writes. Returns False if the timeout expired first."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
