# Overview: Serialization of ledger read-modify-write operations.

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from ..state import LedgerState


@contextmanager
def lock_for_update(state: LedgerState) -> Iterator[LedgerState]:
    """
    Hold the register lock for a whole ledger operation.

    NOTE: There is a single register, so one re-entrant lock covers the open
    shift's balance. Change events are emitted while the lock is held, which
    keeps replication order equal to mutation order.
    """
    with state.lock:
        yield state
