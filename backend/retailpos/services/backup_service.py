# Overview: Versioned full-dataset export and wholesale restore.

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from ..entities import ENTITY_TYPES
from ..errors import ValidationError
from ..state import COLLECTIONS, LedgerState
from ..time_utils import to_utc_z, utcnow
from .concurrency import lock_for_update
from .shift_service import ShiftService


logger = logging.getLogger(__name__)

EXPORT_VERSION = "2.0"
SUPPORTED_VERSIONS = ("1.0", "2.0")


class BackupService:
    """
    Backup and restore of the whole entity set as one document.

    Restore replaces memory wholesale, re-persists every record through the
    normal change stream, then runs the shift repair pass.
    """

    def __init__(self, state: LedgerState, shifts: ShiftService, *, clock: Callable[[], datetime] = utcnow):
        self.state = state
        self.shifts = shifts
        self.clock = clock

    def export_data(self) -> dict:
        with lock_for_update(self.state):
            document = {
                "version": EXPORT_VERSION,
                "exported_at": to_utc_z(self.clock()),
            }
            for name in COLLECTIONS:
                document[name] = [entity.to_dict() for entity in self.state.all(name)]
        return document

    def _parse(self, document: dict) -> dict[str, list]:
        if not isinstance(document, dict):
            raise ValidationError("Backup must be a JSON object")

        version = str(document.get("version") or "1.0")
        if version not in SUPPORTED_VERSIONS:
            raise ValidationError(f"Unsupported backup version: {version}")

        if not isinstance(document.get("products"), list):
            raise ValidationError("Invalid backup format: products must be a list")

        parsed: dict[str, list] = {}
        for name, entity_type in ENTITY_TYPES.items():
            raw = document.get(name) or []
            if not isinstance(raw, list):
                raise ValidationError(f"Invalid backup format: {name} must be a list")
            try:
                parsed[name] = [entity_type.from_dict(item) for item in raw]
            except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
                raise ValidationError(f"Invalid record in {name}: {exc}") from exc
        return parsed

    def import_data(self, document: dict) -> dict:
        """
        Replace every collection with the backup's content.

        Parsing happens before any mutation, so a bad document leaves the
        current state untouched.

        Returns record counts per collection plus repaired shift ids.
        """
        parsed = self._parse(document)

        with lock_for_update(self.state):
            for name, entities in parsed.items():
                self.state.replace(name, entities, notify=True)
            repaired = self.shifts.sanitize_shifts()

        counts = {name: len(entities) for name, entities in parsed.items()}
        logger.info("Backup restored: %s", ", ".join(f"{k}={v}" for k, v in counts.items()))
        return {"counts": counts, "repaired_shifts": [s.id for s in repaired]}
