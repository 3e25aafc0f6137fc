# Overview: Local-storage backend; one JSON file per entity collection.

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path

from .base import EntityStore, StorageError


class JsonFileStore(EntityStore):
    """
    Local file storage for offline / single-device use.

    Each collection lives in <directory>/<collection>.json as a JSON array.
    Writes rewrite the whole file through a temp file + os.replace so a crash
    never leaves a half-written collection behind.
    """

    def __init__(self, directory: str | os.PathLike):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, collection: str) -> Path:
        return self.directory / f"{collection}.json"

    def _read(self, collection: str) -> list[dict]:
        path = self._path(collection)
        if not path.exists():
            return []
        try:
            with path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            raise StorageError(f"Cannot read {path}: {exc}") from exc
        if not isinstance(data, list):
            raise StorageError(f"{path} does not contain a JSON array")
        return data

    def _write(self, collection: str, documents: list[dict]) -> None:
        path = self._path(collection)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{collection}.", suffix=".tmp", dir=self.directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(documents, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
        except OSError as exc:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Cannot write {path}: {exc}") from exc

    def load(self, collection: str) -> list[dict]:
        with self._lock:
            return self._read(collection)

    def upsert(self, collection: str, document: dict) -> None:
        with self._lock:
            documents = self._read(collection)
            for i, existing in enumerate(documents):
                if existing.get("id") == document["id"]:
                    documents[i] = document
                    break
            else:
                documents.append(document)
            self._write(collection, documents)

    def delete(self, collection: str, entity_id: str) -> None:
        with self._lock:
            documents = self._read(collection)
            remaining = [d for d in documents if d.get("id") != entity_id]
            if len(remaining) != len(documents):
                self._write(collection, remaining)

    def replace_collection(self, collection: str, documents: list[dict]) -> None:
        with self._lock:
            self._write(collection, list(documents))

    def describe(self) -> str:
        return f"JsonFileStore({self.directory})"
