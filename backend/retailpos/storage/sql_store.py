# Overview: Document-store backend on Flask-SQLAlchemy (the shared, multi-client tier).

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import EntityDocument
from .base import EntityStore, StorageError


class SqlDocumentStore(EntityStore):
    """
    Shared document store backed by the entity_documents table.

    Calls may come from the replicator's worker thread, so every operation
    runs inside its own application context and commits (or rolls back)
    before returning.
    """

    def __init__(self, app):
        self.app = app

    def load(self, collection: str) -> list[dict]:
        with self.app.app_context():
            rows = db.session.query(EntityDocument).filter_by(
                collection=collection
            ).order_by(EntityDocument.id).all()
            return [dict(row.body) for row in rows]

    def _upsert_row(self, collection: str, document: dict) -> None:
        entity_id = str(document["id"])
        row = db.session.query(EntityDocument).filter_by(
            collection=collection,
            entity_id=entity_id,
        ).first()
        if row:
            row.body = document
        else:
            db.session.add(EntityDocument(collection=collection, entity_id=entity_id, body=document))

    def upsert(self, collection: str, document: dict) -> None:
        with self.app.app_context():
            try:
                self._upsert_row(collection, document)
                db.session.commit()
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise StorageError(f"Failed to upsert {collection}/{document.get('id')}") from exc

    def delete(self, collection: str, entity_id: str) -> None:
        with self.app.app_context():
            try:
                db.session.query(EntityDocument).filter_by(
                    collection=collection,
                    entity_id=str(entity_id),
                ).delete()
                db.session.commit()
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise StorageError(f"Failed to delete {collection}/{entity_id}") from exc

    def replace_collection(self, collection: str, documents: list[dict]) -> None:
        keep = {str(d["id"]) for d in documents}
        with self.app.app_context():
            try:
                existing = db.session.query(EntityDocument).filter_by(collection=collection).all()
                for row in existing:
                    if row.entity_id not in keep:
                        db.session.delete(row)
                db.session.flush()
                for document in documents:
                    self._upsert_row(collection, document)
                db.session.commit()
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise StorageError(f"Failed to restore {collection}") from exc

    def describe(self) -> str:
        return f"SqlDocumentStore({self.app.config.get('SQLALCHEMY_DATABASE_URI')})"
