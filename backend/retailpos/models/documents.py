from __future__ import annotations

from ..extensions import db
from retailpos.time_utils import to_utc_z


class EntityDocument(db.Model):
    """
    Document-store record: one row per entity, keyed by (collection, entity_id).

    WHY: The ledger persists whole entity snapshots (last-writer-wins), so the
    durable tier is a document collection rather than a normalized schema.
    Any number of clients may write here; the app never holds row locks.

    COLLECTIONS: products, variants, shifts, sales, expenses, returns,
    customers, discounts
    """
    __tablename__ = "entity_documents"
    __table_args__ = (
        db.UniqueConstraint("collection", "entity_id", name="uq_entity_documents_collection_entity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    collection = db.Column(db.String(32), nullable=False, index=True)
    entity_id = db.Column(db.String(64), nullable=False)

    # Full flat entity document (see entities.py to_dict)
    body = db.Column(db.JSON, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "collection": self.collection,
            "entity_id": self.entity_id,
            "body": self.body,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
