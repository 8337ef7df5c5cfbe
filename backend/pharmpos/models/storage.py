from __future__ import annotations

from ..extensions import db
from pharmpos.time_utils import to_utc_z, utcnow


class StoredCollection(db.Model):
    """
    One named, ordered collection of flat records (stock, invoices, invoice items).

    DESIGN:
    - The engine treats storage as a key-value layer: load a whole collection,
      merge in memory, save it back
    - version_id gives optimistic locking; a concurrent writer's save raises
      StaleDataError and the caller reloads and re-merges
    """
    __tablename__ = "stored_collections"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), nullable=False, unique=True, index=True)
    payload = db.Column(db.JSON, nullable=False, default=list)

    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "records": len(self.payload or []),
            "updated_at": to_utc_z(self.updated_at),
            "version": self.version_id,
        }
