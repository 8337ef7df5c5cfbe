# Overview: Record stores; explicit key-value persistence handed to every workflow call.

from __future__ import annotations

import copy
from typing import Any, Iterable, Mapping

from ..extensions import db
from ..models import StoredCollection


INVENTORY_KEY = "inventory"
INVOICES_KEY = "invoices"
INVOICE_ITEMS_KEY = "invoice_items"


class RecordStore:
    """
    Named, ordered collections of flat records.

    The engine never reaches for ambient state: whoever drives a workflow
    passes the store in. save() replaces a collection; append() adds to it.
    """

    def load(self, key: str) -> list[dict[str, Any]]:
        raise NotImplementedError

    def save(self, key: str, records: Iterable[Mapping[str, Any]]) -> None:
        raise NotImplementedError

    def append(self, key: str, records: Iterable[Mapping[str, Any]]) -> None:
        existing = self.load(key)
        existing.extend(dict(r) for r in records)
        self.save(key, existing)

    def commit(self) -> None:
        """Make pending saves durable. No-op for stores without transactions."""

    def rollback(self) -> None:
        """Discard pending saves. No-op for stores without transactions."""


class MemoryRecordStore(RecordStore):
    def __init__(self, initial: Mapping[str, Iterable[Mapping[str, Any]]] | None = None):
        self._collections: dict[str, list[dict[str, Any]]] = {}
        for key, records in (initial or {}).items():
            self.save(key, records)

    def load(self, key: str) -> list[dict[str, Any]]:
        return copy.deepcopy(self._collections.get(key, []))

    def save(self, key: str, records: Iterable[Mapping[str, Any]]) -> None:
        self._collections[key] = [dict(copy.deepcopy(r)) for r in records]


class SqlRecordStore(RecordStore):
    """StoredCollection-backed store; one JSON row per collection key."""

    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def _row(self, key: str) -> StoredCollection | None:
        return self.session.query(StoredCollection).filter_by(key=key).first()

    def load(self, key: str) -> list[dict[str, Any]]:
        row = self._row(key)
        if row is None or not row.payload:
            return []
        return [dict(r) for r in row.payload if isinstance(r, Mapping)]

    def save(self, key: str, records: Iterable[Mapping[str, Any]]) -> None:
        payload = [dict(r) for r in records]
        row = self._row(key)
        if row is None:
            self.session.add(StoredCollection(key=key, payload=payload))
        else:
            # New list object so the JSON column is flagged dirty
            row.payload = payload
        self.session.flush()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def describe(self) -> list[dict[str, Any]]:
        rows = self.session.query(StoredCollection).order_by(StoredCollection.key.asc()).all()
        return [row.to_dict() for row in rows]
