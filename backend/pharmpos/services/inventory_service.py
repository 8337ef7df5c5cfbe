# Overview: Service-layer operations for inventory; the stock ledger keyed by (code, batch).

"""
Inventory Ledger Invariants (authoritative)

Identity:
- A stock bucket is identified by (normalized code, batch). Normalization is trim + case-fold.
- The code falls back code -> barcode -> SKU, then the item name for name-only purchase rows.
- An empty batch is a valid bucket of its own ("unbatched" stock).
- At most one record per identity exists in a ledger.

Merge semantics:
- Purchase rows ADD quantity; quantity is never overwritten.
- Name, price, tax and expiry are overwritten only when the row supplies a non-blank value.
- Rows without code, barcode and name are skipped; the rest of the batch still applies.
- Replaying the same non-empty batch doubles the stock (physical receiving). An empty
  batch returns the ledger unchanged.

Lifecycle:
- Records are never deleted here. Zero quantity is "out of stock", still listed and searchable.
- Ledgers are values: every merge returns a new InventoryLedger, the input is untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Iterator, Mapping

from pharmpos.time_utils import parse_iso_date, today as utc_today
from .record_fields import (
    HUNDRED,
    INVENTORY_FIELDS,
    ZERO,
    decimal_text,
    identity_key,
    normalize_key,
    to_decimal,
    to_int,
)


logger = logging.getLogger(__name__)

EXPIRY_NEAR_DAYS_DEFAULT = 60
LOW_STOCK_THRESHOLD_DEFAULT = 5

STOCK_STATUSES = ("all", "near", "expired", "low")


@dataclass(frozen=True)
class InventoryRecord:
    code: str
    name: str
    batch: str = ""
    barcode: str = ""
    expiry: str = ""
    quantity: int = 0
    unit_price: Decimal = ZERO
    tax_percent: Decimal = ZERO
    min_quantity: int | None = None

    @property
    def identity(self) -> str:
        return identity_key(self.code or self.name, self.batch)

    def to_row(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "barcode": self.barcode,
            "name": self.name,
            "batch": self.batch,
            "expiry": self.expiry,
            "qty": self.quantity,
            "mrp": decimal_text(self.unit_price),
            "gst": decimal_text(self.tax_percent),
            "min_qty": "" if self.min_quantity is None else self.min_quantity,
        }


@dataclass(frozen=True)
class PurchaseRow:
    """A purchase/import row after field resolution. None means "not supplied"."""
    code: str
    batch: str
    barcode: str | None
    name: str | None
    expiry: str | None
    quantity: int
    unit_price: Decimal | None
    tax_percent: Decimal | None
    min_quantity: int | None

    @property
    def identity(self) -> str:
        return identity_key(self.code, self.batch)


@dataclass
class PurchaseSummary:
    received: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "received": self.received,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
        }


class InventoryLedger:
    """
    Ordered, identity-unique collection of stock records.

    Records sharing an identity collapse into the first one: quantities add,
    the first record's other fields are kept.
    """

    def __init__(self, records: Iterable[InventoryRecord] = ()):
        unique: list[InventoryRecord] = []
        positions: dict[str, int] = {}
        for record in records:
            pos = positions.get(record.identity)
            if pos is None:
                positions[record.identity] = len(unique)
                unique.append(record)
            else:
                unique[pos] = replace(unique[pos], quantity=unique[pos].quantity + record.quantity)
        self._records: tuple[InventoryRecord, ...] = tuple(unique)
        self._by_code: dict[str, InventoryRecord] = {}
        self._by_name: dict[str, InventoryRecord] = {}
        for record in self._records:
            for code in (record.code, record.barcode):
                key = normalize_key(code)
                if key:
                    self._by_code.setdefault(key, record)
            name_key = normalize_key(record.name)
            if name_key:
                self._by_name.setdefault(name_key, record)

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]]) -> "InventoryLedger":
        """Build from persisted/imported rows; duplicate identities collapse additively."""
        return upsert_purchase_batch(cls(), rows)

    @property
    def records(self) -> tuple[InventoryRecord, ...]:
        return self._records

    def to_rows(self) -> list[dict[str, Any]]:
        return [record.to_row() for record in self._records]

    def get(self, code: Any, batch: Any = "") -> InventoryRecord | None:
        key = identity_key(code, batch)
        for record in self._records:
            if record.identity == key:
                return record
        return None

    def __iter__(self) -> Iterator[InventoryRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InventoryLedger):
            return NotImplemented
        return self._records == other._records

    def __repr__(self) -> str:
        return f"InventoryLedger({len(self._records)} records)"


def _optional_decimal(value: str | None) -> Decimal | None:
    return None if value is None else to_decimal(value)


def normalize_purchase_row(raw: Mapping[str, Any]) -> PurchaseRow | None:
    """Resolve a raw purchase row; None when it carries no code, barcode or name."""
    if not isinstance(raw, Mapping):
        return None

    fields = INVENTORY_FIELDS
    code = fields.first(raw, "code", "barcode", "sku")
    name = fields.get(raw, "name")
    if code is None and name is None:
        return None

    quantity = to_int(fields.get(raw, "quantity"))
    if quantity < 0:
        logger.debug("Negative purchase quantity for %s treated as 0", code or name)
        quantity = 0

    unit_price = _optional_decimal(fields.get(raw, "unit_price"))
    if unit_price is not None and unit_price < 0:
        unit_price = ZERO

    tax_percent = _optional_decimal(fields.get(raw, "tax_percent"))
    if tax_percent is not None:
        tax_percent = min(max(tax_percent, ZERO), HUNDRED)

    min_quantity = fields.get(raw, "min_quantity")

    return PurchaseRow(
        code=code or name,
        batch=fields.get(raw, "batch") or "",
        barcode=fields.get(raw, "barcode"),
        name=name,
        expiry=fields.get(raw, "expiry"),
        quantity=quantity,
        unit_price=unit_price,
        tax_percent=tax_percent,
        min_quantity=max(0, to_int(min_quantity)) if min_quantity is not None else None,
    )


def _new_record(row: PurchaseRow) -> InventoryRecord:
    return InventoryRecord(
        code=row.code,
        name=row.name or row.code,
        batch=row.batch,
        barcode=row.barcode or "",
        expiry=row.expiry or "",
        quantity=row.quantity,
        unit_price=row.unit_price if row.unit_price is not None else ZERO,
        tax_percent=row.tax_percent if row.tax_percent is not None else ZERO,
        min_quantity=row.min_quantity,
    )


def _merge_record(existing: InventoryRecord, row: PurchaseRow) -> InventoryRecord:
    changes: dict[str, Any] = {"quantity": existing.quantity + row.quantity}
    if row.name is not None:
        changes["name"] = row.name
    if row.barcode is not None:
        changes["barcode"] = row.barcode
    if row.expiry is not None:
        changes["expiry"] = row.expiry
    if row.unit_price is not None:
        changes["unit_price"] = row.unit_price
    if row.tax_percent is not None:
        changes["tax_percent"] = row.tax_percent
    if row.min_quantity is not None:
        changes["min_quantity"] = row.min_quantity
    return replace(existing, **changes)


def merge_purchase_rows(
    ledger: InventoryLedger,
    rows: Iterable[Mapping[str, Any]],
) -> tuple[InventoryLedger, PurchaseSummary]:
    """Upsert-merge purchase rows and report what happened to each."""
    summary = PurchaseSummary()
    records = list(ledger.records)
    positions = {record.identity: pos for pos, record in enumerate(records)}

    for raw in rows:
        row = normalize_purchase_row(raw)
        if row is None:
            summary.skipped += 1
            continue

        summary.received += 1
        pos = positions.get(row.identity)
        if pos is None:
            positions[row.identity] = len(records)
            records.append(_new_record(row))
            summary.created += 1
        else:
            records[pos] = _merge_record(records[pos], row)
            summary.updated += 1

    if summary.skipped:
        logger.debug("Skipped %d purchase rows without code, barcode or name", summary.skipped)
    if not summary.received:
        return ledger, summary
    return InventoryLedger(records), summary


def upsert_purchase_batch(ledger: InventoryLedger, rows: Iterable[Mapping[str, Any]]) -> InventoryLedger:
    new_ledger, _summary = merge_purchase_rows(ledger, rows)
    return new_ledger


def lookup(ledger: InventoryLedger, term: Any) -> InventoryRecord | None:
    """
    Resolve a scanned code or typed search term to a stock record.

    Code/barcode matches win over name matches; the first-seen record wins
    within each index. Returns None on a miss.
    """
    key = normalize_key(term)
    if not key:
        return None
    hit = ledger._by_code.get(key)
    if hit is not None:
        return hit
    return ledger._by_name.get(key)


def expiry_status(
    expiry: Any,
    today: date | None = None,
    near_days: int = EXPIRY_NEAR_DAYS_DEFAULT,
) -> str:
    """
    "expired", "near" (within near_days) or "ok".

    Month-granularity expiry ("2025-03") counts from the first of the month.
    Missing or unparsable expiry is "ok".
    """
    expires_on = parse_iso_date(expiry)
    if expires_on is None:
        return "ok"
    today = today or utc_today()
    days_left = (expires_on - today).days
    if days_left < 0:
        return "expired"
    if days_left <= near_days:
        return "near"
    return "ok"


def is_low_stock(record: InventoryRecord, threshold: int = LOW_STOCK_THRESHOLD_DEFAULT) -> bool:
    limit = record.min_quantity if record.min_quantity is not None else threshold
    return record.quantity <= limit


def search_stock(
    ledger: InventoryLedger,
    query: str | None = None,
    status: str = "all",
    *,
    today: date | None = None,
    near_days: int = EXPIRY_NEAR_DAYS_DEFAULT,
    low_threshold: int = LOW_STOCK_THRESHOLD_DEFAULT,
) -> list[dict[str, Any]]:
    """
    Stock list rows filtered by a name/batch substring and a status filter.

    Unknown status filters behave like "all".
    """
    needle = normalize_key(query)
    today = today or utc_today()
    status = status if status in STOCK_STATUSES else "all"

    results = []
    for record in ledger:
        if needle and needle not in normalize_key(record.name) and needle not in normalize_key(record.batch):
            continue

        state = expiry_status(record.expiry, today, near_days)
        low = is_low_stock(record, low_threshold)
        if status == "near" and state != "near":
            continue
        if status == "expired" and state != "expired":
            continue
        if status == "low" and not low:
            continue

        row = record.to_row()
        row["expiry_status"] = state
        row["low_stock"] = low
        results.append(row)
    return results
