# Overview: Sale documents (invoice header + line items) and invoice numbering.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping

from .record_fields import (
    INVOICE_FIELDS,
    INVOICE_ITEM_FIELDS,
    HUNDRED,
    ZERO,
    decimal_text,
    to_decimal,
    to_int,
    to_text,
)


INVOICE_PREFIX = "INV"


def _optional_money(value: str | None) -> Decimal | None:
    return None if value is None else to_decimal(value)


def _money_field(value: Decimal | None) -> str:
    return "" if value is None else decimal_text(value)


@dataclass(frozen=True)
class Invoice:
    """
    Completed sale header. Immutable once written; corrections are new invoices.

    Money fields are None when a historical record did not carry them, so
    reporting can tell "absent" from "zero".
    """
    id: str
    date: str
    party_id: str = ""
    subtotal: Decimal | None = None
    tax: Decimal | None = None
    discount: Decimal | None = None
    total: Decimal | None = None
    paid: Decimal | None = None
    balance: Decimal | None = None

    @classmethod
    def from_row(cls, raw: Mapping[str, Any]) -> "Invoice":
        fields = INVOICE_FIELDS
        return cls(
            id=fields.get(raw, "id") or "",
            date=fields.get(raw, "date") or "",
            party_id=fields.get(raw, "party_id") or "",
            subtotal=_optional_money(fields.get(raw, "subtotal")),
            tax=_optional_money(fields.get(raw, "tax")),
            discount=_optional_money(fields.get(raw, "discount")),
            total=_optional_money(fields.get(raw, "total")),
            paid=_optional_money(fields.get(raw, "paid")),
            balance=_optional_money(fields.get(raw, "balance")),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "party_id": self.party_id,
            "subtotal": _money_field(self.subtotal),
            "tax": _money_field(self.tax),
            "discount": _money_field(self.discount),
            "total": _money_field(self.total),
            "paid": _money_field(self.paid),
            "balance": _money_field(self.balance),
        }


@dataclass(frozen=True)
class InvoiceLineItem:
    invoice_id: str
    name: str
    code: str = ""
    quantity: int = 0
    rate: Decimal = ZERO
    tax_percent: Decimal = ZERO
    batch: str = ""

    @classmethod
    def from_row(cls, raw: Mapping[str, Any]) -> "InvoiceLineItem":
        fields = INVOICE_ITEM_FIELDS
        return cls(
            invoice_id=fields.get(raw, "invoice_id") or "",
            name=fields.first(raw, "item_name", "name") or "",
            code=fields.get(raw, "code") or "",
            quantity=to_int(fields.get(raw, "quantity")),
            rate=to_decimal(fields.get(raw, "rate")),
            tax_percent=to_decimal(fields.get(raw, "tax_percent")),
            batch=fields.get(raw, "batch") or "",
        )

    @property
    def display_name(self) -> str:
        return self.name or self.code or "Unknown"

    @property
    def base_amount(self) -> Decimal:
        return self.quantity * self.rate

    @property
    def tax_amount(self) -> Decimal:
        return self.base_amount * (self.tax_percent / HUNDRED)

    @property
    def amount(self) -> Decimal:
        """Tax-inclusive line amount, unrounded."""
        return self.base_amount + self.tax_amount

    def to_row(self) -> dict[str, Any]:
        return {
            "invoice_id": self.invoice_id,
            "item_name": self.name,
            "code": self.code,
            "batch": self.batch,
            "qty": self.quantity,
            "rate": decimal_text(self.rate),
            "gst": decimal_text(self.tax_percent),
        }


def invoices_from_rows(rows: Iterable[Mapping[str, Any]]) -> list[Invoice]:
    return [Invoice.from_row(r) for r in rows if isinstance(r, Mapping)]


def line_items_from_rows(rows: Iterable[Mapping[str, Any]]) -> list[InvoiceLineItem]:
    return [InvoiceLineItem.from_row(r) for r in rows if isinstance(r, Mapping)]


def next_invoice_id(existing_ids: Iterable[Any], on: date, pad: int = 4) -> str:
    """
    Allocate the next invoice number for a calendar day: INV-YYYYMMDD-NNNN.

    Sequence-derived from the ids already issued that day, so it stays unique
    for a single writer without a separate counter.
    """
    prefix = f"{INVOICE_PREFIX}-{on.strftime('%Y%m%d')}-"
    highest = 0
    for raw_id in existing_ids:
        text = to_text(raw_id) or ""
        if not text.startswith(prefix):
            continue
        suffix = text[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}{highest + 1:0{pad}d}"
