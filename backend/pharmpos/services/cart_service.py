"""
Cart Engine - in-progress sale pricing

WHY: The cart is ephemeral and owned by one sale session. Every operation takes
a cart and returns a new one; nothing here reads or writes the ledger except
through an explicit lookup, and checkout only produces documents.

Pricing:
- line base = quantity x (explicit rate, else unit price)
- line tax  = base x tax% / 100
- subtotal, tax and gross are exact sums; only the grand total is rounded
- total = round(gross - discount); discount is a flat amount

POLICY: a discount larger than gross yields a negative total. It is not
clamped; product owners have not decided what the floor should be.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Sequence

from .document_service import Invoice, InvoiceLineItem
from .inventory_service import InventoryLedger, InventoryRecord, lookup
from .record_fields import (
    CART_FIELDS,
    HUNDRED,
    ZERO,
    decimal_text,
    identity_key,
    money_text,
    round_money,
    to_decimal,
    to_int,
)


ROUNDING_SCALE_DEFAULT = 2


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class CartLine:
    code: str
    name: str
    batch: str = ""
    quantity: int = 1
    unit_price: Decimal = ZERO
    rate: Decimal | None = None
    tax_percent: Decimal = ZERO

    @property
    def key(self) -> str:
        return identity_key(self.code or self.name, self.batch)

    @property
    def effective_rate(self) -> Decimal:
        return self.rate if self.rate is not None else self.unit_price

    @property
    def base_amount(self) -> Decimal:
        return self.quantity * self.effective_rate

    @property
    def tax_amount(self) -> Decimal:
        return self.base_amount * (self.tax_percent / HUNDRED)

    def to_dict(self, scale: int = ROUNDING_SCALE_DEFAULT) -> dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "batch": self.batch,
            "qty": self.quantity,
            "rate": decimal_text(self.effective_rate),
            "gst": decimal_text(self.tax_percent),
            "tax_amount": money_text(self.tax_amount, scale),
            "amount": money_text(self.base_amount + self.tax_amount, scale),
        }


Cart = tuple[CartLine, ...]


@dataclass(frozen=True)
class CartTotals:
    items: int
    subtotal: Decimal
    tax: Decimal
    gross: Decimal
    discount: Decimal
    total: Decimal
    scale: int = ROUNDING_SCALE_DEFAULT

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": self.items,
            "subtotal": money_text(self.subtotal, self.scale),
            "tax": money_text(self.tax, self.scale),
            "gross": money_text(self.gross, self.scale),
            "discount": money_text(self.discount, self.scale),
            "total": money_text(self.total, self.scale),
        }


def candidate_from_record(record: InventoryRecord, quantity: int = 1) -> dict[str, Any]:
    return {
        "code": record.code,
        "name": record.name,
        "batch": record.batch,
        "qty": quantity,
        "mrp": record.unit_price,
        "gst": record.tax_percent,
    }


def _supplied_decimal(raw: Mapping[str, Any], name: str) -> Decimal | None:
    value = CART_FIELDS.get(raw, name)
    return None if value is None else to_decimal(value)


def add_line(cart: Sequence[CartLine], candidate: Mapping[str, Any]) -> Cart:
    """
    Add a candidate to the cart, merging with a line of the same (code, batch).

    Quantity accumulates (default 1); rate, price and tax are overwritten only
    when the candidate supplies them. Hand-keyed lines with neither code nor
    name share the "" identity.
    """
    fields = CART_FIELDS
    code = fields.first(candidate, "code", "barcode", "sku") or ""
    name = fields.get(candidate, "name") or ""

    quantity_text = fields.get(candidate, "quantity")
    quantity = max(1, to_int(quantity_text)) if quantity_text is not None else 1
    rate = _supplied_decimal(candidate, "rate")
    unit_price = _supplied_decimal(candidate, "unit_price")
    tax_percent = _supplied_decimal(candidate, "tax_percent")
    batch = fields.get(candidate, "batch") or ""

    key = identity_key(code or name, batch)
    lines = list(cart)
    for idx, line in enumerate(lines):
        if line.key != key:
            continue
        changes: dict[str, Any] = {"quantity": line.quantity + quantity}
        if rate is not None:
            changes["rate"] = rate
        if unit_price is not None:
            changes["unit_price"] = unit_price
        if tax_percent is not None:
            changes["tax_percent"] = tax_percent
        lines[idx] = replace(line, **changes)
        return tuple(lines)

    lines.append(
        CartLine(
            code=code or name,
            name=name or code,
            batch=batch,
            quantity=quantity,
            unit_price=unit_price if unit_price is not None else ZERO,
            rate=rate,
            tax_percent=tax_percent if tax_percent is not None else ZERO,
        )
    )
    return tuple(lines)


def add_from_ledger(
    cart: Sequence[CartLine],
    ledger: InventoryLedger,
    term: Any,
    quantity: int = 1,
) -> tuple[Cart, InventoryRecord | None]:
    """Scan/search flow: resolve term against the ledger and add one line. Miss -> cart unchanged."""
    record = lookup(ledger, term)
    if record is None:
        return tuple(cart), None
    return add_line(cart, candidate_from_record(record, quantity)), record


def set_quantity(cart: Sequence[CartLine], index: int, quantity: Any) -> Cart:
    lines = list(cart)
    if 0 <= index < len(lines):
        lines[index] = replace(lines[index], quantity=max(1, to_int(quantity)))
    return tuple(lines)


def remove_line(cart: Sequence[CartLine], index: int) -> Cart:
    lines = list(cart)
    if 0 <= index < len(lines):
        del lines[index]
    return tuple(lines)


def compute_totals(
    cart: Sequence[CartLine],
    discount: Any = ZERO,
    rounding_scale: int = ROUNDING_SCALE_DEFAULT,
) -> CartTotals:
    subtotal = ZERO
    tax = ZERO
    items = 0
    for line in cart:
        subtotal += line.base_amount
        tax += line.tax_amount
        items += line.quantity

    gross = subtotal + tax
    discount = to_decimal(discount)
    return CartTotals(
        items=items,
        subtotal=subtotal,
        tax=tax,
        gross=gross,
        discount=discount,
        total=round_money(gross - discount, rounding_scale),
        scale=rounding_scale,
    )


def checkout(
    cart: Sequence[CartLine],
    *,
    invoice_id: str,
    on: date,
    discount: Any = ZERO,
    paid: Any = None,
    party_id: str = "",
    rounding_scale: int = ROUNDING_SCALE_DEFAULT,
) -> tuple[Invoice, list[InvoiceLineItem]]:
    """
    Snapshot the cart into an invoice and its line items.

    paid defaults to the full total (counter sale). balance = total - paid.
    """
    if not cart:
        raise SaleError("Cart is empty")

    totals = compute_totals(cart, discount=discount, rounding_scale=rounding_scale)
    paid_amount = totals.total if paid is None or paid == "" else round_money(to_decimal(paid), rounding_scale)

    invoice = Invoice(
        id=invoice_id,
        date=on.isoformat(),
        party_id=party_id or "",
        subtotal=round_money(totals.subtotal, rounding_scale),
        tax=round_money(totals.tax, rounding_scale),
        discount=round_money(totals.discount, rounding_scale),
        total=totals.total,
        paid=paid_amount,
        balance=totals.total - paid_amount,
    )
    items = [
        InvoiceLineItem(
            invoice_id=invoice_id,
            name=line.name,
            code=line.code,
            quantity=line.quantity,
            rate=line.effective_rate,
            tax_percent=line.tax_percent,
            batch=line.batch,
        )
        for line in cart
    ]
    return invoice, items
