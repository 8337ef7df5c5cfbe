"""
Sales Service - pricing and completing counter sales against a record store

WHY: The cart itself is pure (cart_service). This layer resolves scanned or
typed terms against the stored ledger, and on checkout appends the invoice and
its line items to the sales history.

Checkout does not change stock. Stock moves only through purchase merges.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable, Mapping

from pharmpos.time_utils import today as utc_today
from .cart_service import (
    ROUNDING_SCALE_DEFAULT,
    CartLine,
    SaleError,
    add_from_ledger,
    add_line,
    checkout,
    compute_totals,
)
from .concurrency import run_with_retry
from .document_service import next_invoice_id
from .receive_service import load_ledger
from .storage_service import INVOICE_ITEMS_KEY, INVOICES_KEY, RecordStore


logger = logging.getLogger(__name__)


def build_cart(store: RecordStore, lines: Iterable[Mapping[str, Any]]) -> tuple[tuple[CartLine, ...], list[str]]:
    """
    Build a cart from request lines.

    A line with a "term" is a scan/search: it is looked up in the ledger and
    priced from the stock record. Any other line is a priced candidate.
    Returns the cart and the terms that matched nothing.
    """
    cart: tuple[CartLine, ...] = ()
    missing: list[str] = []
    ledger = None

    for line in lines:
        if not isinstance(line, Mapping):
            continue
        term = line.get("term")
        if term is None:
            cart = add_line(cart, line)
            continue

        if ledger is None:
            ledger = load_ledger(store)
        quantity = line.get("qty", line.get("quantity", 1))
        cart, record = add_from_ledger(cart, ledger, term, quantity)
        if record is None:
            missing.append(str(term))
    return cart, missing


def quote(
    store: RecordStore,
    lines: Iterable[Mapping[str, Any]],
    *,
    discount: Any = 0,
    rounding_scale: int = ROUNDING_SCALE_DEFAULT,
) -> dict[str, Any]:
    cart, missing = build_cart(store, lines)
    totals = compute_totals(cart, discount=discount, rounding_scale=rounding_scale)
    return {
        "lines": [line.to_dict(rounding_scale) for line in cart],
        "totals": totals.to_dict(),
        "not_found": missing,
    }


def record_sale(
    store: RecordStore,
    lines: Iterable[Mapping[str, Any]],
    *,
    discount: Any = 0,
    paid: Any = None,
    party_id: str = "",
    on: date | None = None,
    rounding_scale: int = ROUNDING_SCALE_DEFAULT,
) -> dict[str, Any]:
    """Price the lines, write an invoice + line items, and return them."""
    lines = list(lines)
    on = on or utc_today()

    def _op() -> dict[str, Any]:
        cart, missing = build_cart(store, lines)
        if missing:
            raise SaleError("Items not found in inventory", details={"not_found": missing})

        existing = store.load(INVOICES_KEY)
        invoice_id = next_invoice_id((row.get("id") for row in existing), on)
        invoice, items = checkout(
            cart,
            invoice_id=invoice_id,
            on=on,
            discount=discount,
            paid=paid,
            party_id=party_id,
            rounding_scale=rounding_scale,
        )

        store.append(INVOICES_KEY, [invoice.to_row()])
        store.append(INVOICE_ITEMS_KEY, [item.to_row() for item in items])
        store.commit()
        return {
            "invoice": invoice.to_row(),
            "items": [item.to_row() for item in items],
        }

    result = run_with_retry(_op, rollback=store.rollback)
    logger.info("Recorded sale %s total %s", result["invoice"]["id"], result["invoice"]["total"])
    return result
