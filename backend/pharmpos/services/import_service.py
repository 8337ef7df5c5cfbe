# Overview: Service-layer operations for imports/exports; text grids in, text grids out.

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable, Sequence

from .concurrency import run_with_retry
from .document_service import Invoice, InvoiceLineItem, invoices_from_rows, line_items_from_rows
from .receive_service import load_ledger, receive_purchase
from .record_codec import parse, records_from_grid, serialize
from .record_fields import INVOICE_FIELDS, INVOICE_ITEM_FIELDS
from .reporting_service import filter_by_date, sales_summary
from .storage_service import INVOICE_ITEMS_KEY, INVOICES_KEY, RecordStore


logger = logging.getLogger(__name__)


def import_inventory_csv(store: RecordStore, text: str) -> dict[str, Any]:
    """Stock file import: every row is merged like a purchase row."""
    return receive_purchase(store, parse(text))


def import_inventory_grid(store: RecordStore, grid: Iterable[Sequence[Any]]) -> dict[str, Any]:
    """Same as import_inventory_csv for an already-decoded cell grid (spreadsheet rows)."""
    return receive_purchase(store, records_from_grid(grid))


def export_inventory(store: RecordStore) -> str:
    return serialize(load_ledger(store).to_rows())


def load_sales_history(store: RecordStore) -> tuple[list[Invoice], list[InvoiceLineItem]]:
    return (
        invoices_from_rows(store.load(INVOICES_KEY)),
        line_items_from_rows(store.load(INVOICE_ITEMS_KEY)),
    )


def import_sales_history(
    store: RecordStore,
    invoices_text: str,
    items_text: str | None = None,
) -> dict[str, Any]:
    """
    Append historical invoices (and optionally their line items).

    Invoices whose id is already stored are skipped together with their items,
    so re-importing the same export does not double count. Rows are stored as
    given; reporting resolves field variants at read time.
    """
    invoice_rows = parse(invoices_text)
    item_rows = parse(items_text) if items_text else []

    def _op() -> dict[str, Any]:
        known = {Invoice.from_row(row).id for row in store.load(INVOICES_KEY)}
        new_invoices = []
        skipped_ids: set[str] = set()
        for row in invoice_rows:
            invoice_id = INVOICE_FIELDS.get(row, "id")
            if not invoice_id or invoice_id in known:
                skipped_ids.add(invoice_id or "")
                continue
            known.add(invoice_id)
            new_invoices.append(row)

        new_items = [
            row for row in item_rows
            if (INVOICE_ITEM_FIELDS.get(row, "invoice_id") or "") not in skipped_ids
        ]

        if new_invoices:
            store.append(INVOICES_KEY, new_invoices)
        if new_items:
            store.append(INVOICE_ITEMS_KEY, new_items)
        store.commit()
        return {
            "invoices": len(new_invoices),
            "items": len(new_items),
            "skipped_invoices": len(invoice_rows) - len(new_invoices),
        }

    result = run_with_retry(_op, rollback=store.rollback)
    logger.info(
        "Imported %d invoices and %d line items (%d invoices skipped)",
        result["invoices"], result["items"], result["skipped_invoices"],
    )
    return result


def export_invoices(store: RecordStore, start: Any = None, end: Any = None, *, today: date | None = None) -> str:
    invoices, _items = load_sales_history(store)
    return serialize(invoice.to_row() for invoice in filter_by_date(invoices, start, end, today=today))


def report_sales(
    store: RecordStore,
    *,
    start: Any = None,
    end: Any = None,
    limit: int = 10,
    today: date | None = None,
) -> dict[str, Any]:
    invoices, items = load_sales_history(store)
    return sales_summary(invoices, items, start=start, end=end, limit=limit, today=today)
