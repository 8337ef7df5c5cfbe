# Overview: Service-layer operations for reporting; date-windowed aggregation over sales history.

"""
Reporting semantics:
- Date windows are inclusive on both ends and compare calendar dates.
- An invoice with a missing or unparsable date is treated as dated "today".
  KNOWN HAZARD: such invoices land in every window that contains today.
  Ingestion should insist on a valid date instead of relying on this.
- Invoice-level money is authoritative. Line items only stand in for an
  invoice that carries no total of its own.
- Line amounts are tax-inclusive (qty x rate x (1 + gst/100)), before discount.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Iterable, Mapping

from pharmpos.time_utils import parse_iso_date, today as utc_today
from .document_service import Invoice, InvoiceLineItem
from .record_fields import ZERO, money_text


PRESET_RANGES = ("today", "7d", "30d", "mtd")


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


@dataclass(frozen=True)
class SalesKPIs:
    invoices: int
    total: Decimal
    paid: Decimal
    balance: Decimal
    items_sold: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "invoices": self.invoices,
            "total": money_text(self.total),
            "paid": money_text(self.paid),
            "balance": money_text(self.balance),
            "items_sold": self.items_sold,
        }


def invoice_date(invoice: Invoice, today: date | None = None) -> date:
    return parse_iso_date(invoice.date) or today or utc_today()


def _bound(value: Any) -> date | None:
    # Unparsable bounds leave that side of the window open
    return parse_iso_date(value)


def filter_by_date(
    invoices: Iterable[Invoice],
    start: Any = None,
    end: Any = None,
    *,
    today: date | None = None,
) -> list[Invoice]:
    """Invoices dated within [start, end], in input order. None bounds are open."""
    today = today or utc_today()
    start_d, end_d = _bound(start), _bound(end)

    selected = []
    for invoice in invoices:
        day = invoice_date(invoice, today)
        if start_d and day < start_d:
            continue
        if end_d and day > end_d:
            continue
        selected.append(invoice)
    return selected


def items_for_invoices(invoices: Iterable[Invoice], line_items: Iterable[InvoiceLineItem]) -> list[InvoiceLineItem]:
    ids = {invoice.id for invoice in invoices}
    return [item for item in line_items if item.invoice_id in ids]


def build_kpis(invoices: Iterable[Invoice], line_items: Iterable[InvoiceLineItem]) -> SalesKPIs:
    """
    Sum total/paid/balance over invoices.

    Per invoice: total falls back to its line items' subtotal + tax when the
    invoice carries none; balance falls back to total - paid. Only line items
    that belong to one of the invoices are counted. Invoice ids should be
    unique; when one repeats, its line items stand in for a single invoice only.
    """
    invoices = list(invoices)
    ids = {invoice.id for invoice in invoices}

    line_totals: dict[str, Decimal] = {}
    items_sold = 0
    for item in line_items:
        if item.invoice_id not in ids:
            continue
        line_totals[item.invoice_id] = line_totals.get(item.invoice_id, ZERO) + item.amount
        items_sold += item.quantity

    total = paid = balance = ZERO
    fallback_used: set[str] = set()
    for invoice in invoices:
        if invoice.total is not None:
            invoice_total = invoice.total
        elif invoice.id in fallback_used:
            # Line items already stood in for the first invoice with this id
            invoice_total = ZERO
        else:
            fallback_used.add(invoice.id)
            invoice_total = line_totals.get(invoice.id, ZERO)
        invoice_paid = invoice.paid if invoice.paid is not None else ZERO
        invoice_balance = invoice.balance if invoice.balance is not None else invoice_total - invoice_paid

        total += invoice_total
        paid += invoice_paid
        balance += invoice_balance

    return SalesKPIs(
        invoices=len(invoices),
        total=total,
        paid=paid,
        balance=balance,
        items_sold=items_sold,
    )


def top_items(line_items: Iterable[InvoiceLineItem], limit: int = 10) -> list[dict[str, Any]]:
    """
    Rank items by tax-inclusive amount, descending.

    Grouped by display name (item name -> name -> code -> "Unknown"); ties keep
    first-seen order.
    """
    groups: "OrderedDict[str, dict[str, Any]]" = OrderedDict()
    for item in line_items:
        name = item.display_name
        group = groups.get(name)
        if group is None:
            group = groups[name] = {"name": name, "qty": 0, "amount": ZERO}
        group["qty"] += item.quantity
        group["amount"] += item.amount

    ranked = sorted(groups.values(), key=lambda g: g["amount"], reverse=True)
    return ranked[: max(0, int(limit))]


def daily_revenue(
    line_items: Iterable[InvoiceLineItem],
    invoices_by_id: Mapping[str, Invoice],
    *,
    today: date | None = None,
) -> list[tuple[str, Decimal]]:
    """(YYYY-MM-DD, tax-inclusive amount) per day, ascending. Orphan items are skipped."""
    today = today or utc_today()
    buckets: dict[str, Decimal] = {}
    for item in line_items:
        invoice = invoices_by_id.get(item.invoice_id)
        if invoice is None:
            continue
        day = invoice_date(invoice, today).isoformat()
        buckets[day] = buckets.get(day, ZERO) + item.amount
    return sorted(buckets.items())


def preset_range(name: str, today: date | None = None) -> tuple[date, date]:
    today = today or utc_today()
    if name == "today":
        return today, today
    if name == "7d":
        return today - timedelta(days=6), today
    if name == "30d":
        return today - timedelta(days=29), today
    if name == "mtd":
        return today.replace(day=1), today
    raise ReportError("range must be today, 7d, 30d, or mtd")


def average_per_day(total: Decimal, start: Any, end: Any) -> Decimal:
    start_d, end_d = _bound(start), _bound(end)
    days = 1
    if start_d and end_d:
        days = max(1, (end_d - start_d).days + 1)
    return total / days


def sales_summary(
    invoices: Iterable[Invoice],
    line_items: Iterable[InvoiceLineItem],
    *,
    start: Any = None,
    end: Any = None,
    limit: int = 10,
    today: date | None = None,
) -> dict[str, Any]:
    """The reports screen in one call: window, KPIs, average, top items and daily series."""
    today = today or utc_today()
    selected = filter_by_date(invoices, start, end, today=today)
    items = items_for_invoices(selected, line_items)
    kpis = build_kpis(selected, items)
    by_id = {invoice.id: invoice for invoice in selected}

    start_d, end_d = _bound(start), _bound(end)
    return {
        "start": start_d.isoformat() if start_d else None,
        "end": end_d.isoformat() if end_d else None,
        "kpis": kpis.to_dict(),
        "average_per_day": money_text(average_per_day(kpis.total, start_d, end_d)),
        "top_items": [
            {"name": row["name"], "qty": row["qty"], "amount": money_text(row["amount"])}
            for row in top_items(items, limit)
        ],
        "daily_revenue": [
            {"date": day, "amount": money_text(amount)}
            for day, amount in daily_revenue(items, by_id, today=today)
        ],
    }
