# Overview: Prioritized field-resolution tables and value coercion for ledger records.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Any, Mapping


ZERO = Decimal("0")
HUNDRED = Decimal("100")

IDENTITY_SEPARATOR = "@@"


def to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def to_decimal(value: Any) -> Decimal:
    """
    Parse a ledger number; anything unparsable (including NaN/Infinity) is 0.

    Currency symbols and thousands separators are tolerated ("₹ 1,200.50").
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, int):
        return Decimal(value)
    elif isinstance(value, float):
        number = Decimal(repr(value))
    else:
        text = str(value).strip().replace("$", "").replace("₹", "").replace(",", "").strip()
        if not text:
            return ZERO
        try:
            number = Decimal(text)
        except InvalidOperation:
            return ZERO
    if not number.is_finite():
        return ZERO
    return number


def to_int(value: Any) -> int:
    """Whole units, truncated toward zero ("2.9" -> 2)."""
    return int(to_decimal(value))


def round_money(value: Decimal, scale: int = 2) -> Decimal:
    """Round half away from zero to `scale` decimal digits, at any magnitude."""
    with localcontext() as ctx:
        # quantize needs room for every integer digit plus the kept fraction
        ctx.prec = max(ctx.prec, value.adjusted() + scale + 2)
        return value.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP)


def decimal_text(value: Decimal) -> str:
    """Plain positional notation ("100", never "1E+2") for persisted rows."""
    return format(value, "f")


def money_text(value: Decimal, scale: int = 2) -> str:
    return decimal_text(round_money(value, scale))


def normalize_key(value: Any) -> str:
    """Trim + case-fold; the comparison form of codes, names and search terms."""
    return (to_text(value) or "").casefold()


def identity_key(code: Any, batch: Any) -> str:
    return f"{normalize_key(code)}{IDENTITY_SEPARATOR}{to_text(batch) or ''}"


@dataclass(frozen=True)
class FieldSpec:
    """One logical field and the raw column names it may arrive under, in priority order."""
    name: str
    aliases: tuple[str, ...]

    def resolve(self, raw: Mapping[str, Any]) -> str | None:
        for alias in self.aliases:
            text = to_text(raw.get(alias))
            if text is not None:
                return text
        return None


class FieldTable:
    def __init__(self, *specs: FieldSpec):
        self._specs = {spec.name: spec for spec in specs}

    def get(self, raw: Mapping[str, Any], name: str) -> str | None:
        """First non-blank value among the field's aliases; None when not supplied."""
        if not isinstance(raw, Mapping):
            return None
        return self._specs[name].resolve(raw)

    def first(self, raw: Mapping[str, Any], *names: str) -> str | None:
        """Resolve several logical fields in order and return the first supplied one."""
        for name in names:
            value = self.get(raw, name)
            if value is not None:
                return value
        return None

    def aliases(self, name: str) -> tuple[str, ...]:
        return self._specs[name].aliases


def _variants(*names: str) -> tuple[str, ...]:
    """Each name as written, then Title and UPPER case, without duplicates."""
    seen: list[str] = []
    for name in names:
        for variant in (name, name.title(), name.upper()):
            if variant not in seen:
                seen.append(variant)
    return tuple(seen)


INVENTORY_FIELDS = FieldTable(
    FieldSpec("code", _variants("code", "product_code", "item_code")),
    FieldSpec("barcode", _variants("barcode", "ean", "upc")),
    FieldSpec("sku", _variants("sku")),
    FieldSpec("name", _variants("name", "item_name", "product_name", "item")),
    FieldSpec("batch", _variants("batch", "batch_no", "lot")),
    FieldSpec("expiry", _variants("expiry", "expiry_date", "exp")),
    FieldSpec("quantity", _variants("qty", "quantity", "stock")),
    FieldSpec("unit_price", _variants("mrp", "price", "unit_price")),
    FieldSpec("tax_percent", _variants("gst", "gst_pct", "tax", "tax_percent")),
    FieldSpec("min_quantity", _variants("min_qty", "min", "reorder_level")),
)

CART_FIELDS = FieldTable(
    FieldSpec("code", _variants("code", "product_code", "item_code")),
    FieldSpec("barcode", _variants("barcode", "ean", "upc")),
    FieldSpec("sku", _variants("sku")),
    FieldSpec("name", _variants("name", "item_name", "product_name", "item")),
    FieldSpec("batch", _variants("batch", "batch_no", "lot")),
    FieldSpec("quantity", _variants("qty", "quantity")),
    FieldSpec("rate", _variants("rate")),
    FieldSpec("unit_price", _variants("mrp", "price", "unit_price")),
    FieldSpec("tax_percent", _variants("gst", "gst_pct", "tax", "tax_percent")),
)

INVOICE_FIELDS = FieldTable(
    FieldSpec("id", _variants("id", "invoice_id", "invoice_no")),
    FieldSpec("date", _variants("date", "invoice_date", "created_at")),
    FieldSpec("party_id", _variants("party_id", "patient_id", "customer_id")),
    FieldSpec("subtotal", _variants("subtotal", "sub_total")),
    FieldSpec("tax", _variants("tax", "gst", "tax_amount")),
    FieldSpec("discount", _variants("discount")),
    FieldSpec("total", _variants("total", "grand_total")),
    FieldSpec("paid", _variants("paid", "amount_paid")),
    FieldSpec("balance", _variants("balance", "due")),
)

INVOICE_ITEM_FIELDS = FieldTable(
    FieldSpec("invoice_id", ("invoice_id", "invoiceId", "Invoice_Id", "INVOICE_ID")),
    FieldSpec("item_name", _variants("item_name", "item")),
    FieldSpec("name", _variants("name", "product_name")),
    FieldSpec("code", _variants("code", "barcode", "sku")),
    FieldSpec("batch", _variants("batch", "batch_no", "lot")),
    FieldSpec("quantity", _variants("qty", "quantity")),
    FieldSpec("rate", _variants("rate", "mrp", "price", "unit_price")),
    FieldSpec("tax_percent", _variants("gst", "gst_pct", "tax", "tax_percent")),
)
