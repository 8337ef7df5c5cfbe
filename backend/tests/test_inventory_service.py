"""
Inventory ledger tests.

Verifies:
- Purchase rows add quantity per (code, batch); replaying a batch doubles stock
- Non-quantity fields update only when supplied
- Code fallback and column-name variants
- Lookup precedence (code/barcode before name)
- Expiry and low-stock flags on the stock list
"""

from datetime import date
from decimal import Decimal

import pytest

from pharmpos.services import inventory_service
from pharmpos.services.inventory_service import (
    InventoryLedger,
    InventoryRecord,
    expiry_status,
    is_low_stock,
    lookup,
    merge_purchase_rows,
    normalize_purchase_row,
    search_stock,
    upsert_purchase_batch,
)
from pharmpos.services.record_codec import parse, serialize


TODAY = date(2024, 1, 1)


def _quantities(ledger):
    return {record.identity: record.quantity for record in ledger}


# =============================================================================
# PURCHASE MERGE
# =============================================================================


class TestPurchaseMerge:

    def test_first_purchase_then_replay_doubles_stock(self):
        batch = [{"code": "A1", "batch": "B1", "qty": 10, "mrp": 50, "gst": 12}]

        ledger = upsert_purchase_batch(InventoryLedger(), batch)
        assert len(ledger) == 1
        record = ledger.get("A1", "B1")
        assert record.quantity == 10
        assert record.unit_price == Decimal("50")
        assert record.tax_percent == Decimal("12")

        ledger = upsert_purchase_batch(ledger, batch)
        assert len(ledger) == 1
        assert ledger.get("A1", "B1").quantity == 20

    def test_merge_is_additive_across_batches(self):
        b1 = [{"code": "A1", "qty": 3}, {"code": "B2", "batch": "L1", "qty": 4}]
        b2 = [{"code": "a1", "qty": 5}, {"code": "C3", "qty": 1}]

        stepwise = upsert_purchase_batch(upsert_purchase_batch(InventoryLedger(), b1), b2)
        combined = upsert_purchase_batch(InventoryLedger(), b1 + b2)
        assert _quantities(stepwise) == _quantities(combined)
        assert stepwise.get("A1").quantity == 8

    def test_empty_batch_is_its_own_bucket(self):
        ledger = upsert_purchase_batch(InventoryLedger(), [
            {"code": "A1", "batch": "", "qty": 2},
            {"code": "A1", "batch": "B1", "qty": 3},
        ])
        assert len(ledger) == 2
        assert ledger.get("A1").quantity == 2
        assert ledger.get("A1", "B1").quantity == 3

    def test_code_is_case_insensitive_batch_is_not(self):
        ledger = upsert_purchase_batch(InventoryLedger(), [
            {"code": "A1", "batch": "b1", "qty": 1},
            {"code": " a1 ", "batch": "b1", "qty": 1},
            {"code": "A1", "batch": "B1", "qty": 1},
        ])
        assert len(ledger) == 2
        assert ledger.get("A1", "b1").quantity == 2
        assert ledger.get("A1", "b1").code == "A1"

    def test_sparse_update_keeps_unsupplied_fields(self):
        ledger = upsert_purchase_batch(InventoryLedger(), [
            {"code": "A1", "name": "Paracetamol 500", "qty": 10, "mrp": "25.50", "gst": "12", "expiry": "2025-06"},
        ])
        ledger = upsert_purchase_batch(ledger, [{"code": "A1", "qty": 5, "name": "", "mrp": "27"}])

        record = ledger.get("A1")
        assert record.quantity == 15
        assert record.name == "Paracetamol 500"
        assert record.unit_price == Decimal("27")
        assert record.tax_percent == Decimal("12")
        assert record.expiry == "2025-06"

    def test_input_ledger_is_not_modified(self):
        ledger = upsert_purchase_batch(InventoryLedger(), [{"code": "A1", "qty": 10}])
        upsert_purchase_batch(ledger, [{"code": "A1", "qty": 10}])
        assert ledger.get("A1").quantity == 10

    def test_empty_batch_returns_same_ledger(self):
        ledger = upsert_purchase_batch(InventoryLedger(), [{"code": "A1", "qty": 1}])
        new_ledger, summary = merge_purchase_rows(ledger, [])
        assert new_ledger is ledger
        assert summary.to_dict() == {"received": 0, "created": 0, "updated": 0, "skipped": 0}

    def test_rows_without_identity_are_skipped(self):
        ledger, summary = merge_purchase_rows(InventoryLedger(), [
            {"qty": 5, "mrp": 10},
            {"code": "A1", "qty": 1},
            {"code": "A1", "qty": 2},
        ])
        assert summary.to_dict() == {"received": 2, "created": 1, "updated": 1, "skipped": 1}
        assert len(ledger) == 1
        assert ledger.get("A1").quantity == 3

    def test_first_seen_order_is_kept(self):
        ledger = upsert_purchase_batch(InventoryLedger(), [
            {"code": "Z9", "qty": 1},
            {"code": "A1", "qty": 1},
            {"code": "z9", "qty": 1},
        ])
        assert [record.code for record in ledger] == ["Z9", "A1"]


class TestNormalizePurchaseRow:

    def test_code_falls_back_to_barcode_then_sku(self):
        assert normalize_purchase_row({"barcode": "8901234", "name": "ORS"}).code == "8901234"
        assert normalize_purchase_row({"sku": "SKU-7"}).code == "SKU-7"

    def test_name_only_row_uses_name_as_code(self):
        row = normalize_purchase_row({"name": "ORS Sachet", "qty": 4})
        assert row.code == "ORS Sachet"
        assert row.quantity == 4

    def test_column_variants(self):
        row = normalize_purchase_row({"Code": "A1", "Qty": "3", "MRP": "20", "GST": "5", "Batch": "L9"})
        assert row.code == "A1"
        assert row.quantity == 3
        assert row.unit_price == Decimal("20")
        assert row.tax_percent == Decimal("5")
        assert row.batch == "L9"

    def test_first_supplied_alias_wins(self):
        row = normalize_purchase_row({"code": "A1", "qty": "", "quantity": "7", "stock": "99"})
        assert row.quantity == 7

    def test_value_clamping(self):
        row = normalize_purchase_row({"code": "A1", "qty": "-4", "mrp": "-1", "gst": "150"})
        assert row.quantity == 0
        assert row.unit_price == Decimal("0")
        assert row.tax_percent == Decimal("100")

    def test_fractional_quantity_truncates(self):
        assert normalize_purchase_row({"code": "A1", "qty": "2.9"}).quantity == 2

    def test_currency_text_is_parsed(self):
        assert normalize_purchase_row({"code": "A1", "mrp": "₹ 1,200.50"}).unit_price == Decimal("1200.50")

    def test_unparsable_numbers_are_zero(self):
        row = normalize_purchase_row({"code": "A1", "qty": "ten", "mrp": "NaN"})
        assert row.quantity == 0
        assert row.unit_price == Decimal("0")

    def test_no_identity(self):
        assert normalize_purchase_row({"batch": "B1", "qty": 3}) is None
        assert normalize_purchase_row("not a row") is None


class TestLedgerRows:

    def test_rows_round_trip(self):
        ledger = upsert_purchase_batch(InventoryLedger(), [
            {"code": "A1", "name": "Paracetamol", "batch": "B1", "qty": 10, "mrp": 50, "gst": 12, "expiry": "2025-01"},
            {"code": "C2", "name": "Syrup, 100ml", "qty": 3, "min_qty": 4},
        ])
        assert InventoryLedger.from_rows(ledger.to_rows()) == ledger
        assert InventoryLedger.from_rows(parse(serialize(ledger.to_rows()))) == ledger

    def test_constructor_collapses_duplicate_identities(self):
        first = InventoryRecord(code="A1", name="Paracetamol", batch="B1", quantity=4, unit_price=Decimal("20"))
        second = InventoryRecord(code="a1", name="Other", batch="B1", quantity=6, unit_price=Decimal("25"))
        other_batch = InventoryRecord(code="A1", name="Paracetamol", batch="B2", quantity=1)

        ledger = InventoryLedger([first, other_batch, second])
        assert len(ledger) == 2
        record = ledger.get("A1", "B1")
        assert record.quantity == 10
        assert record.name == "Paracetamol"
        assert record.unit_price == Decimal("20")
        assert [r.batch for r in ledger] == ["B1", "B2"]

    def test_rows_never_use_exponent_notation(self):
        record = InventoryRecord(code="A1", name="X", unit_price=Decimal("1E+2"), tax_percent=Decimal("5E+0"))
        row = record.to_row()
        assert row["mrp"] == "100"
        assert row["gst"] == "5"

        ledger = upsert_purchase_batch(InventoryLedger(), [{"code": "A1", "mrp": "1e2"}])
        assert "1E+2" not in serialize(ledger.to_rows())

    def test_duplicate_rows_collapse_on_load(self):
        ledger = InventoryLedger.from_rows([{"code": "A1", "qty": 2}, {"code": "A1", "qty": 3}])
        assert len(ledger) == 1
        assert ledger.get("A1").quantity == 5


# =============================================================================
# LOOKUP
# =============================================================================


class TestLookup:

    @pytest.fixture
    def ledger(self):
        return upsert_purchase_batch(InventoryLedger(), [
            {"code": "X9", "name": "A1", "qty": 1},
            {"code": "A1", "barcode": "8901234", "name": "Paracetamol", "qty": 1},
            {"code": "A1", "batch": "B2", "name": "Paracetamol", "qty": 1},
        ])

    def test_code_match(self, ledger):
        assert lookup(ledger, "a1").code == "A1"

    def test_code_beats_name(self, ledger):
        assert lookup(ledger, "A1").batch == ""

    def test_barcode_match(self, ledger):
        assert lookup(ledger, " 8901234 ").code == "A1"

    def test_name_match_first_seen(self, ledger):
        record = lookup(ledger, "PARACETAMOL")
        assert record.code == "A1"
        assert record.batch == ""

    def test_miss_and_blank(self, ledger):
        assert lookup(ledger, "nothing") is None
        assert lookup(ledger, "  ") is None
        assert lookup(ledger, None) is None


# =============================================================================
# STOCK FLAGS
# =============================================================================


class TestStockFlags:

    @pytest.mark.parametrize(
        "expiry,expected",
        [
            ("2023-12-31", "expired"),
            ("2024-01-01", "near"),
            ("2024-03-01", "near"),
            ("2024-03-02", "ok"),
            ("2024-02", "near"),
            ("2023-12", "expired"),
            ("", "ok"),
            ("soon", "ok"),
        ],
    )
    def test_expiry_status(self, expiry, expected):
        assert expiry_status(expiry, TODAY) == expected

    def test_expiry_window_is_configurable(self):
        assert expiry_status("2024-01-20", TODAY, near_days=10) == "ok"

    def test_low_stock_uses_threshold_or_min_quantity(self):
        ledger = upsert_purchase_batch(InventoryLedger(), [
            {"code": "A1", "qty": 5},
            {"code": "B2", "qty": 8, "min_qty": 10},
            {"code": "C3", "qty": 6},
        ])
        assert is_low_stock(ledger.get("A1"))
        assert is_low_stock(ledger.get("B2"))
        assert not is_low_stock(ledger.get("C3"))

    def test_search_stock_filters(self):
        ledger = upsert_purchase_batch(InventoryLedger(), [
            {"code": "A1", "name": "Paracetamol", "batch": "P1", "qty": 50, "expiry": "2023-11-30"},
            {"code": "A1", "name": "Paracetamol", "batch": "P2", "qty": 2, "expiry": "2026-01-01"},
            {"code": "B2", "name": "Cetirizine", "batch": "C1", "qty": 40, "expiry": "2024-01-15"},
        ])

        everything = search_stock(ledger, today=TODAY)
        assert [row["batch"] for row in everything] == ["P1", "P2", "C1"]
        assert everything[0]["expiry_status"] == "expired"

        assert [row["batch"] for row in search_stock(ledger, "para", today=TODAY)] == ["P1", "P2"]
        assert [row["batch"] for row in search_stock(ledger, "c1", today=TODAY)] == ["C1"]
        assert [row["batch"] for row in search_stock(ledger, status="expired", today=TODAY)] == ["P1"]
        assert [row["batch"] for row in search_stock(ledger, status="near", today=TODAY)] == ["C1"]

        low = search_stock(ledger, status="low", today=TODAY)
        assert [row["batch"] for row in low] == ["P2"]
        assert low[0]["low_stock"] is True

    def test_unknown_status_lists_everything(self):
        ledger = upsert_purchase_batch(InventoryLedger(), [{"code": "A1", "qty": 1}])
        assert len(search_stock(ledger, status="bogus", today=TODAY)) == 1

    def test_defaults_match_module_constants(self):
        assert inventory_service.EXPIRY_NEAR_DAYS_DEFAULT == 60
        assert inventory_service.LOW_STOCK_THRESHOLD_DEFAULT == 5
