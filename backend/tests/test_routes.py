"""
HTTP API tests.

Verifies:
- Health endpoint
- Purchase receiving, stock lookup, import/export over HTTP
- Quote and checkout, including 400s for bad carts
- Sales history upload and report windows
"""

import io

import pytest


STOCK_CSV = (
    "code,barcode,name,batch,expiry,qty,mrp,gst\n"
    "A1,8901234,Paracetamol 500,B1,2030-06,10,20,12\n"
    "C2,,Cough Syrup,S1,2030-12,2,85.50,18\n"
)

INVOICES_CSV = "id,date,total,paid\nI1,2024-01-05,500,500\nI2,2024-02-06,100,40\n"
ITEMS_CSV = "invoice_id,item_name,qty,rate,gst\nI1,Paracetamol,10,50,0\nI2,Syrup,1,100,0\n"


@pytest.fixture
def stocked(client, db_session):
    response = client.post("/api/inventory/import", data=STOCK_CSV, content_type="text/csv")
    assert response.status_code == 201
    return client


# =============================================================================
# SYSTEM
# =============================================================================


class TestHealth:

    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json["status"] == "healthy"
        assert response.json["database"]["details"]["collections"] == []


# =============================================================================
# INVENTORY
# =============================================================================


class TestInventoryApi:

    def test_purchase_replay_doubles_stock(self, client, db_session):
        payload = {"rows": [{"code": "A1", "batch": "B1", "qty": 10, "mrp": 50, "gst": 12}]}

        response = client.post("/api/inventory/purchases", json=payload)
        assert response.status_code == 201
        assert response.json["created"] == 1

        client.post("/api/inventory/purchases", json=payload)
        response = client.get("/api/inventory/lookup", query_string={"term": "a1"})
        assert response.status_code == 200
        assert response.json["item"]["qty"] == 20

    def test_purchase_requires_row_list(self, client, db_session):
        response = client.post("/api/inventory/purchases", json={"rows": "A1"})
        assert response.status_code == 400

    def test_lookup_errors(self, stocked):
        assert stocked.get("/api/inventory/lookup").status_code == 400
        response = stocked.get("/api/inventory/lookup", query_string={"term": "nope"})
        assert response.status_code == 404

    def test_lookup_by_barcode(self, stocked):
        response = stocked.get("/api/inventory/lookup", query_string={"term": "8901234"})
        assert response.json["item"]["name"] == "Paracetamol 500"

    def test_stock_list_filters(self, stocked):
        response = stocked.get("/api/inventory", query_string={"q": "syrup"})
        assert response.json["count"] == 1
        assert response.json["items"][0]["code"] == "C2"

        response = stocked.get("/api/inventory", query_string={"status": "low"})
        assert [row["code"] for row in response.json["items"]] == ["C2"]
        assert response.json["items"][0]["low_stock"] is True

    def test_file_upload(self, client, db_session):
        data = {"file": (io.BytesIO(STOCK_CSV.encode("utf-8")), "stock.csv")}
        response = client.post("/api/inventory/import", data=data, content_type="multipart/form-data")
        assert response.status_code == 201
        assert response.json["received"] == 2

    def test_unsupported_upload(self, client, db_session):
        data = {"file": (io.BytesIO(b"whatever"), "stock.pdf")}
        response = client.post("/api/inventory/import", data=data, content_type="multipart/form-data")
        assert response.status_code == 400

    def test_malformed_csv_is_rejected(self, client, db_session):
        response = client.post("/api/inventory/import", data='code,qty\n"A1,1\n', content_type="text/csv")
        assert response.status_code == 400
        assert client.get("/api/inventory").json["count"] == 0

    def test_empty_body_is_rejected(self, client, db_session):
        response = client.post("/api/inventory/import", data="", content_type="text/csv")
        assert response.status_code == 400

    def test_export(self, stocked):
        response = stocked.get("/api/inventory/export")
        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        text = response.get_data(as_text=True)
        assert text.startswith("code,barcode,name,batch,expiry,qty,mrp,gst,min_qty\r\n")
        assert "C2,,Cough Syrup,S1,2030-12,2,85.50,18," in text


# =============================================================================
# SALES
# =============================================================================


class TestSalesApi:

    def test_quote_priced_line(self, client, db_session):
        response = client.post("/api/sales/quote", json={
            "lines": [{"qty": 2, "rate": 100, "gst": 18}],
            "discount": 10,
        })
        assert response.status_code == 200
        assert response.json["totals"] == {
            "items": 2,
            "subtotal": "200.00",
            "tax": "36.00",
            "gross": "236.00",
            "discount": "10.00",
            "total": "226.00",
        }

    def test_quote_very_large_amount(self, client, db_session):
        response = client.post("/api/sales/quote", json={"lines": [{"name": "X", "qty": 1, "rate": "1e27"}]})
        assert response.status_code == 200
        assert response.json["totals"]["total"] == "1" + "0" * 27 + ".00"

    def test_checkout(self, stocked):
        response = stocked.post("/api/sales/checkout", json={
            "lines": [{"term": "A1", "qty": 1}],
            "paid": "10",
            "party_id": "PID-20240105-0001",
            "date": "2024-01-05",
        })
        assert response.status_code == 201
        invoice = response.json["invoice"]
        assert invoice["id"] == "INV-20240105-0001"
        assert invoice["total"] == "22.40"
        assert invoice["balance"] == "12.40"
        assert invoice["party_id"] == "PID-20240105-0001"

        report = stocked.get("/api/reports/sales", query_string={"from": "2024-01-05", "to": "2024-01-05"})
        assert report.json["kpis"]["invoices"] == 1
        assert report.json["kpis"]["balance"] == "12.40"

    def test_checkout_unknown_item(self, stocked):
        response = stocked.post("/api/sales/checkout", json={"lines": [{"term": "nope"}]})
        assert response.status_code == 400
        assert response.json["details"] == {"not_found": ["nope"]}

    def test_checkout_empty_cart(self, client, db_session):
        response = client.post("/api/sales/checkout", json={"lines": []})
        assert response.status_code == 400
        assert response.json["error"] == "Cart is empty"

    def test_lines_must_be_list(self, client, db_session):
        assert client.post("/api/sales/quote", json={}).status_code == 400


# =============================================================================
# REPORTS
# =============================================================================


class TestReportsApi:

    @pytest.fixture
    def history(self, client, db_session):
        data = {
            "invoices": (io.BytesIO(INVOICES_CSV.encode("utf-8")), "invoices.csv"),
            "items": (io.BytesIO(ITEMS_CSV.encode("utf-8")), "invoice_items.csv"),
        }
        response = client.post("/api/reports/import", data=data, content_type="multipart/form-data")
        assert response.status_code == 201
        assert response.json == {"invoices": 2, "items": 2, "skipped_invoices": 0}
        return client

    def test_window(self, history):
        response = history.get("/api/reports/sales", query_string={"from": "2024-01-01", "to": "2024-01-31"})
        assert response.status_code == 200
        assert response.json["kpis"]["total"] == "500.00"
        assert response.json["kpis"]["invoices"] == 1
        assert response.json["kpis"]["balance"] == "0.00"
        assert response.json["top_items"] == [{"name": "Paracetamol", "qty": 10, "amount": "500.00"}]

    def test_top_items_limit(self, history):
        response = history.get("/api/reports/sales", query_string={"limit": 1})
        assert [row["name"] for row in response.json["top_items"]] == ["Paracetamol"]

    def test_unknown_range(self, history):
        assert history.get("/api/reports/sales", query_string={"range": "year"}).status_code == 400

    def test_export(self, history):
        response = history.get("/api/reports/export", query_string={"from": "2024-02-01", "to": "2024-02-28"})
        lines = response.get_data(as_text=True).split("\r\n")
        assert lines[1].startswith("I2,2024-02-06,")

    def test_invoices_file_required(self, client, db_session):
        assert client.post("/api/reports/import", data={}).status_code == 400
