# backend/pharmpos/routes/inventory.py
"""
Inventory routes.

- GET  /api/inventory            stock list (q, status=all|near|expired|low)
- GET  /api/inventory/lookup     scanned code or typed term -> stock record
- POST /api/inventory/purchases  merge purchase rows into stock
- POST /api/inventory/import     CSV/XLSX upload or raw CSV body
- GET  /api/inventory/export     stock as CSV

Quantities only ever grow through purchases and imports. Posting the same
purchase twice receives it twice.
"""

from flask import Blueprint, Response, current_app, jsonify, request

from ..services import import_service, inventory_service
from ..services.receive_service import load_ledger, receive_purchase
from ..services.record_codec import CodecError
from ..services.storage_service import SqlRecordStore


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

XLSX_EXTENSIONS = {"xlsx", "xlsm", "xltx", "xltm"}


@inventory_bp.get("")
def list_stock_route():
    query = request.args.get("q")
    status = request.args.get("status", "all")
    try:
        ledger = load_ledger(SqlRecordStore())
        rows = inventory_service.search_stock(
            ledger,
            query,
            status,
            near_days=current_app.config["POS_EXPIRY_NEAR_DAYS"],
            low_threshold=current_app.config["POS_LOW_STOCK_THRESHOLD"],
        )
        return jsonify({"items": rows, "count": len(rows)}), 200
    except Exception:
        current_app.logger.exception("Failed to list stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/lookup")
def lookup_route():
    term = request.args.get("term", "")
    if not term.strip():
        return jsonify({"error": "term is required"}), 400

    record = inventory_service.lookup(load_ledger(SqlRecordStore()), term)
    if record is None:
        return jsonify({"error": "Not found in inventory", "term": term}), 404
    return jsonify({"item": record.to_row()}), 200


@inventory_bp.post("/purchases")
def receive_purchase_route():
    data = request.get_json(silent=True) or {}
    rows = data.get("rows")
    if not isinstance(rows, list):
        return jsonify({"error": "rows must be a list"}), 400

    try:
        result = receive_purchase(SqlRecordStore(), rows)
        return jsonify(result), 201
    except Exception:
        current_app.logger.exception("Failed to receive purchase")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/import")
def import_stock_route():
    store = SqlRecordStore()
    try:
        if "file" in request.files:
            file = request.files["file"]
            filename = file.filename or ""
            ext = filename.split(".")[-1].lower()
            if ext == "csv":
                result = import_service.import_inventory_csv(store, file.stream.read().decode("utf-8-sig"))
            elif ext in XLSX_EXTENSIONS:
                from openpyxl import load_workbook
                wb = load_workbook(file.stream, read_only=True, data_only=True)
                result = import_service.import_inventory_grid(store, wb.active.iter_rows(values_only=True))
            else:
                return jsonify({"error": "Unsupported file format"}), 400
        else:
            text = request.get_data(as_text=True)
            if not text.strip():
                return jsonify({"error": "file or CSV body is required"}), 400
            result = import_service.import_inventory_csv(store, text)
        return jsonify(result), 201
    except CodecError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to import stock upload")
        return jsonify({"error": "Failed to parse upload"}), 400


@inventory_bp.get("/export")
def export_stock_route():
    csv_text = import_service.export_inventory(SqlRecordStore())
    return Response(
        csv_text,
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=stock_export.csv"},
    )
