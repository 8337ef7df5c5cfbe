# Overview: Flask API routes for sales reports and sales-history files.

"""
Reports routes.

Windows come from ?range=today|7d|30d|mtd or ?from=YYYY-MM-DD&to=YYYY-MM-DD
(inclusive). Undated invoices count as today's sales.
"""

from flask import Blueprint, Response, current_app, jsonify, request

from pharmpos.services import import_service, reporting_service
from pharmpos.services.record_codec import CodecError
from pharmpos.services.storage_service import SqlRecordStore


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _window():
    """(start, end) from ?range=today|7d|30d|mtd, else ?from=&to=."""
    preset = request.args.get("range")
    if preset:
        return reporting_service.preset_range(preset)
    return request.args.get("from"), request.args.get("to")


@reports_bp.get("/sales")
def sales_report():
    limit = request.args.get("limit", current_app.config["POS_TOP_ITEMS_LIMIT"], type=int)
    try:
        start, end = _window()
        report = import_service.report_sales(SqlRecordStore(), start=start, end=end, limit=limit)
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/export")
def export_invoices():
    try:
        start, end = _window()
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400

    csv_text = import_service.export_invoices(SqlRecordStore(), start, end)
    return Response(
        csv_text,
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=invoices_export.csv"},
    )


@reports_bp.post("/import")
def import_sales_history():
    """Upload historical sales: multipart "invoices" file, optional "items" file."""
    if "invoices" not in request.files:
        return jsonify({"error": "invoices file is required"}), 400

    invoices_text = request.files["invoices"].stream.read().decode("utf-8-sig")
    items_file = request.files.get("items")
    items_text = items_file.stream.read().decode("utf-8-sig") if items_file else None

    try:
        result = import_service.import_sales_history(SqlRecordStore(), invoices_text, items_text)
        return jsonify(result), 201
    except CodecError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Failed to import sales history")
        return jsonify({"error": "Failed to parse upload"}), 400
