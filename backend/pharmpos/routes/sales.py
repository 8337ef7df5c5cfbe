# Overview: Flask API routes for counter sales; parses input and returns JSON responses.

# backend/pharmpos/routes/sales.py
"""
Sales API routes.

The cart lives with the caller; each request sends the full list of lines.
A line is either {"term": "<scanned code or name>", "qty": n} or a priced
candidate such as {"name": "...", "qty": 2, "rate": "100", "gst": "18"}.
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import sales_service
from ..services.sales_service import SaleError
from ..services.storage_service import SqlRecordStore
from pharmpos.time_utils import parse_iso_date


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _lines_from(data: dict):
    lines = data.get("lines")
    if not isinstance(lines, list):
        return None
    return lines


@sales_bp.post("/quote")
def quote_route():
    """Price a cart without recording anything."""
    data = request.get_json(silent=True) or {}
    lines = _lines_from(data)
    if lines is None:
        return jsonify({"error": "lines must be a list"}), 400

    try:
        result = sales_service.quote(
            SqlRecordStore(),
            lines,
            discount=data.get("discount", 0),
            rounding_scale=current_app.config["POS_ROUNDING_SCALE"],
        )
        return jsonify(result), 200
    except Exception:
        current_app.logger.exception("Failed to quote cart")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/checkout")
def checkout_route():
    """
    Complete a sale: writes one invoice and its line items.

    Optional: discount (flat amount), paid (defaults to total), party_id, date.
    """
    data = request.get_json(silent=True) or {}
    lines = _lines_from(data)
    if lines is None:
        return jsonify({"error": "lines must be a list"}), 400

    on = parse_iso_date(data.get("date")) if data.get("date") else None

    try:
        result = sales_service.record_sale(
            SqlRecordStore(),
            lines,
            discount=data.get("discount", 0),
            paid=data.get("paid"),
            party_id=str(data.get("party_id") or ""),
            on=on,
            rounding_scale=current_app.config["POS_ROUNDING_SCALE"],
        )
        return jsonify(result), 201
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500
