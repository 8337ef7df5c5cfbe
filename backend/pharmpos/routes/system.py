# backend/pharmpos/routes/system.py
"""
System health endpoint.

Reports database reachability and the size of each stored collection.
"""

import time
from flask import Blueprint, current_app, jsonify

from ..services.storage_service import SqlRecordStore
from pharmpos.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and list stored collections.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        collections = SqlRecordStore().describe()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"collections": collections},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    status_code = 200 if database["status"] == "healthy" else 503
    return jsonify({
        "status": database["status"],
        "checked_at": to_utc_z(utcnow()),
        "database": database,
    }), status_code
