# backend/pressdesk/routes/system.py
"""
System endpoints: health and the public signing certificate asset.
"""

import time
from pathlib import Path

from flask import Blueprint, current_app, jsonify, Response
from ..extensions import db
from ..models import Order, Profile
from ..services.realtime_service import broadcaster

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        order_count = db.session.query(Order).count()
        profile_count = db.session.query(Profile).count()
        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "details": {"orders": order_count, "profiles": profile_count},
        }
    except Exception:
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    body = {
        "status": database["status"],
        "database": database,
        "realtime_subscribers": broadcaster.subscriber_count,
        "signing_configured": bool(current_app.config.get("QZ_PRIVATE_KEY")),
    }
    return jsonify(body), 200 if database["status"] == "healthy" else 503


@system_bp.get("/qz-digital-certificate.txt")
def certificate_asset():
    """Public certificate fetched by consoles and trusted by the print agent."""
    path = Path(current_app.config.get("QZ_CERTIFICATE_PATH") or "")
    if not path.is_absolute():
        path = Path(current_app.root_path).parent / path
    if not path.is_file():
        return Response("Certificate not found", status=404, mimetype="text/plain")
    return Response(path.read_text(encoding="utf-8"), mimetype="text/plain")
