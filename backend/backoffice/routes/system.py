# backend/backoffice/routes/system.py
"""
System health endpoint.

Public: reports database connectivity and which credential issuer is wired.
"""

import time

from flask import Blueprint, current_app, jsonify

from ..extensions import db
from ..models import Organization, Principal
from backoffice.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Check database connectivity with two cheap counts."""
    start_time = time.time()
    try:
        org_count = db.session.query(Organization).count()
        principal_count = db.session.query(Principal).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"organizations": org_count, "principals": principal_count},
        }
    except Exception:
        db.session.rollback()
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
    issuer = current_app.extensions.get("backoffice.credential_issuer")
    healthy = database["status"] == "healthy"

    return jsonify({
        "status": "healthy" if healthy else "unhealthy",
        "checked_at": to_utc_z(utcnow()),
        "database": database,
        "credential_issuer": getattr(issuer, "name", None),
    }), 200 if healthy else 503
