# backend/gympos/routes/system.py
"""System health endpoint."""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..models import InventoryItem, Permission, Role
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        item_count = db.session.query(InventoryItem).count()
        role_count = db.session.query(Role).count()
        permission_count = db.session.query(Permission).count()
    except Exception:
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }

    status = "healthy" if role_count and permission_count else "degraded"
    return {
        "status": status,
        "latency_ms": round((time.time() - start_time) * 1000, 2),
        "details": {
            "items": item_count,
            "roles": role_count,
            "permissions": permission_count,
        },
    }


@system_bp.get("/health")
def health():
    """
    Health check.

    Returns:
    - 200: database reachable (status "degraded" if roles/permissions are not seeded)
    - 503: database unreachable
    """
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200

    return {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {"database": database_health},
    }, http_status
