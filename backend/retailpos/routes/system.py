# backend/retailpos/routes/system.py
"""
System endpoints.

- /health reports database connectivity, the durable-store replicator and
  the in-memory ledger counts.
- /api/system/reload re-reads the shared store into memory.
"""

import time
from flask import Blueprint, current_app, jsonify
from ..decorators import require_auth, require_role
from ..extensions import db
from ..models import User, SessionToken
from ..services.ledger import get_ledger
from ..state import COLLECTIONS
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "active_sessions": active_sessions,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_ledger_health() -> dict:
    """
    Durable writes are best-effort, so replication failures only degrade
    the status; the in-memory ledger keeps serving.
    """
    ledger = get_ledger()
    details = {name: ledger.state.count(name) for name in COLLECTIONS}
    active = ledger.shifts.get_active_shift()
    details["active_shift_id"] = active.id if active else None
    details["open_shift_count"] = len(ledger.shifts.open_shifts())

    if ledger.replicator is None:
        return {"status": "healthy", "store": None, "details": details}

    failures = ledger.replicator.failures
    return {
        "status": "degraded" if failures else "healthy",
        "store": ledger.store.describe(),
        "replication_failures": failures,
        "details": details,
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    ledger_health = check_ledger_health()

    all_checks = [database_health, ledger_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "ledger": ledger_health,
        }
    }

    return response, http_status


@system_bp.post("/api/system/reload")
@require_auth
@require_role("ADMIN", "MANAGER")
def reload_route():
    """
    Re-read the shared store so sales, shifts and stock written by other
    registers become visible. Extra open shifts are repaired to one.
    """
    try:
        result = get_ledger().refresh()
        return jsonify(result), 200

    except Exception:
        current_app.logger.exception("Failed to reload ledger")
        return jsonify({"error": "Internal server error"}), 500
