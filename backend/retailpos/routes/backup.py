# Overview: Flask API routes for full-dataset backup and restore.

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError
from ..services.ledger import get_ledger
from ..decorators import require_auth, require_role


backup_bp = Blueprint("backup", __name__, url_prefix="/api/backup")


@backup_bp.get("/export")
@require_auth
@require_role("ADMIN", "MANAGER")
def export_route():
    return jsonify(get_ledger().backup.export_data()), 200


@backup_bp.post("/import")
@require_auth
@require_role("ADMIN")
def import_route():
    """
    Replaces every collection with the posted backup document.
    Open shifts in the backup are repaired to at most one.
    """
    try:
        result = get_ledger().backup.import_data(request.get_json(silent=True))
        return jsonify(result), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to import backup")
        return jsonify({"error": "Internal server error"}), 500
