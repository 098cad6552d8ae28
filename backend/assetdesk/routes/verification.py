# Overview: Flask API routes for the verification audit trail.

from flask import Blueprint, current_app

from ..decorators import require_auth
from ..services import verification_service

verification_bp = Blueprint("verification", __name__, url_prefix="/api/verify")


@verification_bp.get("/logs")
@require_auth
def list_verification_logs():
    """Most recent public invoice lookups, capped at VERIFICATION_LOGS_LIMIT."""
    logs = verification_service.list_verification_logs(limit=current_app.config["VERIFICATION_LOGS_LIMIT"])
    return {"items": [entry.to_dict() for entry in logs], "count": len(logs)}, 200
