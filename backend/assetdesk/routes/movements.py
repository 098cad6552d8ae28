# Overview: Flask API routes for the movement ledger; read-only.

from flask import Blueprint, request, current_app

from ..decorators import require_auth
from ..errors import AppError
from ..services import movement_service

movements_bp = Blueprint("movements", __name__, url_prefix="/api/movements")


@movements_bp.get("")
@require_auth
def list_movements():
    """
    Most recent movements first, capped at MOVEMENTS_LIST_LIMIT.

    Query params:
    - type: sale | purchase | adjustment (optional)
    - action: one of the movement actions (optional)
    - asset_id: int (optional)
    """
    try:
        movements = movement_service.list_movements(
            type=request.args.get("type") or None,
            action=request.args.get("action") or None,
            asset_id=request.args.get("asset_id", type=int),
            limit=current_app.config["MOVEMENTS_LIST_LIMIT"],
        )
    except AppError as e:
        return e.to_dict(), e.status_code

    return {"items": [m.to_dict() for m in movements], "count": len(movements)}, 200
