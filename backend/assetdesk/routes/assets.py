# Overview: Flask API routes for asset operations; parses input and returns JSON responses.

"""
Asset management routes.

SECURITY: All routes require an authenticated administrator.
Every write goes through asset_service, which records the matching
Movement in the same transaction.
"""
from flask import Blueprint, request, current_app

from ..decorators import require_auth
from ..errors import AppError
from ..models import ASSET_CATEGORIES, ASSET_STATUSES, PAYMENT_METHODS
from ..services import asset_service

assets_bp = Blueprint("assets", __name__, url_prefix="/api/assets")


@assets_bp.get("")
@require_auth
def list_assets():
    """
    List assets, newest first by default.

    Query params:
    - search: str (optional) - case-insensitive match on name, category, serial, supplier, location, status
    - category: str (optional) - exact category, "all" for no filter
    - status: str (optional) - exact status, "all" for no filter
    - sort: newest | oldest | name_asc | name_desc | value_desc | qty_desc
    """
    try:
        assets = asset_service.list_assets(
            search=request.args.get("search"),
            category=request.args.get("category"),
            status=request.args.get("status"),
            sort=request.args.get("sort"),
        )
    except AppError as e:
        return e.to_dict(), e.status_code

    return {"items": [a.to_dict() for a in assets], "count": len(assets)}, 200


@assets_bp.get("/options")
@require_auth
def asset_options():
    """Closed enumerations for the dashboard's filter and form controls."""
    return {
        "categories": list(ASSET_CATEGORIES),
        "statuses": list(ASSET_STATUSES),
        "payment_methods": list(PAYMENT_METHODS),
        "sorts": list(asset_service.ASSET_SORTS),
    }, 200


@assets_bp.post("")
@require_auth
def create_asset_route():
    payload = request.get_json(silent=True) or {}

    try:
        asset = asset_service.create_asset(payload)
    except AppError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create asset")
        return {"error": "Failed to create asset"}, 500

    return asset.to_dict(), 201


@assets_bp.get("/<int:asset_id>")
@require_auth
def get_asset_route(asset_id: int):
    try:
        asset = asset_service.get_asset(asset_id)
    except AppError as e:
        return e.to_dict(), e.status_code
    return asset.to_dict(), 200


@assets_bp.patch("/<int:asset_id>")
@require_auth
def update_asset_route(asset_id: int):
    """
    Partial update. Only supplied fields change.

    A quantity change is logged as stock_increased / stock_decreased,
    any other call (including one that changes nothing) as edited.
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400

    try:
        asset = asset_service.update_asset(asset_id, payload)
    except AppError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update asset %s", asset_id)
        return {"error": "Failed to update asset"}, 500

    return asset.to_dict(), 200


@assets_bp.delete("/<int:asset_id>")
@require_auth
def delete_asset_route(asset_id: int):
    try:
        asset_service.delete_asset(asset_id)
    except AppError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete asset %s", asset_id)
        return {"error": "Failed to delete asset"}, 500

    return {"ok": True}, 200
