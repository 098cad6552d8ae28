from flask import Blueprint, jsonify

from ..decorators import require_auth
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/summary")
@require_auth
def summary_report():
    return jsonify(reporting_service.summary()), 200
