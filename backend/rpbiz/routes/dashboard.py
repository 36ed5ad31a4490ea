# Overview: Flask API route for dashboard rollups.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..services import dashboard_service
from ..validation import db_int

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
@require_auth
def dashboard_stats_route():
    threshold = request.args.get("threshold", type=db_int)
    try:
        return dashboard_service.get_dashboard_stats(g.current_user.id, threshold=threshold), 200
    except Exception:
        current_app.logger.exception("Failed to compute dashboard stats")
        return {"error": "Internal server error"}, 500
