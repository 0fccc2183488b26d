# Overview: Flask API routes for dashboard metrics and the activity feed.

from flask import Blueprint, current_app

from ..extensions import db
from ..services.dashboard_service import DashboardService

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


def _service() -> DashboardService:
    return DashboardService(
        db.session,
        new_customer_window_days=current_app.config.get("NEW_CUSTOMER_WINDOW_DAYS", 7),
    )


@dashboard_bp.get("/metrics")
def metrics_route():
    return _service().metrics(), 200


@dashboard_bp.get("/activity")
def activity_route():
    return _service().recent_activity(), 200
