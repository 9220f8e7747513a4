"""Analytics API routes for ppe_console"""

from flask import Blueprint, Response, jsonify, request

from ppe_console.config import get_settings
from ppe_console.services.analytics_service import load_analytics
from ppe_console.services.api_client import get_api_client
from ppe_console.services.date_range import default_range, today_in_zone

analytics_bp = Blueprint("analytics", __name__)


@analytics_bp.route("", methods=["GET"])
def get_analytics() -> tuple[Response, int]:
    """Aggregate statistics for a local date range.

    Query params:
        from: YYYY-MM-DD (default 30 days ago; pass empty for unbounded)
        to: YYYY-MM-DD (default today in the configured zone; pass empty for unbounded)
    """
    try:
        default_from, default_to = default_range(today_in_zone(get_settings().timezone))
        date_from = request.args.get("from", default_from)
        date_to = request.args.get("to", default_to)
        report = load_analytics(get_api_client(), date_from, date_to)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    status = 502 if report.error else 200
    return jsonify(report.to_dict()), status
