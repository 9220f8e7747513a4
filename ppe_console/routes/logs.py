"""Logs API routes for ppe_console"""

from flask import Blueprint, Response, jsonify, request

from ppe_console.services.log_service import get_log_service

logs_bp = Blueprint("logs", __name__)


@logs_bp.route("/entries", methods=["GET"])
def get_log_entries() -> tuple[Response, int]:
    """Query log entries with filtering and pagination.

    Query params:
        date: Filter by date (YYYY-MM-DD)
        level: Filter by level (INFO/WARNING/ERROR)
        category: Filter by category (upload/fetch/analytics/history/auth/settings/app)
        event: Filter by event name (e.g. upload_settled)
        session_id: Only events of one upload session
        search: Full-text search in message and event
        offset: Pagination offset (default 0)
        limit: Pagination limit (default 100)

    Returns:
        JSON with entries, total, offset, limit
    """
    try:
        offset_int = max(0, int(request.args.get("offset", "0")))
        limit_int = max(1, min(1000, int(request.args.get("limit", "100"))))
    except ValueError:
        offset_int = 0
        limit_int = 100

    result = get_log_service().read_log_entries(
        date=request.args.get("date"),
        level=request.args.get("level"),
        category=request.args.get("category"),
        event=request.args.get("event"),
        session_id=request.args.get("session_id"),
        search=request.args.get("search"),
        offset=offset_int,
        limit=limit_int,
    )
    return jsonify(result), 200


@logs_bp.route("/stats", methods=["GET"])
def get_log_stats() -> tuple[Response, int]:
    """Get aggregate log statistics."""
    return jsonify(get_log_service().get_log_stats()), 200
