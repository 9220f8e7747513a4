"""Settings API routes for ppe_console"""

from flask import Blueprint, Response, jsonify, request

from ppe_console.config import get_package_version, get_settings
from ppe_console.services.api_client import reset_api_client
from ppe_console.services.log_service import get_log_service

settings_bp = Blueprint("settings", __name__)

ALLOWED_KEYS = {
    "api_base_url",
    "request_timeout",
    "timezone",
    "log_directory",
    "download_directory",
    "history_page_size",
    "analytics_page_size",
    "fetch_safety_bound",
    "recent_activity_limit",
    "redirect_delays_enabled",
    "session_max_age_seconds",
    "display_name",
}


@settings_bp.route("", methods=["GET"])
def get_all_settings() -> tuple[Response, int]:
    """Get all current settings."""
    settings = get_settings()
    return jsonify(settings.all()), 200


@settings_bp.route("", methods=["PUT"])
def update_settings() -> tuple[Response, int]:
    """Update settings.

    Request body:
        JSON object with settings to update

    Returns:
        JSON response with updated settings
    """
    if not request.is_json:
        return jsonify({"error": "JSON body required"}), 400

    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "Empty body"}), 400

    filtered_data = {k: v for k, v in data.items() if k in ALLOWED_KEYS}
    if not filtered_data:
        return jsonify({"error": "No valid settings provided"}), 400

    settings = get_settings()
    settings.update(filtered_data)

    if {"api_base_url", "request_timeout"} & filtered_data.keys():
        reset_api_client()

    get_log_service().info(
        "settings",
        "settings_updated",
        f"Updated settings: {', '.join(filtered_data.keys())}",
        {"changed_keys": list(filtered_data.keys())},
    )

    return jsonify(settings.all()), 200


@settings_bp.route("/version", methods=["GET"])
def get_version() -> tuple[Response, int]:
    """Get the console version."""
    return jsonify({"version": get_package_version()}), 200
