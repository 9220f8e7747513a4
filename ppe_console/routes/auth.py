"""Auth API routes for ppe_console"""

from flask import Blueprint, Response, jsonify, request

from ppe_console.services.api_client import ApiError, get_api_client
from ppe_console.services.auth_session import get_auth_session
from ppe_console.services.log_service import get_log_service

auth_bp = Blueprint("auth", __name__)


def _store_credentials(data: dict[str, object]) -> tuple[Response, int]:
    token = data.get("token")
    if not isinstance(token, str) or not token:
        return jsonify({"success": False, "error": {"message": "No token returned"}}), 502
    user = data.get("user")
    get_auth_session().set_token(token, user if isinstance(user, dict) else None)
    return jsonify({"success": True, "user": user}), 200


@auth_bp.route("/login", methods=["POST"])
def login() -> tuple[Response, int]:
    """Sign in and persist the token."""
    data = request.get_json(silent=True) or {}
    try:
        result = get_api_client().login(data.get("email", ""), data.get("password", ""))
    except ApiError as e:
        get_log_service().warning(
            "auth", "login_failed", "Login failed", {"status_code": e.status_code}
        )
        return jsonify(
            {"success": False, "error": {"message": e.user_message("Login failed")}}
        ), 401 if e.status_code == 401 else 502

    get_log_service().info("auth", "login_succeeded", "Signed in")
    return _store_credentials(result)


@auth_bp.route("/register", methods=["POST"])
def register() -> tuple[Response, int]:
    """Create an account and persist the token."""
    data = request.get_json(silent=True) or {}
    try:
        result = get_api_client().register(
            data.get("name", ""), data.get("email", ""), data.get("password", "")
        )
    except ApiError as e:
        return jsonify(
            {"success": False, "error": {"message": e.user_message("Registration failed")}}
        ), 400 if e.status_code == 400 else 502

    get_log_service().info("auth", "registration_succeeded", "Registered new account")
    return _store_credentials(result)


@auth_bp.route("/logout", methods=["POST"])
def logout() -> tuple[Response, int]:
    """Forget the stored token."""
    get_auth_session().clear()
    get_log_service().info("auth", "logout", "Signed out")
    return jsonify({"success": True}), 200


@auth_bp.route("/profile", methods=["GET"])
def profile() -> tuple[Response, int]:
    """Verify the stored token by loading the profile."""
    session = get_auth_session()
    if not session.is_authenticated:
        return jsonify({"user": None}), 401
    try:
        data = get_api_client().get_profile()
    except ApiError as e:
        status = 401 if e.status_code == 401 else 502
        return jsonify({"user": None, "error": e.user_message("Could not load profile")}), status

    session.user = data.get("user") if isinstance(data.get("user"), dict) else None
    return jsonify({"user": session.user}), 200
