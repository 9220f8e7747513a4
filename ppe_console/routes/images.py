"""Image history and result API routes for ppe_console"""

from flask import Blueprint, Response, jsonify, request

from ppe_console.config import get_settings
from ppe_console.services.api_client import ApiError, get_api_client
from ppe_console.services.history_service import load_history_page, load_labels
from ppe_console.services.log_service import get_log_service
from ppe_console.services.result_service import (
    DirectoryDownloadSink,
    annotated_image_url,
    direct_image_url,
    download_image,
)

images_bp = Blueprint("images", __name__)


def _api_error_response(e: ApiError, default: str) -> tuple[Response, int]:
    status = 404 if e.status_code == 404 else 502
    return jsonify({"error": e.user_message(default)}), status


@images_bp.route("", methods=["GET"])
def list_images() -> tuple[Response, int]:
    """One page of image history.

    Query params:
        page: 1-based page number (default 1)
        label: Filter by detection label
        from: Local calendar date YYYY-MM-DD
        to: Local calendar date YYYY-MM-DD
        limit: Page size (default from settings)
    """
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args["limit"]) if request.args.get("limit") else None
    except ValueError:
        return jsonify({"error": "page and limit must be integers"}), 400

    try:
        result = load_history_page(
            get_api_client(),
            page=page,
            label=request.args.get("label"),
            date_from=request.args.get("from"),
            date_to=request.args.get("to"),
            limit=limit,
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(result.to_dict()), 200


@images_bp.route("/labels", methods=["GET"])
def list_labels() -> tuple[Response, int]:
    """Known detection labels."""
    return jsonify({"labels": load_labels(get_api_client())}), 200


@images_bp.route("/<image_id>", methods=["GET"])
def get_image(image_id: str) -> tuple[Response, int]:
    """Image details with display URLs resolved."""
    api = get_api_client()
    try:
        image = api.get_image(image_id)
    except ApiError as e:
        return _api_error_response(e, "Failed to load image details")

    image["display_url"] = annotated_image_url(image, api)
    image["original_url"] = direct_image_url(image, api)
    return jsonify(image), 200


@images_bp.route("/<image_id>", methods=["DELETE"])
def delete_image(image_id: str) -> tuple[Response, int]:
    """Delete an image."""
    try:
        get_api_client().delete_image(image_id)
    except ApiError as e:
        return _api_error_response(e, "Failed to delete image")

    get_log_service().info(
        "history", "image_deleted", f"Deleted image {image_id}", {"image_id": image_id}
    )
    return jsonify({"id": image_id, "deleted": True}), 200


@images_bp.route("/<image_id>/file", methods=["GET"])
def get_image_file(image_id: str) -> Response | tuple[Response, int]:
    """Proxy the original image bytes."""
    try:
        data = get_api_client().get_image_file(image_id)
    except ApiError as e:
        return _api_error_response(e, "Failed to load image")
    return Response(data, mimetype="application/octet-stream")


@images_bp.route("/<image_id>/download", methods=["POST"])
def save_image(image_id: str) -> tuple[Response, int]:
    """Save the annotated (or original) image into the downloads directory."""
    settings = get_settings()
    api = get_api_client()
    try:
        image = api.get_image(image_id)
        path = download_image(
            image,
            api,
            DirectoryDownloadSink(settings.download_directory, timeout=settings.request_timeout),
        )
    except ApiError as e:
        return _api_error_response(e, "Failed to download image")
    except Exception as e:
        get_log_service().error(
            "history",
            "download_failed",
            f"Failed to download image {image_id}: {e}",
            {"image_id": image_id, "error": str(e)},
        )
        return jsonify({"error": "Failed to download image"}), 502

    return jsonify({"id": image_id, "path": path}), 200
