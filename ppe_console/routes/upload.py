"""Upload API routes for ppe_console"""

import json
import threading
import time
from collections import deque
from collections.abc import Generator, Sequence
from typing import Any

from flask import Blueprint, Response, jsonify, request
from werkzeug.datastructures import FileStorage

from ppe_console.services.upload_manager import (
    CandidateFile,
    FilesRejectedError,
    NoFilesStagedError,
    SessionState,
    UploadInProgressError,
    UploadSession,
    get_upload_manager,
)

upload_bp = Blueprint("upload", __name__)


def _get_session_or_404(session_id: str) -> UploadSession | tuple[Response, int]:
    session = get_upload_manager().get_session(session_id)
    if session is None:
        return jsonify({"error": "Upload session not found"}), 404
    return session


def pair_uploads(
    uploaded_files: Sequence[FileStorage], last_modified: Sequence[str]
) -> list[tuple[FileStorage, int]]:
    """Pair each file part with the "last_modified" value sent at the same position.

    Parts without a filename are dropped after pairing so the values of the
    files that follow them stay aligned.
    """
    pairs = []
    for index, uploaded in enumerate(uploaded_files):
        if not uploaded.filename:
            continue
        try:
            modified = int(last_modified[index])
        except (IndexError, ValueError):
            modified = 0
        pairs.append((uploaded, modified))
    return pairs


def _candidates_from_request() -> list[CandidateFile]:
    """Build candidates from multipart "files" with aligned "last_modified" values."""
    return [
        CandidateFile(
            name=uploaded.filename or "",
            media_type=uploaded.mimetype or "",
            payload=uploaded.read(),
            last_modified=modified,
        )
        for uploaded, modified in pair_uploads(
            request.files.getlist("files"), request.form.getlist("last_modified")
        )
    ]


@upload_bp.route("/sessions", methods=["POST"])
def create_session() -> tuple[Response, int]:
    """Open a new upload session."""
    session = get_upload_manager().create_session()
    return jsonify(session.to_dict()), 201


@upload_bp.route("/sessions/<session_id>", methods=["GET"])
def get_status(session_id: str) -> tuple[Response, int]:
    """Get current state of a session (non-streaming)."""
    session = _get_session_or_404(session_id)
    if not isinstance(session, UploadSession):
        return session
    return jsonify(session.to_dict()), 200


@upload_bp.route("/sessions/<session_id>", methods=["DELETE"])
def discard_session(session_id: str) -> tuple[Response, int]:
    """Discard a session; a pending upload result will be ignored."""
    if not get_upload_manager().discard_session(session_id):
        return jsonify({"error": "Upload session not found"}), 404
    return jsonify({"session_id": session_id, "discarded": True}), 200


@upload_bp.route("/sessions/<session_id>/files", methods=["POST"])
def stage_files(session_id: str) -> tuple[Response, int]:
    """Stage selected files.

    Accepts multipart/form-data with repeated "files" parts and an optional
    "last_modified" value per file (epoch milliseconds, same order).

    Returns:
        JSON with the staged entries, or 400 with every rejection reason
    """
    session = _get_session_or_404(session_id)
    if not isinstance(session, UploadSession):
        return session

    candidates = _candidates_from_request()
    if not candidates:
        return jsonify({"error": "No files provided"}), 400

    try:
        staged = session.stage(candidates)
    except FilesRejectedError as e:
        return jsonify({"error": str(e), "reasons": e.reasons}), 400
    except UploadInProgressError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify(
        {"staged": [s.to_dict() for s in staged], "session": session.to_dict()}
    ), 200


@upload_bp.route("/sessions/<session_id>/files/<path:key>", methods=["DELETE"])
def remove_file(session_id: str, key: str) -> tuple[Response, int]:
    """Remove one staged file by key."""
    session = _get_session_or_404(session_id)
    if not isinstance(session, UploadSession):
        return session
    try:
        removed = session.remove(key)
    except UploadInProgressError as e:
        return jsonify({"error": str(e)}), 409
    if not removed:
        return jsonify({"error": "File not found"}), 404
    return jsonify(session.to_dict()), 200


@upload_bp.route("/sessions/<session_id>/files", methods=["DELETE"])
def clear_files(session_id: str) -> tuple[Response, int]:
    """Remove all staged files."""
    session = _get_session_or_404(session_id)
    if not isinstance(session, UploadSession):
        return session
    try:
        session.clear()
    except UploadInProgressError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify(session.to_dict()), 200


@upload_bp.route("/sessions/<session_id>/commit", methods=["POST"])
def commit(session_id: str) -> tuple[Response, int]:
    """Start uploading the staged files.

    The session is claimed before this returns, so a second commit gets 409.
    Progress and the final result arrive via SSE on
    /api/upload/sessions/<session_id>/progress.
    """
    session = _get_session_or_404(session_id)
    if not isinstance(session, UploadSession):
        return session

    try:
        included = session.begin_commit()
    except NoFilesStagedError as e:
        return jsonify({"error": str(e)}), 400
    except UploadInProgressError as e:
        return jsonify({"error": str(e)}), 409

    thread = threading.Thread(target=session.send, args=(included,), daemon=True)
    thread.start()

    return jsonify({"session_id": session_id, "status": "uploading"}), 202


@upload_bp.route("/sessions/<session_id>/progress", methods=["GET"])
def get_progress(session_id: str) -> Response | tuple[Response, int]:
    """Stream progress updates for a session via Server-Sent Events.

    The stream ends once the session has settled, including when it had
    already settled before the stream was opened.
    """
    session = _get_session_or_404(session_id)
    if not isinstance(session, UploadSession):
        return session

    def generate() -> Generator[str, None, None]:
        queue: deque[dict[str, Any]] = deque()
        unsubscribe = session.subscribe(queue.append)

        try:
            yield f"data: {json.dumps(session.to_dict())}\n\n"

            while True:
                while queue:
                    data = queue.popleft()
                    yield f"data: {json.dumps(data)}\n\n"
                    if data.get("type") == "settled":
                        return

                if session.state == SessionState.SETTLED:
                    yield f"data: {json.dumps(session.settled_event())}\n\n"
                    return

                time.sleep(0.1)

                if get_upload_manager().get_session(session_id) is None:
                    yield 'data: {"error": "Upload session not found"}\n\n'
                    return
        finally:
            unsubscribe()

    return Response(
        generate(),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
