"""Pytest configuration and fixtures for the ppe_console tests."""

import json
import os
import tempfile
from collections.abc import Generator
from typing import Any
from unittest.mock import MagicMock

# Keep event logs out of the working tree; must happen before settings load
os.environ.setdefault("PPE_LOG_DIRECTORY", tempfile.mkdtemp(prefix="ppe_console_logs_"))

import pytest  # noqa: E402
import requests  # noqa: E402
from flask import Flask  # noqa: E402
from flask.testing import FlaskClient  # noqa: E402

from ppe_console import create_app  # noqa: E402
from ppe_console.services.api_client import PPEApiClient  # noqa: E402
from ppe_console.services.upload_manager import (  # noqa: E402
    CandidateFile,
    UploadManager,
    UploadSession,
)


@pytest.fixture
def app() -> Generator[Flask, None, None]:
    """Create application for testing."""
    app = create_app()
    app.config["TESTING"] = True
    yield app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    """Create test client."""
    return app.test_client()


@pytest.fixture
def fake_api() -> MagicMock:
    """API client double with the real client's interface."""
    api = MagicMock(spec=PPEApiClient)
    api.image_file_url.side_effect = lambda image_id: f"http://api.test/images/{image_id}/file"
    return api


@pytest.fixture
def session(fake_api: MagicMock) -> UploadSession:
    """Upload session without preview generation or display delays."""
    return UploadSession("session-1", fake_api, previews=None, redirect_delays=True)


@pytest.fixture
def manager(fake_api: MagicMock) -> UploadManager:
    """Upload manager wired to the fake API."""
    return UploadManager(api=fake_api, previews=MagicMock())


def make_candidate(
    name: str = "site.jpg",
    media_type: str = "image/jpeg",
    size: int = 1024,
    last_modified: int = 1_704_456_000_000,
) -> CandidateFile:
    """Build a candidate file with a payload of the given size."""
    return CandidateFile(
        name=name,
        media_type=media_type,
        payload=b"\xff" * size,
        last_modified=last_modified,
    )


def make_response(status_code: int = 200, body: Any = None) -> requests.Response:
    """Build a requests.Response carrying a JSON body."""
    response = requests.Response()
    response.status_code = status_code
    if isinstance(body, bytes):
        response._content = body
    else:
        response._content = json.dumps(body if body is not None else {}).encode()
        response.headers["Content-Type"] = "application/json"
    return response


def make_image(
    image_id: str,
    labels: list[str] | None = None,
    created_at: str = "2024-01-05T12:00:00.000Z",
) -> dict[str, Any]:
    """Build an image item as GET /images returns it."""
    return {
        "_id": image_id,
        "originalName": f"{image_id}.jpg",
        "createdAt": created_at,
        "size": 2048,
        "processed": True,
        "detections": [
            {
                "label": label,
                "confidence": 0.9,
                "bbox": {"x": 0.1, "y": 0.1, "width": 0.2, "height": 0.3},
            }
            for label in (labels or [])
        ],
    }
