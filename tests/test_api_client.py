"""Tests for the detection API client."""

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
import requests

from ppe_console.services.api_client import ApiError, PPEApiClient, _ProgressBody
from ppe_console.services.auth_session import AuthSession
from tests.conftest import make_response


@pytest.fixture
def auth(tmp_path: Path) -> AuthSession:
    """Signed-in auth session backed by a temp token file."""
    session = AuthSession(tmp_path / "token")
    session.set_token("tok-123")
    return session


@pytest.fixture
def http() -> MagicMock:
    """Stand-in for requests.Session."""
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(auth: AuthSession, http: MagicMock) -> PPEApiClient:
    return PPEApiClient("http://api.test/api/", auth, timeout=5, session=http)


def _consume_body(response: requests.Response) -> Any:
    """Fake request that drains the streaming body like the transport does."""

    def request(method: str, url: str, **kwargs: Any) -> requests.Response:
        for _ in kwargs["data"]:
            pass
        return response

    return request


class TestProgressBody:
    """Tests for _ProgressBody."""

    def test_reports_until_complete(self) -> None:
        """Test that reading the whole body ends at 100 percent."""
        seen: list[int] = []
        body = _ProgressBody(b"x" * 200_000, seen.append)

        chunks = list(body)

        assert b"".join(chunks) == b"x" * 200_000
        assert len(body) == 200_000
        assert seen[-1] == 100
        assert seen == sorted(seen)
        assert len(seen) == len(set(seen))

    def test_no_callback(self) -> None:
        """Test that a body without a callback reads normally."""
        assert _ProgressBody(b"abc").read() == b"abc"


class TestRequest:
    """Tests for shared request handling."""

    def test_sends_bearer_token(self, client: PPEApiClient, http: MagicMock) -> None:
        """Test that the stored token is sent and the base URL is normalized."""
        http.request.return_value = make_response(200, {"user": {"name": "Ana"}})

        client.get_profile()

        args, kwargs = http.request.call_args
        assert args == ("GET", "http://api.test/api/auth/profile")
        assert kwargs["headers"]["Authorization"] == "Bearer tok-123"
        assert kwargs["timeout"] == 5

    def test_network_error(self, client: PPEApiClient, http: MagicMock) -> None:
        """Test that a transport failure becomes ApiError without a status."""
        http.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(ApiError) as excinfo:
            client.get_labels()

        assert excinfo.value.status_code is None
        assert "Network error" in str(excinfo.value)

    def test_unauthorized_clears_token(
        self, client: PPEApiClient, http: MagicMock, auth: AuthSession
    ) -> None:
        """Test that a 401 signs the console out."""
        http.request.return_value = make_response(401, {"error": {"message": "Token expired"}})

        with pytest.raises(ApiError) as excinfo:
            client.get_profile()

        assert excinfo.value.status_code == 401
        assert excinfo.value.server_message == "Token expired"
        assert auth.is_authenticated is False
        assert not auth.token_file.exists()

    @pytest.mark.parametrize(
        ("body", "expected"),
        [
            ({"error": {"message": "Bad file"}}, "Bad file"),
            ({"error": "Bad file"}, "Bad file"),
            ({"message": "nope"}, None),
            (b"<html>", None),
        ],
    )
    def test_server_message_extraction(
        self, client: PPEApiClient, http: MagicMock, body: Any, expected: str | None
    ) -> None:
        """Test that error.message or a string error is surfaced."""
        http.request.return_value = make_response(400, body)

        with pytest.raises(ApiError) as excinfo:
            client.get_image("abc")

        assert excinfo.value.server_message == expected
        assert excinfo.value.user_message("fallback") == (expected or "fallback")


class TestUploadImages:
    """Tests for upload_images."""

    def test_single_file_field_and_key(self, client: PPEApiClient, http: MagicMock) -> None:
        """Test a single upload uses the image field and the idempotency header."""
        http.request.side_effect = _consume_body(make_response(201, {"id": "img-1"}))
        progress: list[int] = []

        result = client.upload_images(
            [("a.jpg", b"\xff\xd8data", "image/jpeg")],
            idempotency_key="a.jpg-6-1",
            progress_callback=progress.append,
        )

        assert result == {"id": "img-1"}
        args, kwargs = http.request.call_args
        assert args == ("POST", "http://api.test/api/images")
        assert kwargs["headers"]["Idempotency-Key"] == "a.jpg-6-1"
        assert kwargs["headers"]["Content-Type"].startswith("multipart/form-data")
        body = kwargs["data"]._body
        assert b'name="image"; filename="a.jpg"' in body
        assert b"Content-Type: image/jpeg" in body
        assert progress[-1] == 100

    def test_batch_uses_images_field(self, client: PPEApiClient, http: MagicMock) -> None:
        """Test a batch repeats the images field and sends no idempotency header."""
        http.request.return_value = make_response(200, {"results": [], "errors": []})

        client.upload_images([("a.jpg", b"1", "image/jpeg"), ("b.png", b"2", "image/png")])

        kwargs = http.request.call_args.kwargs
        assert "Idempotency-Key" not in kwargs["headers"]
        body = kwargs["data"]._body
        assert body.count(b'name="images"') == 2
        assert b'name="image";' not in body

    def test_empty_upload_rejected(self, client: PPEApiClient) -> None:
        """Test that an empty file list is refused before any request."""
        with pytest.raises(ValueError):
            client.upload_images([])

    def test_non_object_response(self, client: PPEApiClient, http: MagicMock) -> None:
        """Test that a JSON array response is an ApiError."""
        http.request.return_value = make_response(200, [1, 2])

        with pytest.raises(ApiError):
            client.upload_images([("a.jpg", b"1", "image/jpeg")])


class TestReadEndpoints:
    """Tests for image and label reads."""

    def test_get_images_drops_empty_params(self, client: PPEApiClient, http: MagicMock) -> None:
        """Test that unset filters are not sent."""
        http.request.return_value = make_response(200, {"items": []})

        client.get_images({"limit": 8, "offset": 0, "label": "", "from": None})

        assert http.request.call_args.kwargs["params"] == {"limit": 8, "offset": 0}

    def test_get_labels(self, client: PPEApiClient, http: MagicMock) -> None:
        """Test that the labels list is unwrapped."""
        http.request.return_value = make_response(200, {"labels": ["helmet", "vest"]})
        assert client.get_labels() == ["helmet", "vest"]

    def test_get_labels_malformed(self, client: PPEApiClient, http: MagicMock) -> None:
        """Test that a body without a labels list yields no labels."""
        http.request.return_value = make_response(200, {"labels": "helmet"})
        assert client.get_labels() == []

    def test_get_image_file(self, client: PPEApiClient, http: MagicMock) -> None:
        """Test that the raw bytes are returned."""
        http.request.return_value = make_response(200, b"\x89PNG")
        assert client.get_image_file("abc") == b"\x89PNG"

    def test_image_file_url(self, client: PPEApiClient) -> None:
        assert client.image_file_url("abc") == "http://api.test/api/images/abc/file"
