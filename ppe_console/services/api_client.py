"""HTTP client for the PPE detection API."""

import logging
from collections.abc import Callable, Iterator, Sequence
from typing import Any

import requests
from urllib3 import encode_multipart_formdata

from ppe_console.config import get_settings
from ppe_console.services.auth_session import AuthSession, get_auth_session

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 64 * 1024

# (filename, payload, media_type)
FilePart = tuple[str, bytes, str]


class ApiError(Exception):
    """A failed call to the detection API.

    status_code is None when no HTTP response was received.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        server_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.server_message = server_message

    def user_message(self, default: str) -> str:
        """Message to show a user: the server's own message when it sent one."""
        return self.server_message or default


class _ProgressBody:
    """File-like request body that reports how much of it has been sent."""

    def __init__(
        self, body: bytes, callback: Callable[[int], None] | None = None
    ) -> None:
        self._body = body
        self._position = 0
        self._last_percent = -1
        self._callback = callback

    def __len__(self) -> int:
        return len(self._body)

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self.read(UPLOAD_CHUNK_SIZE)
            if not chunk:
                return
            yield chunk

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            size = len(self._body) - self._position
        chunk = self._body[self._position : self._position + size]
        self._position += len(chunk)
        self._report()
        return chunk

    def _report(self) -> None:
        if not self._callback or not self._body:
            return
        percent = round(self._position * 100 / len(self._body))
        if percent != self._last_percent:
            self._last_percent = percent
            self._callback(percent)


def _server_message(response: requests.Response) -> str | None:
    """Pull error.message (or a string error) out of an error response body."""
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        return str(message) if message else None
    if isinstance(error, str) and error:
        return error
    return None


class PPEApiClient:
    """Thin wrapper over the detection API endpoints."""

    def __init__(
        self,
        base_url: str,
        auth: AuthSession,
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.auth = auth
        self.timeout = timeout
        self.http = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        """Send a request and raise ApiError for transport or HTTP failures."""
        headers = dict(kwargs.pop("headers", None) or {})
        headers.update(self.auth.auth_headers())
        url = f"{self.base_url}{path}"

        try:
            response = self.http.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.debug("Request %s %s failed", method, url, exc_info=True)
            raise ApiError(f"Network error: {e}") from e

        if response.status_code == 401:
            # Stored token is no longer accepted
            self.auth.clear()

        if not response.ok:
            server_message = _server_message(response)
            raise ApiError(
                f"{method} {path} failed with status {response.status_code}",
                status_code=response.status_code,
                server_message=server_message,
            )
        return response

    def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self._request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                f"{method} {path} returned a non-JSON body",
                status_code=response.status_code,
            ) from e

    # Auth endpoints

    def login(self, email: str, password: str) -> dict[str, Any]:
        return dict(self._json("POST", "/auth/login", json={"email": email, "password": password}))

    def register(self, name: str, email: str, password: str) -> dict[str, Any]:
        return dict(
            self._json(
                "POST",
                "/auth/register",
                json={"name": name, "email": email, "password": password},
            )
        )

    def get_profile(self) -> dict[str, Any]:
        return dict(self._json("GET", "/auth/profile"))

    # Image endpoints

    def upload_images(
        self,
        files: Sequence[FilePart],
        idempotency_key: str | None = None,
        progress_callback: Callable[[int], None] | None = None,
    ) -> dict[str, Any]:
        """Upload one or more images in a single multipart request.

        A single file goes in the "image" field, several go in repeated
        "images" fields. The transport only knows the progress of the
        request body as a whole.

        Args:
            files: (filename, payload, media_type) tuples
            idempotency_key: Sent as the Idempotency-Key header when given
            progress_callback: Called with 0-100 as the body is sent

        Returns:
            Parsed JSON response
        """
        if not files:
            raise ValueError("No files to upload")

        field = "image" if len(files) == 1 else "images"
        fields = [(field, (name, payload, media_type)) for name, payload, media_type in files]
        body, content_type = encode_multipart_formdata(fields)

        headers = {"Content-Type": content_type}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        data = self._json(
            "POST",
            "/images",
            data=_ProgressBody(body, progress_callback),
            headers=headers,
        )
        if not isinstance(data, dict):
            raise ApiError("POST /images returned an unexpected body")
        return data

    def get_images(self, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """GET /images with limit/offset/label/from/to query parameters."""
        clean = {k: v for k, v in (params or {}).items() if v not in (None, "")}
        data = self._json("GET", "/images", params=clean)
        return data if isinstance(data, dict) else {}

    def get_image(self, image_id: str) -> dict[str, Any]:
        return dict(self._json("GET", f"/images/{image_id}"))

    def delete_image(self, image_id: str) -> None:
        self._request("DELETE", f"/images/{image_id}")

    def get_image_file(self, image_id: str) -> bytes:
        """Download the original image bytes."""
        return self._request("GET", f"/images/{image_id}/file").content

    def get_labels(self) -> list[str]:
        data = self._json("GET", "/labels")
        labels = data.get("labels") if isinstance(data, dict) else None
        return [str(label) for label in labels] if isinstance(labels, list) else []

    def image_file_url(self, image_id: str) -> str:
        return f"{self.base_url}/images/{image_id}/file"


_api_client: PPEApiClient | None = None


def get_api_client() -> PPEApiClient:
    """Get the shared API client built from settings."""
    global _api_client
    if _api_client is None:
        settings = get_settings()
        _api_client = PPEApiClient(
            settings.api_base_url,
            get_auth_session(),
            timeout=settings.request_timeout,
        )
    return _api_client


def reset_api_client() -> None:
    """Drop the shared client so the next call picks up changed settings."""
    global _api_client
    _api_client = None
