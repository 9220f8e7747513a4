"""Result view helpers: image URLs and downloads."""

import re
from pathlib import Path
from typing import Any, Protocol

import requests

from ppe_console.services.api_client import PPEApiClient


class DownloadSink(Protocol):
    """Somewhere a downloaded image ends up."""

    def save_url(self, url: str, filename: str) -> str: ...

    def save_bytes(self, data: bytes, filename: str) -> str: ...


def _safe_filename(filename: str) -> str:
    name = Path(filename).name
    return re.sub(r"[^\w.\- ]", "_", name) or "image"


class DirectoryDownloadSink:
    """Writes downloads into a local directory."""

    def __init__(self, directory: Path, timeout: float = 60.0) -> None:
        self.directory = directory
        self.timeout = timeout

    def save_bytes(self, data: bytes, filename: str) -> str:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / _safe_filename(filename)
        path.write_bytes(data)
        return str(path)

    def save_url(self, url: str, filename: str) -> str:
        response = requests.get(url, timeout=self.timeout)
        response.raise_for_status()
        return self.save_bytes(response.content, filename)


def image_file_url(image: dict[str, Any], api: PPEApiClient) -> str:
    return api.image_file_url(str(image.get("_id") or image.get("id") or ""))


def direct_image_url(image: dict[str, Any], api: PPEApiClient) -> str:
    """Original image URL, falling back to the API file endpoint."""
    return str(image.get("originalImageUrl") or image_file_url(image, api))


def annotated_image_url(image: dict[str, Any], api: PPEApiClient) -> str:
    """Annotated image URL, then the original, then the API file endpoint."""
    return str(
        image.get("annotatedImageUrl")
        or image.get("originalImageUrl")
        or image_file_url(image, api)
    )


def download_image(image: dict[str, Any], api: PPEApiClient, sink: DownloadSink) -> str:
    """Save the annotated image if there is one, otherwise the original bytes.

    Returns:
        Whatever the sink reports as the saved location
    """
    original_name = str(image.get("originalName") or "image")
    annotated = image.get("annotatedImageUrl")
    if annotated:
        return sink.save_url(str(annotated), f"annotated-{original_name}")

    image_id = str(image.get("_id") or image.get("id") or "")
    return sink.save_bytes(api.get_image_file(image_id), original_name)
