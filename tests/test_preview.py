"""Tests for preview generation."""

import base64
from unittest.mock import MagicMock

from ppe_console.services.preview import PreviewGenerator, to_data_url
from ppe_console.services.upload_manager import UploadSession
from tests.conftest import make_candidate


class TestToDataUrl:
    """Tests for to_data_url."""

    def test_encodes_payload(self) -> None:
        """Test the data URL format."""
        url = to_data_url(b"abc", "image/png")
        assert url == "data:image/png;base64," + base64.b64encode(b"abc").decode()


class TestPreviewGenerator:
    """Tests for PreviewGenerator."""

    def test_generate_calls_back_with_data_url(self) -> None:
        """Test that a successful read delivers the data URL."""
        generator = PreviewGenerator()
        received: list[str] = []

        future = generator.generate(lambda: b"\x01\x02", "image/jpeg", received.append)

        assert future.result(timeout=5) == "data:image/jpeg;base64,AQI="
        assert received == ["data:image/jpeg;base64,AQI="]
        generator.shutdown()

    def test_failed_read_leaves_preview_empty(self) -> None:
        """Test that a read error resolves to None and never calls back."""
        generator = PreviewGenerator()
        on_ready = MagicMock()

        def failing_read() -> bytes:
            raise OSError("unreadable")

        future = generator.generate(failing_read, "image/jpeg", on_ready)

        assert future.result(timeout=5) is None
        on_ready.assert_not_called()
        generator.shutdown()


class TestSessionPreviews:
    """Tests for preview attachment in an upload session."""

    def test_preview_attached_after_staging(self, fake_api: MagicMock) -> None:
        """Test that staging returns immediately and the preview fills in later."""
        generator = PreviewGenerator()
        session = UploadSession("s", fake_api, previews=generator)

        staged = session.stage([make_candidate("a.jpg", size=3)])
        generator.shutdown(wait=True)

        current = session.get_file(staged[0].key)
        assert current is not None
        assert current.preview == to_data_url(b"\xff" * 3, "image/jpeg")

    def test_preview_for_removed_file_is_dropped(self, fake_api: MagicMock) -> None:
        """Test that a late preview for a removed file does not resurrect it."""
        previews = MagicMock()
        session = UploadSession("s", fake_api, previews=previews)

        staged = session.stage([make_candidate("a.jpg")])
        on_ready = previews.generate.call_args.args[2]
        session.remove(staged[0].key)
        on_ready("data:image/jpeg;base64,AA==")

        assert session.files == []
