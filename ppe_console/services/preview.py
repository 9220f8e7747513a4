"""Preview generation for staged images."""

import base64
import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor

logger = logging.getLogger(__name__)


def to_data_url(payload: bytes, media_type: str) -> str:
    """Encode raw bytes as a data URL."""
    encoded = base64.b64encode(payload).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


class PreviewGenerator:
    """Builds data-URL previews on a small thread pool.

    Each file gets its own read; reads are unordered relative to each other
    and to uploads. A failed read leaves the preview unset and is not retried.
    """

    def __init__(self, max_workers: int = 2) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="preview"
        )

    def generate(
        self,
        read: Callable[[], bytes],
        media_type: str,
        on_ready: Callable[[str], None],
    ) -> Future[str | None]:
        """Schedule a preview read.

        Args:
            read: Returns the file's bytes
            media_type: Declared media type used in the data URL
            on_ready: Receives the data URL once the read completes

        Returns:
            Future resolving to the data URL, or None if the read failed
        """

        def task() -> str | None:
            try:
                data_url = to_data_url(read(), media_type)
            except Exception:
                logger.debug("Preview read failed", exc_info=True)
                return None
            on_ready(data_url)
            return data_url

        return self._executor.submit(task)

    def shutdown(self, wait: bool = False) -> None:
        """Stop accepting work. Without wait, reads still queued are dropped."""
        self._executor.shutdown(wait=wait, cancel_futures=not wait)


_preview_generator: PreviewGenerator | None = None


def get_preview_generator() -> PreviewGenerator:
    """Get the shared PreviewGenerator instance."""
    global _preview_generator
    if _preview_generator is None:
        _preview_generator = PreviewGenerator()
    return _preview_generator
