"""Client-side acceptance checks for candidate image files.

Only the declared media type and byte size are inspected. No content
sniffing happens here; the detection API re-validates every upload.
"""

from collections.abc import Iterable
from typing import Protocol

ALLOWED_MEDIA_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"})
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB

INVALID_TYPE_MESSAGE = "Please select valid image files (JPEG, PNG, or WebP)"
TOO_LARGE_MESSAGE = "File size must be less than 10MB"


class Candidate(Protocol):
    """Anything carrying a file's declared metadata."""

    name: str
    media_type: str

    @property
    def size(self) -> int: ...


def validate_file(media_type: str, size: int) -> str | None:
    """Classify a candidate file.

    Args:
        media_type: Declared media type, e.g. "image/png"
        size: Size in bytes

    Returns:
        None if the file is accepted, otherwise the rejection reason
    """
    if (media_type or "").lower() not in ALLOWED_MEDIA_TYPES:
        return INVALID_TYPE_MESSAGE
    if size > MAX_FILE_SIZE:
        return TOO_LARGE_MESSAGE
    return None


def validate_files(candidates: Iterable[Candidate]) -> list[str]:
    """Validate a batch and return one "<name>: <reason>" line per rejected file."""
    reasons: list[str] = []
    for candidate in candidates:
        reason = validate_file(candidate.media_type, candidate.size)
        if reason:
            reasons.append(f"{candidate.name}: {reason}")
    return reasons
