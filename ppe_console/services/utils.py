"""Shared utility functions for console services."""


def format_file_size(size_bytes: int) -> str:
    """Format a file size in bytes to a human-readable string.

    Args:
        size_bytes: Size in bytes

    Returns:
        Human-readable size string (e.g., "1.5 MB")
    """
    size_float = float(size_bytes)
    for unit in ["B", "KB", "MB", "GB"]:
        if abs(size_float) < 1024.0:
            return f"{size_float:.1f} {unit}"
        size_float = size_float / 1024.0
    return f"{size_float:.1f} TB"


def media_subtype(media_type: str) -> str:
    """Short display form of a media type ("image/webp" -> "WEBP")."""
    _, _, subtype = media_type.partition("/")
    return (subtype or media_type).upper()
