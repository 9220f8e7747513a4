"""Idempotency keys derived from file identity."""


def derive_idempotency_key(name: str, size: int, last_modified: int) -> str:
    """Derive the identity key for a file.

    The key is built from metadata only (not a content hash), so two different
    files sharing name, size and modification time map to the same key.

    Args:
        name: Declared file name
        size: Size in bytes
        last_modified: Last-modified time in epoch milliseconds

    Returns:
        Key string, also sent as the Idempotency-Key header on single-file uploads
    """
    return f"{name}-{int(size)}-{int(last_modified)}"
