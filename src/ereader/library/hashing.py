"""Content digests over raw file bytes, the sole source of book identity."""

from __future__ import annotations

import hashlib

DIGEST_LENGTH = 64  # hex characters


def content_digest(data: bytes) -> str:
    """Return the SHA-256 hex digest of the literal archive bytes.

    Never hash a decoded or re-serialized form of the file: two copies of
    the same EPUB must hash identically however they are parsed later.
    """
    return hashlib.sha256(data).hexdigest()
