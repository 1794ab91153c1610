"""Deterministic content hashing for change detection."""

import hashlib
from typing import Optional


PREFIX = "sha256:"


def compute(content: Optional[str]) -> Optional[str]:
    """Compute the checksum of a piece of content.

    Args:
        content: Text to hash.

    Returns:
        "sha256:<hex>" digest, or None for empty/absent content.
    """
    if not content:
        return None
    return PREFIX + hashlib.sha256(content.encode("utf-8")).hexdigest()


def matches(stored_checksum: Optional[str], content: Optional[str]) -> bool:
    """Check whether content still hashes to a stored checksum."""
    if stored_checksum is None or content is None:
        return False
    return compute(content) == stored_checksum
