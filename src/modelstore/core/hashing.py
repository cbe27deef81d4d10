"""
Deterministic hashing for cache keys.

Query memos and statement-cache entries are keyed by a stable signature of
their arguments.  ``compute_hash`` gives the same digest for the same values
across processes, so memos survive in a shared Redis cache.

Examples:
    >>> compute_hash("list", "Artist", "a1", "a2") == compute_hash("list", "Artist", "a1", "a2")
    True
    >>> len(compute_hash("filter", "Artist", length=16))
    16

Tags:
    hashing, cache-keys, modelstore
"""

import hashlib


def compute_hash(*values, length: int = 32) -> str:
    """
    Compute a deterministic hash over ``|``-joined values.

    Args:
        *values: Values to hash (converted to strings)
        length: Hex digest length (default 32 = 128 bits)

    Returns:
        Hex string of specified length
    """
    content = "|".join(str(v) for v in values)
    return hashlib.sha256(content.encode()).hexdigest()[:length]


__all__ = [
    "compute_hash",
]
