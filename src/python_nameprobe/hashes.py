"""Fabricated content hashes for probe uploads."""

import hashlib
import time
import uuid

# Declared size of every probe; the bytes are never sent.
PROBE_FILE_SIZE = 5


def fabricate_hash() -> str:
    """Return a fresh 40-char lowercase SHA-1 hex digest no server has seen.

    The digest covers a random UUID4 plus a nanosecond timestamp, so two calls never
    produce the same value and the provider cannot match it against stored content.
    """
    seed = uuid.uuid4().bytes + time.time_ns().to_bytes(8, 'big')
    return hashlib.sha1(seed).hexdigest()
