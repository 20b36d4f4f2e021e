"""
Content checksums for change detection.

Two flavours of SHA-256 are used across the cache:

- **File checksum** (``sha256_file``): hash of the exact bytes on disk.
  Analytics gating compares this against the ``sourceSnapshotChecksum``
  stored in the previous artifact, so a single changed byte in a snapshot
  triggers recomputation for that unit only.
- **Payload checksum** (``checksum_payload``): hash of a canonical JSON
  rendering (sorted keys, compact separators). Used for the ``checksum``
  field of analytics artifacts so the value does not depend on indentation.

Examples:
    >>> sha256_bytes(b"abc")[:8]
    'ba7816bf'
    >>> checksum_payload({"b": 1, "a": 2}) == checksum_payload({"a": 2, "b": 1})
    True
"""

import hashlib
import json
from pathlib import Path
from typing import Any

_CHUNK_SIZE = 64 * 1024


def sha256_bytes(data: bytes) -> str:
    """Hex SHA-256 of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def sha256_text(text: str) -> str:
    """Hex SHA-256 of UTF-8 encoded text."""
    return sha256_bytes(text.encode("utf-8"))


def sha256_file(path: str | Path) -> str:
    """Hex SHA-256 of a file's bytes, streamed in chunks."""
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def checksum_payload(payload: Any) -> str:
    """Hex SHA-256 of the canonical JSON form of ``payload``."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return sha256_text(canonical)


__all__ = ["sha256_bytes", "sha256_text", "sha256_file", "checksum_payload"]
