"""
Atomic file storage for the cache directory (SYNC-ONLY).

Every writer in perfspine (snapshots, run metadata, manifests, the latest
pointer, analytics artifacts, time-series partitions, the raw CSV cache)
goes through :func:`write_bytes_atomic`, so a reader never observes a
partially written file:

    ┌──────────────────────────────────────────────────────────────┐
    │ 1. write bytes to  {dir}/.{name}.tmp.{pid}.{random}          │
    │ 2. flush + fsync the temp file                               │
    │ 3. os.replace(temp, target)     <- atomic on POSIX & Windows │
    │ 4. on any failure: unlink temp, raise StorageError           │
    └──────────────────────────────────────────────────────────────┘

The temp file lives in the target's directory so the rename never crosses
a filesystem boundary. Concurrent writers from separate processes are not
coordinated; the cache assumes one writer at a time.

Examples:
    >>> write_json_atomic(tmp_path / "a" / "b.json", {"ok": True})
    >>> read_json(tmp_path / "a" / "b.json")
    {'ok': True}
    >>> read_json(tmp_path / "missing.json") is None
    True
"""

from __future__ import annotations

import json
import os
import uuid
from pathlib import Path
from typing import Any

from perfspine.core.errors import ParseError, StorageError


def _temp_path_for(target: Path) -> Path:
    return target.parent / f".{target.name}.tmp.{os.getpid()}.{uuid.uuid4().hex[:8]}"


def write_bytes_atomic(path: str | Path, data: bytes) -> Path:
    """Write ``data`` to ``path`` via temp file + rename.

    Parent directories are created as needed.

    Returns:
        The target path.

    Raises:
        StorageError: If the write or rename fails. No temp file is left behind.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    temp = _temp_path_for(target)
    try:
        with open(temp, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(temp, target)
    except OSError as e:
        temp.unlink(missing_ok=True)
        raise StorageError(f"Atomic write failed for {target}: {e}", cause=e).with_context(
            path=str(target)
        ) from e
    return target


def write_text_atomic(path: str | Path, text: str) -> Path:
    """Write UTF-8 text atomically."""
    return write_bytes_atomic(path, text.encode("utf-8"))


def dump_json(payload: Any) -> str:
    """Render JSON the way every cache file is rendered (2-space indent, trailing newline)."""
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def write_json_atomic(path: str | Path, payload: Any) -> Path:
    """Serialize ``payload`` as JSON and write it atomically."""
    return write_text_atomic(path, dump_json(payload))


def read_json(path: str | Path) -> Any | None:
    """Read a JSON file.

    Returns:
        The decoded payload, or ``None`` if the file does not exist.

    Raises:
        ParseError: If the file exists but is not valid JSON.
    """
    target = Path(path)
    try:
        text = target.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON in {target}: {e}", cause=e).with_context(
            path=str(target)
        ) from e


__all__ = [
    "write_bytes_atomic",
    "write_text_atomic",
    "write_json_atomic",
    "dump_json",
    "read_json",
]
