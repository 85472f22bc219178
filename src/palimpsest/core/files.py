from __future__ import annotations

import os
import tempfile
from pathlib import Path


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def make_read_only(path: Path) -> None:
    current_mode = path.stat().st_mode
    # Strip write permissions for user/group/other.
    path.chmod(current_mode & ~0o222)


def write_bytes_atomic(dst: Path, data: bytes) -> None:
    """Write ``data`` to ``dst`` so readers see either nothing or the whole file.

    The bytes land in a uniquely named hidden temp file next to ``dst`` and are
    published with a single ``os.replace``. On any failure the temp file is
    removed and the exception propagates.
    """
    ensure_directory(dst.parent)
    fd, temp_name = tempfile.mkstemp(prefix=f".{dst.name}.", suffix=".tmp", dir=dst.parent)
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, dst)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise
