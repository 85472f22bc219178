from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from palimpsest.core.errors import NotFoundError, StorageFaultError
from palimpsest.core.files import ensure_directory, make_read_only, write_bytes_atomic


@dataclass(slots=True)
class StoredBlob:
    resource_id: str
    path: Path
    mtime: float


class ContentStore:
    """Immutable blob storage keyed by resource identifier.

    Blobs live at ``blobs/<id[:2]>/<id[2:4]>/<id><suffix>`` and are published by
    atomic rename, so a reader never observes a partially written blob.
    """

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = base_dir

    def ensure_layout(self) -> None:
        ensure_directory(self.base_dir)

    def relpath_for_id(self, resource_id: str, suffix: str = "") -> Path:
        shard_a = resource_id[:2]
        shard_b = resource_id[2:4]
        return Path(shard_a) / shard_b / f"{resource_id}{suffix}"

    def abspath_for_relpath(self, relpath: str | Path) -> Path:
        candidate = (self.base_dir / relpath).resolve()
        if not candidate.is_relative_to(self.base_dir.resolve()):
            raise StorageFaultError(f"Content path escapes the store: {relpath}")
        return candidate

    def put(self, resource_id: str, data: bytes, suffix: str = "") -> str:
        relpath = self.relpath_for_id(resource_id, suffix)
        dst = self.base_dir / relpath
        if dst.exists():
            raise StorageFaultError(f"Content already exists for resource: {resource_id}")
        try:
            self.ensure_layout()
            write_bytes_atomic(dst, data)
            make_read_only(dst)
        except OSError as exc:
            raise StorageFaultError(f"Unable to store content for {resource_id}: {exc}") from exc
        return relpath.as_posix()

    def get(self, resource_id: str, relpath: str | None = None) -> bytes:
        path = self._locate(resource_id, relpath)
        if path is None:
            raise NotFoundError(f"Content not found for resource: {resource_id}")
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            # Removed between lookup and read (e.g. by the sweeper).
            raise NotFoundError(f"Content not found for resource: {resource_id}") from exc
        except OSError as exc:
            raise StorageFaultError(f"Unable to read content for {resource_id}: {exc}") from exc

    def exists(self, resource_id: str, relpath: str | None = None) -> bool:
        return self._locate(resource_id, relpath) is not None

    def delete(self, resource_id: str, relpath: str | None = None) -> bool:
        path = self._locate(resource_id, relpath)
        if path is None:
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageFaultError(f"Unable to delete content for {resource_id}: {exc}") from exc
        return True

    def iter_blobs(self) -> Iterator[StoredBlob]:
        if not self.base_dir.exists():
            return
        for path in sorted(self.base_dir.glob("*/*/*")):
            if not path.is_file():
                continue
            name = path.name
            if name.startswith("."):
                # In-flight temp file from write_bytes_atomic.
                continue
            try:
                mtime = path.stat().st_mtime
            except FileNotFoundError:
                continue
            yield StoredBlob(resource_id=name.split(".", 1)[0], path=path, mtime=mtime)

    def iter_temp_files(self) -> Iterator[StoredBlob]:
        if not self.base_dir.exists():
            return
        for path in sorted(self.base_dir.glob("*/*/.*.tmp")):
            try:
                mtime = path.stat().st_mtime
            except FileNotFoundError:
                continue
            yield StoredBlob(resource_id=path.name.lstrip(".").split(".", 1)[0], path=path, mtime=mtime)

    def _locate(self, resource_id: str, relpath: str | None) -> Path | None:
        if relpath:
            path = self.abspath_for_relpath(relpath)
            return path if path.is_file() else None
        shard_dir = self.base_dir / self.relpath_for_id(resource_id).parent
        if not shard_dir.is_dir():
            return None
        for candidate in shard_dir.iterdir():
            if candidate.name.startswith("."):
                continue
            if candidate.name == resource_id or candidate.name.startswith(f"{resource_id}."):
                return candidate
        return None
