import os
import stat
from pathlib import Path

import pytest

from palimpsest.core.errors import NotFoundError, StorageFaultError
from palimpsest.infrastructure.archive.store import ContentStore


def test_relpath_uses_identifier_sharding() -> None:
    store = ContentStore(Path("/tmp/blobs"))
    rel = store.relpath_for_id("abcdef-1234", ".pdf")
    assert rel.as_posix() == "ab/cd/abcdef-1234.pdf"


def test_put_publishes_read_only_blob_without_temp_leftovers(tmp_path: Path) -> None:
    store = ContentStore(tmp_path / "blobs")

    relpath = store.put("abcdef-1234", b"%PDF-1.4 body", ".pdf")

    assert relpath == "ab/cd/abcdef-1234.pdf"
    path = tmp_path / "blobs" / relpath
    assert path.read_bytes() == b"%PDF-1.4 body"
    assert not (path.stat().st_mode & stat.S_IWUSR)
    assert list(path.parent.glob(".*")) == []
    assert list(store.iter_temp_files()) == []


def test_put_refuses_to_overwrite_existing_content(tmp_path: Path) -> None:
    store = ContentStore(tmp_path / "blobs")
    store.put("abcdef-1234", b"first", ".pdf")

    with pytest.raises(StorageFaultError):
        store.put("abcdef-1234", b"second", ".pdf")

    assert store.get("abcdef-1234") == b"first"


def test_get_locates_content_with_and_without_relpath(tmp_path: Path) -> None:
    store = ContentStore(tmp_path / "blobs")
    relpath = store.put("abcdef-1234", b"data", ".txt")

    assert store.get("abcdef-1234", relpath) == b"data"
    assert store.get("abcdef-1234") == b"data"
    assert store.exists("abcdef-1234") is True


def test_get_missing_content_raises_not_found(tmp_path: Path) -> None:
    store = ContentStore(tmp_path / "blobs")
    with pytest.raises(NotFoundError):
        store.get("missing-id")
    with pytest.raises(NotFoundError):
        store.get("missing-id", "mi/ss/missing-id.pdf")


def test_delete_is_idempotent(tmp_path: Path) -> None:
    store = ContentStore(tmp_path / "blobs")
    relpath = store.put("abcdef-1234", b"data", ".pdf")

    assert store.delete("abcdef-1234", relpath) is True
    assert store.delete("abcdef-1234", relpath) is False
    assert store.exists("abcdef-1234") is False


def test_relpath_outside_store_is_rejected(tmp_path: Path) -> None:
    store = ContentStore(tmp_path / "blobs")
    with pytest.raises(StorageFaultError):
        store.get("x", "../../etc/passwd")


def test_iter_blobs_skips_temp_files(tmp_path: Path) -> None:
    store = ContentStore(tmp_path / "blobs")
    store.put("abcdef-1234", b"one", ".pdf")
    store.put("zyxwvu-9876", b"two")
    temp = tmp_path / "blobs" / "ab" / "cd" / ".abcdef-5555.pdf.k3j2.tmp"
    temp.write_bytes(b"partial")
    os.utime(temp, (1_000_000, 1_000_000))

    blob_ids = sorted(blob.resource_id for blob in store.iter_blobs())
    temp_files = list(store.iter_temp_files())

    assert blob_ids == ["abcdef-1234", "zyxwvu-9876"]
    assert [t.path for t in temp_files] == [temp]
    assert temp_files[0].mtime == 1_000_000
