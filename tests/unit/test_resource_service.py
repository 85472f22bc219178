from pathlib import Path

import pytest

from palimpsest.application.services.resource_service import ResourceService
from palimpsest.application.services.resource_writer import ResourceWriter, suffix_for_filename
from palimpsest.core.errors import CapabilityFaultError, InvalidParameterError, NotFoundError, StorageFaultError
from palimpsest.domain.models.resource import ResourceKind
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo
from palimpsest.infrastructure.db.sqlite import initialize_schema


def _bootstrap(tmp_path: Path) -> tuple[ResourceService, ResourceRepo, ContentStore]:
    db_path = tmp_path / "palimpsest.db"
    initialize_schema(db_path)
    repo = ResourceRepo(db_path)
    store = ContentStore(tmp_path / "blobs")
    return ResourceService(repo, store), repo, store


def test_create_pdf_records_page_count_and_digest(tmp_path: Path, make_pdf) -> None:
    service, repo, _ = _bootstrap(tmp_path)
    data = make_pdf(3)

    resource = service.create(data, original_filename="report.pdf")

    assert resource.kind is ResourceKind.ORIGINAL_UPLOAD
    assert resource.page_count == 3
    assert resource.media_type == "application/pdf"
    assert resource.size_bytes == len(data)
    assert resource.lineage is None
    assert resource.operation_log == ()
    assert resource.content_relpath.endswith(".pdf")
    assert repo.require(resource.id) == resource


def test_fetch_content_returns_exact_bytes(tmp_path: Path, make_pdf) -> None:
    service, _, _ = _bootstrap(tmp_path)
    data = make_pdf(1)
    resource = service.create(data, original_filename="one.pdf")

    fetched = service.fetch_content(resource.id)

    assert fetched.data == data
    assert fetched.filename == "one.pdf"
    assert fetched.media_type == "application/pdf"


def test_create_non_pdf_uses_guessed_media_type(tmp_path: Path) -> None:
    service, _, _ = _bootstrap(tmp_path)
    resource = service.create(b"plain words", original_filename="notes.txt")
    assert resource.media_type == "text/plain"
    assert resource.page_count is None


def test_create_rejects_empty_and_broken_pdf(tmp_path: Path) -> None:
    service, repo, _ = _bootstrap(tmp_path)
    with pytest.raises(InvalidParameterError):
        service.create(b"")
    with pytest.raises(CapabilityFaultError):
        service.create(b"%PDF-1.7 nothing here", original_filename="bad.pdf")
    assert repo.count() == 0


def test_edited_versions_cannot_be_uploaded(tmp_path: Path, make_pdf) -> None:
    service, _, _ = _bootstrap(tmp_path)
    with pytest.raises(InvalidParameterError):
        service.create(make_pdf(1), kind=ResourceKind.EDITED_VERSION)


def test_create_from_path(tmp_path: Path, make_pdf) -> None:
    service, _, _ = _bootstrap(tmp_path)
    source = tmp_path / "scan.pdf"
    source.write_bytes(make_pdf(2))

    resource = service.create_from_path(source)

    assert resource.original_filename == "scan.pdf"
    assert resource.page_count == 2
    with pytest.raises(InvalidParameterError):
        service.create_from_path(tmp_path / "missing.pdf")


def test_delete_removes_metadata_and_content(tmp_path: Path, make_pdf) -> None:
    service, _, store = _bootstrap(tmp_path)
    resource = service.create(make_pdf(1))

    assert service.delete(resource.id) is True
    assert service.delete(resource.id) is False
    assert store.exists(resource.id) is False
    with pytest.raises(NotFoundError):
        service.fetch_metadata(resource.id)
    with pytest.raises(NotFoundError):
        service.fetch_content(resource.id)


def test_failed_metadata_write_removes_published_content(tmp_path: Path, make_pdf, monkeypatch) -> None:
    service, repo, store = _bootstrap(tmp_path)

    def fail_insert(resource) -> None:
        raise StorageFaultError("disk full")

    monkeypatch.setattr(repo, "insert", fail_insert)

    with pytest.raises(StorageFaultError):
        service.create(make_pdf(1))

    assert list(store.iter_blobs()) == []


def test_writer_ids_are_unique(tmp_path: Path) -> None:
    _, repo, store = _bootstrap(tmp_path)
    writer = ResourceWriter(repo, store)
    ids = {
        writer.write(ResourceKind.EXTRACTED_TEXT, b"x", media_type="text/plain", original_filename="a.txt").id
        for _ in range(20)
    }
    assert len(ids) == 20


@pytest.mark.parametrize(
    ("filename", "suffix"),
    [("doc.PDF", ".pdf"), ("archive.tar.gz", ".gz"), ("noext", ""), ("weird.p d f", ""), ("", "")],
)
def test_suffix_for_filename(filename: str, suffix: str) -> None:
    assert suffix_for_filename(filename) == suffix


def test_fetch_content_of_resource_deleted_mid_read(tmp_path: Path, make_pdf, monkeypatch) -> None:
    service, _, store = _bootstrap(tmp_path)
    resource = service.create(make_pdf(1), original_filename="gone.pdf")
    original_get = store.get

    def _get_after_delete(resource_id: str, relpath: str | None = None) -> bytes:
        service.delete(resource_id)
        return original_get(resource_id, relpath)

    monkeypatch.setattr(store, "get", _get_after_delete)
    with pytest.raises(NotFoundError):
        service.fetch_content(resource.id)
