from __future__ import annotations

from palimpsest.core.errors import MergeSourceNotFoundError, NotFoundError
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo


class MergeResolver:
    """Resolves a merge-pages reference to the referenced document's content.

    Always the whole document, pages in their stored order. Content is fetched
    before any working document is opened so no store I/O happens while the
    document engine is held.
    """

    def __init__(self, resource_repo: ResourceRepo, content_store: ContentStore) -> None:
        self.resource_repo = resource_repo
        self.content_store = content_store

    def resolve(self, ref_id: str) -> bytes:
        resource = self.resource_repo.get_by_id(ref_id)
        if resource is None:
            raise MergeSourceNotFoundError(f"Merge source not found: {ref_id}")
        try:
            return self.content_store.get(resource.id, resource.content_relpath)
        except NotFoundError as exc:
            raise MergeSourceNotFoundError(f"Merge source content not found: {ref_id}") from exc
