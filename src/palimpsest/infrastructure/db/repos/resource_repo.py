from __future__ import annotations

import json
import sqlite3
from pathlib import Path

from palimpsest.core.errors import NotFoundError, StorageFaultError
from palimpsest.core.time import now_utc_iso
from palimpsest.domain.models.resource import OperationRecord, OperationType, Resource, ResourceKind
from palimpsest.infrastructure.db.sqlite import get_connection


class ResourceRepo:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def insert(self, resource: Resource) -> None:
        try:
            with get_connection(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO resources (
                        id,
                        kind,
                        content_relpath,
                        media_type,
                        original_filename,
                        digest_sha256,
                        size_bytes,
                        page_count,
                        created_at,
                        modified_at,
                        lineage
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        resource.id,
                        resource.kind.value,
                        resource.content_relpath,
                        resource.media_type,
                        resource.original_filename,
                        resource.digest_sha256,
                        resource.size_bytes,
                        resource.page_count,
                        resource.created_at,
                        resource.modified_at,
                        resource.lineage,
                    ),
                )
                conn.executemany(
                    """
                    INSERT INTO operation_log (resource_id, seq, op_type, parameters_json, applied_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            resource.id,
                            seq,
                            record.type.value,
                            json.dumps(record.parameters, ensure_ascii=True, sort_keys=True),
                            record.applied_at,
                        )
                        for seq, record in enumerate(resource.operation_log)
                    ],
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StorageFaultError(f"Unable to write metadata for {resource.id}: {exc}") from exc

    def get_by_id(self, resource_id: str) -> Resource | None:
        try:
            with get_connection(self.db_path) as conn:
                row = conn.execute("SELECT * FROM resources WHERE id = ?", (resource_id,)).fetchone()
                if row is None:
                    return None
                log_rows = conn.execute(
                    """
                    SELECT op_type, parameters_json, applied_at
                    FROM operation_log
                    WHERE resource_id = ?
                    ORDER BY seq ASC
                    """,
                    (resource_id,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise StorageFaultError(f"Unable to read metadata for {resource_id}: {exc}") from exc
        return self._to_model(row, log_rows)

    def require(self, resource_id: str) -> Resource:
        resource = self.get_by_id(resource_id)
        if resource is None:
            raise NotFoundError(f"Resource not found: {resource_id}")
        return resource

    def list(self, limit: int = 100, kind: ResourceKind | None = None) -> list[Resource]:
        sql = "SELECT * FROM resources"
        params: list[object] = []
        if kind is not None:
            sql += " WHERE kind = ?"
            params.append(kind.value)
        sql += " ORDER BY created_at DESC, id ASC LIMIT ?"
        params.append(limit)
        with get_connection(self.db_path) as conn:
            rows = conn.execute(sql, params).fetchall()
        # Listings carry the summary record only; the log is loaded by get_by_id.
        return [self._to_model(row, []) for row in rows]

    def list_created_before(self, cutoff_iso: str) -> list[Resource]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM resources
                WHERE created_at < ?
                ORDER BY created_at ASC
                """,
                (cutoff_iso,),
            ).fetchall()
        return [self._to_model(row, []) for row in rows]

    def count(self) -> int:
        with get_connection(self.db_path) as conn:
            return int(conn.execute("SELECT COUNT(*) FROM resources").fetchone()[0])

    def delete(self, resource_id: str, reason: str = "deleted") -> bool:
        """Remove a resource record and retire its identifier.

        Idempotent: returns False when no record existed.
        """
        try:
            with get_connection(self.db_path) as conn:
                row = conn.execute("SELECT kind FROM resources WHERE id = ?", (resource_id,)).fetchone()
                if row is None:
                    return False
                conn.execute("DELETE FROM resources WHERE id = ?", (resource_id,))
                conn.execute(
                    """
                    INSERT OR IGNORE INTO retired_ids (id, kind, reason, retired_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (resource_id, row["kind"], reason, now_utc_iso()),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StorageFaultError(f"Unable to delete metadata for {resource_id}: {exc}") from exc
        return True

    def is_issued(self, resource_id: str) -> bool:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                """
                SELECT 1 FROM resources WHERE id = ?
                UNION ALL
                SELECT 1 FROM retired_ids WHERE id = ?
                LIMIT 1
                """,
                (resource_id, resource_id),
            ).fetchone()
        return row is not None

    def list_retired_ids(self) -> list[str]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute("SELECT id FROM retired_ids ORDER BY retired_at ASC, id ASC").fetchall()
        return [str(row["id"]) for row in rows]

    @staticmethod
    def _to_model(row, log_rows) -> Resource:
        return Resource(
            id=row["id"],
            kind=ResourceKind(row["kind"]),
            content_relpath=row["content_relpath"],
            media_type=row["media_type"],
            original_filename=row["original_filename"],
            digest_sha256=row["digest_sha256"],
            size_bytes=int(row["size_bytes"]),
            created_at=row["created_at"],
            page_count=int(row["page_count"]) if row["page_count"] is not None else None,
            modified_at=row["modified_at"],
            lineage=row["lineage"],
            operation_log=tuple(
                OperationRecord(
                    type=OperationType(log_row["op_type"]),
                    parameters=json.loads(log_row["parameters_json"]),
                    applied_at=log_row["applied_at"],
                )
                for log_row in log_rows
            ),
        )
