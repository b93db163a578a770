"""PostgreSQL implementations of VersionStore and VersionIndex.

Uses asyncpg for async database access. The (record_id, version_number)
primary key on both tables is what turns a version-number race into a
ConflictError.
"""

import json
from typing import Any

import asyncpg

from orderledger.db.errors import ConflictError, ConnectionError, StoreError
from orderledger.db.pool import PostgresPool
from orderledger.observability.logging import get_logger
from orderledger.versioning.enums import VersionStatus
from orderledger.versioning.index import VersionIndex
from orderledger.versioning.models import (
    DraftVersionsGroup,
    IndexEntry,
    RecordSummary,
    VersionedRecord,
)
from orderledger.versioning.store import VersionStore, require_draft_status

logger = get_logger(__name__)

_METADATA_COLUMNS = """
    record_id, version_number, schema_version_id, status, author,
    created_at, previous_version_number, change_note
"""
_RECORD_COLUMNS = _METADATA_COLUMNS + ", payload"
_ENTRY_COLUMNS = _METADATA_COLUMNS + ", payload_size"


def _deleted_count(command_tag: str) -> int:
    """Parse the row count out of a 'DELETE n' command tag."""
    try:
        return int(command_tag.split()[-1])
    except (IndexError, ValueError):
        return 0


def _metadata_from_row(row: asyncpg.Record) -> dict[str, Any]:
    return {
        "record_id": row["record_id"],
        "version_number": row["version_number"],
        "schema_version_id": row["schema_version_id"],
        "status": VersionStatus(row["status"]),
        "author": row["author"],
        "created_at": row["created_at"],
        "previous_version_number": row["previous_version_number"],
        "change_note": row["change_note"],
    }


class PostgresVersionStore(VersionStore):
    """PostgreSQL implementation of VersionStore.

    Table: record_versions. Rows are only ever inserted or, for DRAFT
    rows, deleted; there is no UPDATE path.
    """

    def __init__(self, pool: PostgresPool) -> None:
        """Initialize with connection pool.

        Args:
            pool: PostgreSQL connection pool
        """
        self._pool = pool

    async def append(self, record: VersionedRecord) -> VersionedRecord:
        """Append a new version."""
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO record_versions (
                        record_id, version_number, schema_version_id, status, author,
                        created_at, previous_version_number, change_note, payload
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    """,
                    record.record_id,
                    record.version_number,
                    record.schema_version_id,
                    record.status.value,
                    record.author,
                    record.created_at,
                    record.previous_version_number,
                    record.change_note,
                    json.dumps(record.payload),
                )
                logger.debug(
                    "record_version_saved",
                    record_id=record.record_id,
                    version_number=record.version_number,
                )
                return record
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(
                f"Duplicate version {record.version_number} for record {record.record_id}",
                cause=e,
            ) from e
        except StoreError:
            raise
        except Exception as e:
            logger.error(
                "postgres_append_version_error",
                record_id=record.record_id,
                version_number=record.version_number,
                error=str(e),
            )
            raise ConnectionError(f"Failed to append version: {e}", cause=e) from e

    async def get_by_key(
        self, record_id: str, version_number: int
    ) -> VersionedRecord | None:
        """Get one version by its composite key."""
        row = await self._fetchrow(
            "get_by_key",
            f"""
            SELECT {_RECORD_COLUMNS}
            FROM record_versions
            WHERE record_id = $1 AND version_number = $2
            """,
            record_id,
            version_number,
        )
        return self._row_to_record(row) if row else None

    async def get_highest_version(self, record_id: str) -> VersionedRecord | None:
        """Get the version with the maximum version number."""
        row = await self._fetchrow(
            "get_highest_version",
            f"""
            SELECT {_RECORD_COLUMNS}
            FROM record_versions
            WHERE record_id = $1
            ORDER BY version_number DESC
            LIMIT 1
            """,
            record_id,
        )
        return self._row_to_record(row) if row else None

    async def list_all(self, record_id: str) -> list[VersionedRecord]:
        """List all versions of a record, ascending by version number."""
        rows = await self._fetch(
            "list_all",
            f"""
            SELECT {_RECORD_COLUMNS}
            FROM record_versions
            WHERE record_id = $1
            ORDER BY version_number ASC
            """,
            record_id,
        )
        return [self._row_to_record(row) for row in rows]

    async def list_version_numbers(self, record_id: str) -> list[int]:
        """List the version numbers of a record, ascending."""
        rows = await self._fetch(
            "list_version_numbers",
            """
            SELECT version_number
            FROM record_versions
            WHERE record_id = $1
            ORDER BY version_number ASC
            """,
            record_id,
        )
        return [row["version_number"] for row in rows]

    async def list_by_status(
        self, record_id: str, status: VersionStatus
    ) -> list[VersionedRecord]:
        """List versions of a record with the given status, ascending."""
        rows = await self._fetch(
            "list_by_status",
            f"""
            SELECT {_RECORD_COLUMNS}
            FROM record_versions
            WHERE record_id = $1 AND status = $2
            ORDER BY version_number ASC
            """,
            record_id,
            status.value,
        )
        return [self._row_to_record(row) for row in rows]

    async def delete_versions(
        self,
        record_id: str,
        version_numbers: list[int],
        status: VersionStatus,
    ) -> int:
        """Delete versions matching record, numbers AND status."""
        require_draft_status(status)
        if not version_numbers:
            return 0
        try:
            async with self._pool.acquire() as conn:
                result = await conn.execute(
                    """
                    DELETE FROM record_versions
                    WHERE record_id = $1
                      AND version_number = ANY($2::int[])
                      AND status = $3
                    """,
                    record_id,
                    list(version_numbers),
                    status.value,
                )
                return _deleted_count(result)
        except StoreError:
            raise
        except Exception as e:
            logger.error(
                "postgres_delete_versions_error", record_id=record_id, error=str(e)
            )
            raise ConnectionError(f"Failed to delete versions: {e}", cause=e) from e

    async def list_record_ids(self) -> list[str]:
        """List every record id that has at least one version."""
        rows = await self._fetch(
            "list_record_ids",
            "SELECT DISTINCT record_id FROM record_versions ORDER BY record_id",
        )
        return [row["record_id"] for row in rows]

    async def _fetchrow(self, operation: str, query: str, *args: Any) -> asyncpg.Record | None:
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetchrow(query, *args)
        except StoreError:
            raise
        except Exception as e:
            logger.error(f"postgres_{operation}_error", error=str(e))
            raise ConnectionError(f"Failed to {operation.replace('_', ' ')}: {e}", cause=e) from e

    async def _fetch(self, operation: str, query: str, *args: Any) -> list[asyncpg.Record]:
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetch(query, *args)
        except StoreError:
            raise
        except Exception as e:
            logger.error(f"postgres_{operation}_error", error=str(e))
            raise ConnectionError(f"Failed to {operation.replace('_', ' ')}: {e}", cause=e) from e

    def _row_to_record(self, row: asyncpg.Record) -> VersionedRecord:
        payload = row["payload"]
        if isinstance(payload, str):
            payload = json.loads(payload)
        return VersionedRecord(**_metadata_from_row(row), payload=payload or {})


class PostgresVersionIndex(VersionIndex):
    """PostgreSQL implementation of VersionIndex.

    Table: record_version_index, same primary key as record_versions
    but without the payload column.
    """

    def __init__(self, pool: PostgresPool) -> None:
        """Initialize with connection pool.

        Args:
            pool: PostgreSQL connection pool
        """
        self._pool = pool

    async def add(self, entry: IndexEntry) -> IndexEntry:
        """Add the entry mirroring a freshly appended version."""
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO record_version_index (
                        record_id, version_number, schema_version_id, status, author,
                        created_at, previous_version_number, change_note, payload_size
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    """,
                    entry.record_id,
                    entry.version_number,
                    entry.schema_version_id,
                    entry.status.value,
                    entry.author,
                    entry.created_at,
                    entry.previous_version_number,
                    entry.change_note,
                    entry.payload_size,
                )
                return entry
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(
                f"Duplicate index entry {entry.version_number} for record {entry.record_id}",
                cause=e,
            ) from e
        except StoreError:
            raise
        except Exception as e:
            logger.error(
                "postgres_add_index_entry_error",
                record_id=entry.record_id,
                version_number=entry.version_number,
                error=str(e),
            )
            raise ConnectionError(f"Failed to add index entry: {e}", cause=e) from e

    async def get_by_key(
        self, record_id: str, version_number: int
    ) -> IndexEntry | None:
        """Get one entry by its composite key."""
        rows = await self._fetch(
            "get_index_entry",
            f"""
            SELECT {_ENTRY_COLUMNS}
            FROM record_version_index
            WHERE record_id = $1 AND version_number = $2
            """,
            record_id,
            version_number,
        )
        return self._row_to_entry(rows[0]) if rows else None

    async def get_highest_version(self, record_id: str) -> IndexEntry | None:
        """Get the entry with the maximum version number."""
        rows = await self._fetch(
            "get_highest_index_entry",
            f"""
            SELECT {_ENTRY_COLUMNS}
            FROM record_version_index
            WHERE record_id = $1
            ORDER BY version_number DESC
            LIMIT 1
            """,
            record_id,
        )
        return self._row_to_entry(rows[0]) if rows else None

    async def list_all(self, record_id: str) -> list[IndexEntry]:
        """List all entries of a record, ascending by version number."""
        rows = await self._fetch(
            "list_index_entries",
            f"""
            SELECT {_ENTRY_COLUMNS}
            FROM record_version_index
            WHERE record_id = $1
            ORDER BY version_number ASC
            """,
            record_id,
        )
        return [self._row_to_entry(row) for row in rows]

    async def list_by_status(
        self, record_id: str, status: VersionStatus
    ) -> list[IndexEntry]:
        """List entries of a record with the given status, ascending."""
        rows = await self._fetch(
            "list_index_entries_by_status",
            f"""
            SELECT {_ENTRY_COLUMNS}
            FROM record_version_index
            WHERE record_id = $1 AND status = $2
            ORDER BY version_number ASC
            """,
            record_id,
            status.value,
        )
        return [self._row_to_entry(row) for row in rows]

    async def count_by_status(self, record_id: str, status: VersionStatus) -> int:
        """Count entries of a record with the given status."""
        rows = await self._fetch(
            "count_index_entries",
            """
            SELECT COUNT(*) AS n
            FROM record_version_index
            WHERE record_id = $1 AND status = $2
            """,
            record_id,
            status.value,
        )
        return int(rows[0]["n"]) if rows else 0

    async def find_records_with_drafts(self) -> list[DraftVersionsGroup]:
        """Group DRAFT version numbers by record id."""
        rows = await self._fetch(
            "find_records_with_drafts",
            """
            SELECT record_id,
                   array_agg(version_number ORDER BY version_number) AS draft_versions
            FROM record_version_index
            WHERE status = 'DRAFT'
            GROUP BY record_id
            ORDER BY record_id
            """,
        )
        return [
            DraftVersionsGroup(
                record_id=row["record_id"],
                draft_versions=list(row["draft_versions"]),
            )
            for row in rows
        ]

    async def delete_versions(
        self,
        record_id: str,
        version_numbers: list[int],
        status: VersionStatus,
    ) -> int:
        """Delete entries matching record, numbers AND status."""
        require_draft_status(status)
        if not version_numbers:
            return 0
        try:
            async with self._pool.acquire() as conn:
                result = await conn.execute(
                    """
                    DELETE FROM record_version_index
                    WHERE record_id = $1
                      AND version_number = ANY($2::int[])
                      AND status = $3
                    """,
                    record_id,
                    list(version_numbers),
                    status.value,
                )
                return _deleted_count(result)
        except StoreError:
            raise
        except Exception as e:
            logger.error(
                "postgres_delete_index_entries_error", record_id=record_id, error=str(e)
            )
            raise ConnectionError(f"Failed to delete index entries: {e}", cause=e) from e

    async def list_latest_summaries(self) -> list[RecordSummary]:
        """Summarize every record, newest latest-version first."""
        rows = await self._fetch(
            "list_latest_summaries",
            """
            SELECT DISTINCT ON (record_id)
                   record_id, version_number, schema_version_id, status, author,
                   created_at, change_note,
                   COUNT(*) OVER (PARTITION BY record_id) AS total_versions,
                   COUNT(*) FILTER (WHERE status = 'FINAL')
                       OVER (PARTITION BY record_id) AS final_versions
            FROM record_version_index
            ORDER BY record_id, version_number DESC
            """,
        )
        summaries = [
            RecordSummary(
                record_id=row["record_id"],
                latest_version_number=row["version_number"],
                schema_version_id=row["schema_version_id"],
                status=VersionStatus(row["status"]),
                author=row["author"],
                created_at=row["created_at"],
                change_note=row["change_note"],
                total_versions=row["total_versions"],
                final_versions=row["final_versions"],
                draft_versions=row["total_versions"] - row["final_versions"],
            )
            for row in rows
        ]
        summaries.sort(key=lambda s: s.created_at, reverse=True)
        return summaries

    async def list_record_ids(self) -> list[str]:
        """List every record id that has at least one entry."""
        rows = await self._fetch(
            "list_index_record_ids",
            "SELECT DISTINCT record_id FROM record_version_index ORDER BY record_id",
        )
        return [row["record_id"] for row in rows]

    async def _fetch(self, operation: str, query: str, *args: Any) -> list[asyncpg.Record]:
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetch(query, *args)
        except StoreError:
            raise
        except Exception as e:
            logger.error(f"postgres_{operation}_error", error=str(e))
            raise ConnectionError(f"Failed to {operation.replace('_', ' ')}: {e}", cause=e) from e

    def _row_to_entry(self, row: asyncpg.Record) -> IndexEntry:
        return IndexEntry(**_metadata_from_row(row), payload_size=row["payload_size"])
