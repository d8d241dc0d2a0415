# === NAVMAP v1 ===
# {
#   "module": "JavaDB.db.sqlite",
#   "purpose": "Embedded single-file storage engine backed by sqlite3",
#   "sections": [
#     {"id": "schema", "name": "Schema", "anchor": "SCH", "kind": "infra"},
#     {"id": "engine", "name": "SqliteDB", "anchor": "ENG", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Embedded storage engine (SQLite).

The whole index lives in one file that can be shipped as-is.  Foreign keys
are enforced, every batch insert runs in a single transaction, and
``VACUUM`` compacts the file once the build has loaded everything.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from ..errors import DatabaseError
from ..types import ArchiveType, Index
from .base import (
    INDEX_COLUMNS,
    Sha1Like,
    archive_type_value,
    decode_sha1,
    distinct_artifacts,
    row_to_index,
)

logger = logging.getLogger(__name__)

# ============================================================================
# SCHEMA (SCH)
# ============================================================================

SCHEMA_STATEMENTS = (
    "CREATE TABLE artifacts(id INTEGER PRIMARY KEY, group_id TEXT, artifact_id TEXT)",
    "CREATE TABLE indices(artifact_id INTEGER, version TEXT, sha1 BLOB, archive_type TEXT, "
    "FOREIGN KEY (artifact_id) REFERENCES artifacts(id))",
    "CREATE UNIQUE INDEX artifacts_idx ON artifacts(artifact_id, group_id)",
    "CREATE INDEX indices_artifact_idx ON indices(artifact_id)",
    "CREATE UNIQUE INDEX indices_sha1_idx ON indices(sha1)",
)

_INSERT_ARTIFACT = "INSERT OR IGNORE INTO artifacts(group_id, artifact_id) VALUES (?, ?)"

_INSERT_INDEX = """
    INSERT INTO indices(artifact_id, version, sha1, archive_type)
    VALUES (
        (SELECT id FROM artifacts WHERE group_id = ? AND artifact_id = ?),
        ?, ?, ?
    ) ON CONFLICT(sha1) DO NOTHING
"""

_SELECT_BY_SHA1 = f"""
    SELECT {INDEX_COLUMNS}
    FROM indices i
    JOIN artifacts a ON a.id = i.artifact_id
    WHERE i.sha1 = ?
"""

_SELECT_BY_ARTIFACT_AND_GROUP = f"""
    SELECT {INDEX_COLUMNS}
    FROM indices i
    JOIN artifacts a ON a.id = i.artifact_id
    WHERE a.group_id = ? AND a.artifact_id = ?
    ORDER BY i.version, i.archive_type
    LIMIT 1
"""

_SELECT_BY_ARTIFACT_AND_FILE_TYPE = f"""
    SELECT {INDEX_COLUMNS}
    FROM indices i
    JOIN (
        SELECT DISTINCT a.id, a.group_id, a.artifact_id
        FROM indices i
        JOIN artifacts a ON a.id = i.artifact_id
        WHERE a.artifact_id = ? AND i.version = ? AND i.archive_type = ?
    ) a ON a.id = i.artifact_id
    ORDER BY a.group_id, i.version, i.archive_type
"""


# ============================================================================
# ENGINE (ENG)
# ============================================================================


class SqliteDB:
    """Storage engine over a single SQLite file.

    Args:
        db_path: Database file; parent directories are created.

    Raises:
        DatabaseError: If the file cannot be opened.
    """

    backend = "sqlite"

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn: Optional[sqlite3.Connection] = sqlite3.connect(str(self.db_path))
            self._conn.execute("PRAGMA foreign_keys = ON")
        except (sqlite3.Error, OSError) as exc:
            raise DatabaseError(f"can't open db {self.db_path}: {exc}") from exc

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise DatabaseError("database is closed")
        return self._conn

    def init(self) -> None:
        try:
            with self.conn:
                for statement in SCHEMA_STATEMENTS:
                    self.conn.execute(statement)
        except sqlite3.Error as exc:
            raise DatabaseError(f"unable to create schema: {exc}") from exc
        logger.debug("schema created", extra={"db_path": str(self.db_path)})

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def vacuum(self) -> None:
        try:
            self.conn.execute("VACUUM")
        except sqlite3.Error as exc:
            raise DatabaseError(f"vacuum database error: {exc}") from exc

    def insert_indexes(self, indexes: Sequence[Index]) -> None:
        if not indexes:
            return
        rows = [
            (i.group_id, i.artifact_id, i.version, i.sha1, i.archive_type.value) for i in indexes
        ]
        try:
            with self.conn:
                self.conn.executemany(_INSERT_ARTIFACT, distinct_artifacts(indexes))
                self.conn.executemany(_INSERT_INDEX, rows)
        except sqlite3.Error as exc:
            raise DatabaseError(f"insert error: {exc}") from exc

    def select_index_by_sha1(self, sha1: Sha1Like) -> Optional[Index]:
        digest = decode_sha1(sha1)
        row = self._fetchone(_SELECT_BY_SHA1, (digest,))
        return row_to_index(row) if row is not None else None

    def select_index_by_artifact_id_and_group_id(
        self, artifact_id: str, group_id: str
    ) -> Optional[Index]:
        row = self._fetchone(_SELECT_BY_ARTIFACT_AND_GROUP, (group_id, artifact_id))
        return row_to_index(row) if row is not None else None

    def select_indexes_by_artifact_id_and_file_type(
        self, artifact_id: str, version: str, archive_type: Union[ArchiveType, str]
    ) -> List[Index]:
        params = (artifact_id, version, archive_type_value(archive_type))
        try:
            rows = self.conn.execute(_SELECT_BY_ARTIFACT_AND_FILE_TYPE, params).fetchall()
        except sqlite3.Error as exc:
            raise DatabaseError(f"select indexes error: {exc}") from exc
        return [row_to_index(row) for row in rows]

    def count_rows(self) -> Dict[str, int]:
        counts = {}
        for table in ("artifacts", "indices"):
            row = self._fetchone(f"SELECT COUNT(*) FROM {table}", ())
            counts[table] = int(row[0]) if row else 0
        return counts

    def _fetchone(self, sql: str, params: tuple) -> Optional[tuple]:
        try:
            return self.conn.execute(sql, params).fetchone()
        except sqlite3.Error as exc:
            raise DatabaseError(f"select index error: {exc}") from exc

    def __repr__(self) -> str:
        return f"SqliteDB({str(self.db_path)!r})"


def remove_database_files(db_path: Path) -> None:
    """Delete the database file together with its journal siblings."""
    for suffix in ("", "-journal", "-wal", "-shm"):
        Path(f"{db_path}{suffix}").unlink(missing_ok=True)


__all__ = ["SqliteDB", "SCHEMA_STATEMENTS", "remove_database_files"]
