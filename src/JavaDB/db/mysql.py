"""Networked storage engine (MySQL through SQLAlchemy and PyMySQL).

Same schema and contract as the SQLite engine.  ``ON DUPLICATE KEY UPDATE``
with a no-op assignment provides first-writer-wins semantics for duplicate
hashes without downgrading other errors to warnings the way ``INSERT IGNORE``
does.  Tables use the ``utf8mb4_bin`` collation so identifiers compare
byte-for-byte, as SQLite compares them, and sessions run in strict mode so an
oversized value fails the batch instead of being truncated.  ``sha1`` is
stored as ``VARBINARY(20)`` so the unique index covers the whole digest, and
``vacuum`` is a no-op because InnoDB manages its own space.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Union

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

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

SCHEMA_STATEMENTS = (
    "CREATE TABLE artifacts("
    "id INTEGER AUTO_INCREMENT PRIMARY KEY, "
    "group_id VARCHAR(255), "
    "artifact_id VARCHAR(255), "
    "CONSTRAINT artifacts_idx UNIQUE (artifact_id, group_id)"
    ") ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_bin",
    "CREATE TABLE indices("
    "artifact_id INTEGER, "
    "version VARCHAR(255), "
    "sha1 VARBINARY(20), "
    "archive_type VARCHAR(255), "
    "FOREIGN KEY (artifact_id) REFERENCES artifacts(id), "
    "CONSTRAINT indices_sha1_idx UNIQUE (sha1), "
    "INDEX indices_artifact_idx (artifact_id)"
    ") ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_bin",
)

DROP_STATEMENTS = (
    "DROP TABLE IF EXISTS indices",
    "DROP TABLE IF EXISTS artifacts",
)

_INSERT_ARTIFACT = text(
    "INSERT INTO artifacts(group_id, artifact_id) VALUES (:group_id, :artifact_id) "
    "ON DUPLICATE KEY UPDATE id = id"
)

_INSERT_INDEX = text(
    """
    INSERT INTO indices(artifact_id, version, sha1, archive_type)
    VALUES (
        (SELECT id FROM artifacts WHERE group_id = :group_id AND artifact_id = :artifact_id),
        :version, :sha1, :archive_type
    )
    ON DUPLICATE KEY UPDATE sha1 = sha1
    """
)

_SELECT_BY_SHA1 = text(
    f"""
    SELECT {INDEX_COLUMNS}
    FROM indices i
    JOIN artifacts a ON a.id = i.artifact_id
    WHERE i.sha1 = :sha1
    """
)

_SELECT_BY_ARTIFACT_AND_GROUP = text(
    f"""
    SELECT {INDEX_COLUMNS}
    FROM indices i
    JOIN artifacts a ON a.id = i.artifact_id
    WHERE a.group_id = :group_id AND a.artifact_id = :artifact_id
    ORDER BY i.version, i.archive_type
    LIMIT 1
    """
)

_SELECT_BY_ARTIFACT_AND_FILE_TYPE = text(
    f"""
    SELECT {INDEX_COLUMNS}
    FROM indices i
    JOIN (
        SELECT DISTINCT a.id, a.group_id, a.artifact_id
        FROM indices i
        JOIN artifacts a ON a.id = i.artifact_id
        WHERE a.artifact_id = :artifact_id AND i.version = :version
          AND i.archive_type = :archive_type
    ) a ON a.id = i.artifact_id
    ORDER BY a.group_id, i.version, i.archive_type
    """
)


SESSION_SQL_MODE = "STRICT_ALL_TABLES,NO_ENGINE_SUBSTITUTION"


def _set_session_mode(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute(f"SET SESSION sql_mode = '{SESSION_SQL_MODE}'")
    finally:
        cursor.close()


def create_mysql_engine(connect_url: str) -> Engine:
    """Create a pooled engine that verifies connections before use.

    Every pooled connection is switched to strict SQL mode when it is opened.
    """
    try:
        engine = create_engine(connect_url, pool_pre_ping=True)
    except SQLAlchemyError as exc:
        raise DatabaseError(f"can't open db: {exc}") from exc
    event.listen(engine, "connect", _set_session_mode)
    return engine


class MysqlDB:
    """Storage engine over a MySQL database reached through ``connect_url``."""

    backend = "mysql"

    def __init__(self, connect_url: str) -> None:
        self.connect_url = connect_url
        self._engine: Optional[Engine] = create_mysql_engine(connect_url)

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise DatabaseError("database is closed")
        return self._engine

    def init(self) -> None:
        try:
            with self.engine.begin() as conn:
                for statement in SCHEMA_STATEMENTS:
                    conn.execute(text(statement))
        except SQLAlchemyError as exc:
            raise DatabaseError(f"unable to create schema: {exc}") from exc
        logger.debug("schema created", extra={"backend": self.backend})

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def vacuum(self) -> None:
        """InnoDB reclaims space itself."""

    def insert_indexes(self, indexes: Sequence[Index]) -> None:
        if not indexes:
            return
        artifacts = [
            {"group_id": group_id, "artifact_id": artifact_id}
            for group_id, artifact_id in distinct_artifacts(indexes)
        ]
        rows = [
            {
                "group_id": i.group_id,
                "artifact_id": i.artifact_id,
                "version": i.version,
                "sha1": i.sha1,
                "archive_type": i.archive_type.value,
            }
            for i in indexes
        ]
        try:
            with self.engine.begin() as conn:
                conn.execute(_INSERT_ARTIFACT, artifacts)
                conn.execute(_INSERT_INDEX, rows)
        except SQLAlchemyError as exc:
            raise DatabaseError(f"insert error: {exc}") from exc

    def select_index_by_sha1(self, sha1: Sha1Like) -> Optional[Index]:
        digest = decode_sha1(sha1)
        rows = self._select(_SELECT_BY_SHA1, {"sha1": digest})
        return row_to_index(rows[0]) if rows else None

    def select_index_by_artifact_id_and_group_id(
        self, artifact_id: str, group_id: str
    ) -> Optional[Index]:
        rows = self._select(
            _SELECT_BY_ARTIFACT_AND_GROUP, {"group_id": group_id, "artifact_id": artifact_id}
        )
        return row_to_index(rows[0]) if rows else None

    def select_indexes_by_artifact_id_and_file_type(
        self, artifact_id: str, version: str, archive_type: Union[ArchiveType, str]
    ) -> List[Index]:
        rows = self._select(
            _SELECT_BY_ARTIFACT_AND_FILE_TYPE,
            {
                "artifact_id": artifact_id,
                "version": version,
                "archive_type": archive_type_value(archive_type),
            },
        )
        return [row_to_index(row) for row in rows]

    def count_rows(self) -> Dict[str, int]:
        counts = {}
        for table in ("artifacts", "indices"):
            rows = self._select(text(f"SELECT COUNT(*) FROM {table}"), {})
            counts[table] = int(rows[0][0]) if rows else 0
        return counts

    def _select(self, statement, params: dict) -> list:
        try:
            with self.engine.connect() as conn:
                return list(conn.execute(statement, params).fetchall())
        except SQLAlchemyError as exc:
            raise DatabaseError(f"select index error: {exc}") from exc

    def __repr__(self) -> str:
        return f"MysqlDB({make_url(self.connect_url).render_as_string(hide_password=True)!r})"


def drop_tables(connect_url: str) -> None:
    """Drop ``indices`` then ``artifacts`` so the next ``init`` starts empty."""
    engine = create_mysql_engine(connect_url)
    try:
        with engine.begin() as conn:
            for statement in DROP_STATEMENTS:
                conn.execute(text(statement))
    except SQLAlchemyError as exc:
        raise DatabaseError(f"unable to reset database: {exc}") from exc
    finally:
        engine.dispose()


__all__ = ["MysqlDB", "SCHEMA_STATEMENTS", "create_mysql_engine", "drop_tables"]
