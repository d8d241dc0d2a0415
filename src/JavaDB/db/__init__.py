"""Storage engines for the SHA-1 index and the helpers that pick one.

``new`` opens the engine selected by a :class:`~JavaDB.settings.DatabaseConfig`;
``reset`` wipes the same target so that every build starts from scratch.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..settings import DatabaseConfig
from .base import DB, decode_sha1
from .metadata import Metadata, MetadataClient
from .mysql import MysqlDB, drop_tables
from .sqlite import SqliteDB, remove_database_files

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
DB_FILE_NAME = "java-db.sqlite"
DB_DIR = "db"


def metadata_dir(cache_dir: Path) -> Path:
    """Directory holding the metadata record for builds from ``cache_dir``."""
    return Path(cache_dir) / DB_DIR


def sqlite_path(db_path: Path) -> Path:
    """Resolve ``--db-path`` to the database file.

    A directory, existing or suffix-less, holds the database under the fixed
    name ``java-db.sqlite``; anything else is used as the file itself.

    Examples:
        >>> sqlite_path(Path("/tmp/out")).name
        'java-db.sqlite'
        >>> sqlite_path(Path("/tmp/index.db")).name
        'index.db'
    """
    db_path = Path(db_path)
    if db_path.is_dir() or not db_path.suffix:
        return db_path / DB_FILE_NAME
    return db_path


def new(config: DatabaseConfig) -> DB:
    """Open the storage engine selected by ``config``."""
    if config.sqlite is not None:
        return SqliteDB(sqlite_path(config.sqlite.db_path))
    return MysqlDB(config.mysql.connect_url)


def reset(config: DatabaseConfig) -> None:
    """Wipe the database target so the next ``init`` starts from an empty schema."""
    if config.sqlite is not None:
        path = sqlite_path(config.sqlite.db_path)
        remove_database_files(path)
        logger.info("database reset", extra={"backend": "sqlite", "db_path": str(path)})
    else:
        drop_tables(config.mysql.connect_url)
        logger.info("database reset", extra={"backend": "mysql"})


__all__ = [
    "DB",
    "DB_FILE_NAME",
    "Metadata",
    "MetadataClient",
    "MysqlDB",
    "SCHEMA_VERSION",
    "SqliteDB",
    "decode_sha1",
    "metadata_dir",
    "new",
    "reset",
    "sqlite_path",
]
