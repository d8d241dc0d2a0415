"""Storage engine contract shared by the SQLite and MySQL backends.

Both engines keep the same two-table schema:

``artifacts(id, group_id, artifact_id)``
    One row per ``(artifact_id, group_id)`` pair (unique), surrogate key ``id``.
``indices(artifact_id, version, sha1, archive_type)``
    One row per release file; ``sha1`` is globally unique and the first writer
    wins, ``artifact_id`` references ``artifacts.id``.
"""

from __future__ import annotations

import binascii
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
    runtime_checkable,
)

from ..errors import Sha1DecodeError
from ..types import ArchiveType, Index

Sha1Like = Union[str, bytes]

# Column order shared by every SELECT in both engines.
INDEX_COLUMNS = "a.group_id, a.artifact_id, i.version, i.sha1, i.archive_type"


@runtime_checkable
class DB(Protocol):
    """Abstract storage engine; each instance owns one connection or pool."""

    def init(self) -> None:
        """Create tables and indexes; fails if they already exist."""
        ...

    def close(self) -> None:
        ...

    def vacuum(self) -> None:
        """Compact storage after a bulk load."""
        ...

    def insert_indexes(self, indexes: Sequence[Index]) -> None:
        """Insert one batch atomically, ignoring duplicate pairs and hashes."""
        ...

    def select_index_by_sha1(self, sha1: Sha1Like) -> Optional[Index]:
        ...

    def select_index_by_artifact_id_and_group_id(
        self, artifact_id: str, group_id: str
    ) -> Optional[Index]:
        ...

    def select_indexes_by_artifact_id_and_file_type(
        self, artifact_id: str, version: str, archive_type: Union[ArchiveType, str]
    ) -> List[Index]:
        """All rows of every artifact named ``artifact_id`` that has a row for
        ``version`` packaged as ``archive_type``."""
        ...

    def count_rows(self) -> Dict[str, int]:
        ...


def decode_sha1(sha1: Sha1Like) -> bytes:
    """Return raw digest bytes for a hex string or pass bytes through.

    Raises:
        Sha1DecodeError: If ``sha1`` is a string that is not valid hexadecimal.
    """
    if isinstance(sha1, (bytes, bytearray, memoryview)):
        return bytes(sha1)
    try:
        return binascii.unhexlify(sha1.strip())
    except (binascii.Error, ValueError) as exc:
        raise Sha1DecodeError(f"sha1 decode error: {sha1!r} is not hexadecimal") from exc


def archive_type_value(archive_type: Union[ArchiveType, str]) -> str:
    if isinstance(archive_type, ArchiveType):
        return archive_type.value
    return str(archive_type)


def row_to_index(row: Sequence[Any]) -> Index:
    group_id, artifact_id, version, sha1, archive_type = row
    return Index(
        group_id=group_id,
        artifact_id=artifact_id,
        version=version,
        sha1=bytes(sha1),
        archive_type=ArchiveType(archive_type),
    )


def distinct_artifacts(indexes: Iterable[Index]) -> List[Tuple[str, str]]:
    """Distinct ``(group_id, artifact_id)`` pairs in first-seen order."""
    seen: Dict[Tuple[str, str], None] = {}
    for index in indexes:
        seen.setdefault((index.group_id, index.artifact_id), None)
    return list(seen)


__all__ = [
    "DB",
    "INDEX_COLUMNS",
    "Sha1Like",
    "archive_type_value",
    "decode_sha1",
    "distinct_artifacts",
    "row_to_index",
]
