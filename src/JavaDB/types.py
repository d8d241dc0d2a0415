"""Domain types shared by the crawler, the builder, and the storage engines."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

__all__ = ["ArchiveType", "Index", "archive_type_from_filename"]


class ArchiveType(str, Enum):
    """Packaging extension of a published release file."""

    JAR = "jar"
    WAR = "war"
    EAR = "ear"
    AAR = "aar"
    HPI = "hpi"
    JPI = "jpi"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Index:
    """One discovered artifact release.

    Attributes:
        group_id: Maven group identifier, e.g. ``org.apache.commons``.
        artifact_id: Maven artifact identifier, e.g. ``commons-lang3``.
        version: Release version string.
        sha1: Raw 20-byte SHA-1 digest of the release file.
        archive_type: Packaging discovered from the file suffix.
    """

    group_id: str
    artifact_id: str
    version: str
    sha1: bytes
    archive_type: ArchiveType

    @property
    def sha1_hex(self) -> str:
        return self.sha1.hex()


def archive_type_from_filename(filename: str) -> Optional[ArchiveType]:
    """Return the archive type for ``filename`` or ``None`` for other suffixes."""

    _, dot, suffix = filename.rpartition(".")
    if not dot:
        return None
    try:
        return ArchiveType(suffix.lower())
    except ValueError:
        return None
