"""Parsing helpers for Maven repository metadata and checksum files.

``maven-metadata.xml`` at the artifact level lists every published version;
the same file name also appears at group level (plugin listings) and inside
version directories (snapshot timestamps), which carry no ``<versions>`` list
and are therefore not artifact units.  Checksum files come in several shapes
(bare digest, ``digest  filename``, ``SHA1(file)= digest``); the first 40 hex
characters win.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Tuple

from .errors import RepositoryError
from .types import ArchiveType, archive_type_from_filename

METADATA_FILE = "maven-metadata.xml"
SNAPSHOT_SUFFIX = "-SNAPSHOT"

_SHA1_PATTERN = re.compile(r"(?<![0-9a-fA-F])([0-9a-fA-F]{40})(?![0-9a-fA-F])")


class MetadataParseError(RepositoryError):
    """Raised when ``maven-metadata.xml`` is not well-formed XML."""


@dataclass(frozen=True)
class MavenMetadata:
    """Artifact-level ``maven-metadata.xml`` content."""

    group_id: str
    artifact_id: str
    versions: Tuple[str, ...]

    def release_versions(self) -> List[str]:
        """Versions in metadata order, snapshots and repeats removed."""
        seen = set()
        releases = []
        for version in self.versions:
            if version.endswith(SNAPSHOT_SUFFIX) or version in seen:
                continue
            seen.add(version)
            releases.append(version)
        return releases


def _strip_namespace(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> str:
    for child in element:
        if _strip_namespace(child.tag) == name:
            return (child.text or "").strip()
    return ""


def parse_metadata(text: str) -> MavenMetadata:
    """Parse ``maven-metadata.xml``.

    Args:
        text: Raw XML document.

    Returns:
        Parsed metadata; ``versions`` is empty for group-level or
        version-level metadata files.

    Raises:
        MetadataParseError: If the document is not well-formed.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise MetadataParseError(f"malformed maven-metadata.xml: {exc}") from exc

    versions: List[str] = []
    for element in root.iter():
        if _strip_namespace(element.tag) == "versions":
            versions.extend(
                (child.text or "").strip()
                for child in element
                if _strip_namespace(child.tag) == "version" and (child.text or "").strip()
            )
    return MavenMetadata(
        group_id=_child_text(root, "groupId"),
        artifact_id=_child_text(root, "artifactId"),
        versions=tuple(versions),
    )


def parse_sha1(text: str) -> bytes:
    """Extract the 20-byte digest from the body of a ``.sha1`` file.

    Raises:
        ValueError: If the body holds no 40-character hexadecimal digest.

    Examples:
        >>> parse_sha1("0a4f05b4e8b6d8a5a6c2b2f0f8c3c1a1e6b9d2f3  lib-1.0.jar").hex()
        '0a4f05b4e8b6d8a5a6c2b2f0f8c3c1a1e6b9d2f3'
    """
    match = _SHA1_PATTERN.search(text)
    if match is None:
        raise ValueError(f"malformed sha1 checksum: {text.strip()[:80]!r}")
    return bytes.fromhex(match.group(1))


def release_files(
    artifact_id: str, version: str, entries: Iterable[str]
) -> Iterator[Tuple[ArchiveType, str]]:
    """Yield ``(archive_type, filename)`` for the main release files of a version.

    Only ``<artifactId>-<version>.<ext>`` is a release file; classifier files
    such as ``-sources.jar`` or ``-javadoc.jar`` are not.
    """
    stem = f"{artifact_id}-{version}."
    for entry in entries:
        if entry.endswith("/") or not entry.startswith(stem):
            continue
        suffix = entry[len(stem) :]
        if "." in suffix:
            continue
        archive_type = archive_type_from_filename(entry)
        if archive_type is not None:
            yield archive_type, entry


__all__ = [
    "METADATA_FILE",
    "MavenMetadata",
    "MetadataParseError",
    "parse_metadata",
    "parse_sha1",
    "release_files",
]
