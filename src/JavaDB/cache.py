# === NAVMAP v1 ===
# {
#   "module": "JavaDB.cache",
#   "purpose": "On-disk crawl cache shared between the crawler and the builder",
#   "sections": [
#     {"id": "records", "name": "Cache Records", "anchor": "REC", "kind": "models"},
#     {"id": "store", "name": "CrawlCache", "anchor": "STO", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""On-disk crawl cache.

Each artifact directory crawled from the repository becomes one JSON file at
``<cache_dir>/indexes/<group path>/<artifact_id>.json``::

    {
      "artifact_id": "commons-lang3",
      "files": [
        {"archive_type": "jar", "sha1": "…40 hex…", "version": "3.0"}
      ],
      "group_id": "org.apache.commons"
    }

Path segments are percent-encoded, so identifiers containing characters such
as ``+`` or ``/`` still map to exactly one file inside the cache.

Keys are sorted and indentation is fixed so that re-crawling an unchanged
remote tree reproduces byte-identical files.  The crawler is the only writer
(and the only one that removes entries); the builder only reads.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple
from urllib.parse import quote

from .io_safe import atomic_write_text
from .types import ArchiveType, Index

INDEX_DIR = "indexes"
UNIT_SUFFIX = ".json"


# ============================================================================
# CACHE RECORDS (REC)
# ============================================================================


@dataclass(frozen=True)
class CachedFile:
    """One release file of an artifact."""

    version: str
    archive_type: ArchiveType
    sha1: bytes

    def to_dict(self) -> dict:
        return {
            "archive_type": self.archive_type.value,
            "sha1": self.sha1.hex(),
            "version": self.version,
        }


@dataclass(frozen=True)
class CacheEntry:
    """Everything the crawler learned about one artifact directory."""

    group_id: str
    artifact_id: str
    files: Tuple[CachedFile, ...]

    def to_indexes(self) -> List[Index]:
        return [
            Index(
                group_id=self.group_id,
                artifact_id=self.artifact_id,
                version=f.version,
                sha1=f.sha1,
                archive_type=f.archive_type,
            )
            for f in self.files
        ]

    def to_json(self) -> str:
        payload = {
            "artifact_id": self.artifact_id,
            "files": [f.to_dict() for f in self.files],
            "group_id": self.group_id,
        }
        return json.dumps(payload, sort_keys=True, indent=2, ensure_ascii=False) + "\n"

    @classmethod
    def from_json(cls, text: str) -> "CacheEntry":
        """Parse a cache unit file.

        Raises:
            ValueError: If the document is not valid JSON or misses a field, or
                a hash is not a 20-byte hex digest, or an archive type is unknown.
        """
        try:
            payload: Any = json.loads(text)
            files = tuple(_parse_file(item) for item in payload["files"])
            group_id = payload["group_id"]
            artifact_id = payload["artifact_id"]
        except (KeyError, TypeError) as exc:
            raise ValueError(f"malformed cache entry: {exc!r}") from exc
        # json.JSONDecodeError is a ValueError and propagates unchanged
        if not isinstance(group_id, str) or not isinstance(artifact_id, str):
            raise ValueError("malformed cache entry: identifiers must be strings")
        return cls(group_id=group_id, artifact_id=artifact_id, files=files)


def _parse_file(item: Any) -> CachedFile:
    sha1 = bytes.fromhex(item["sha1"])
    if len(sha1) != 20:
        raise ValueError(f"sha1 must be 20 bytes, got {len(sha1)}")
    version = item["version"]
    if not isinstance(version, str) or not version:
        raise ValueError("version must be a non-empty string")
    return CachedFile(
        version=version,
        archive_type=ArchiveType(item["archive_type"]),
        sha1=sha1,
    )


# ============================================================================
# CRAWL CACHE (STO)
# ============================================================================


class CrawlCache:
    """File-per-artifact cache rooted at ``<cache_dir>/indexes``."""

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = Path(cache_dir)
        self.root = self.cache_dir / INDEX_DIR

    def unit_path(self, group_id: str, artifact_id: str) -> Path:
        """Return the file holding the entry for ``group_id:artifact_id``.

        Raises:
            ValueError: If an identifier or group segment is empty.
        """
        segments = [_path_segment(s) for s in group_id.split(".")]
        return self.root.joinpath(*segments, _path_segment(artifact_id) + UNIT_SUFFIX)

    def write(self, entry: CacheEntry) -> Path:
        path = self.unit_path(entry.group_id, entry.artifact_id)
        atomic_write_text(path, entry.to_json())
        return path

    def remove(self, group_id: str, artifact_id: str) -> bool:
        """Delete the entry for ``group_id:artifact_id``; return whether one existed."""
        path = self.unit_path(group_id, artifact_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def read(self, group_id: str, artifact_id: str) -> Optional[CacheEntry]:
        path = self.unit_path(group_id, artifact_id)
        if not path.exists():
            return None
        return CacheEntry.from_json(path.read_text(encoding="utf-8"))

    def iter_unit_files(self) -> Iterator[Path]:
        """Yield unit files in lexicographic order of directories and names.

        Hidden files (including in-progress temporary files) are skipped.
        """
        if not self.root.is_dir():
            return
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for name in sorted(filenames):
                if name.startswith(".") or not name.endswith(UNIT_SUFFIX):
                    continue
                yield Path(dirpath) / name

    def count(self) -> int:
        return sum(1 for _ in self.iter_unit_files())


def _path_segment(value: str) -> str:
    if not value:
        raise ValueError("maven identifiers and group segments must be non-empty")
    encoded = quote(value, safe="")
    # a leading dot would make the entry hidden, or "." / ".." a directory reference
    if encoded.startswith("."):
        encoded = "%2E" + encoded[1:]
    return encoded


__all__ = ["INDEX_DIR", "CachedFile", "CacheEntry", "CrawlCache"]
