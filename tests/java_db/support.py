"""Builders and fakes shared by the JavaDB tests."""

from __future__ import annotations

import hashlib
import threading
from typing import Callable, Dict, List, Optional, Set

from JavaDB.errors import RepositoryError
from JavaDB.types import ArchiveType, Index

MYSQL_URL_ENV = "JAVADB_TEST_MYSQL_URL"


def sha1_of(data: bytes) -> bytes:
    return hashlib.sha1(data).digest()


def make_index(
    group_id: str = "org.example",
    artifact_id: str = "lib",
    version: str = "1.0",
    sha1: Optional[bytes] = None,
    archive_type: ArchiveType = ArchiveType.JAR,
) -> Index:
    if sha1 is None:
        sha1 = sha1_of(f"{group_id}:{artifact_id}:{version}:{archive_type}".encode())
    return Index(
        group_id=group_id,
        artifact_id=artifact_id,
        version=version,
        sha1=sha1,
        archive_type=archive_type,
    )


def metadata_xml(group_id: str, artifact_id: str, versions: List[str]) -> str:
    version_tags = "".join(f"<version>{v}</version>" for v in versions)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        "<metadata>"
        f"<groupId>{group_id}</groupId>"
        f"<artifactId>{artifact_id}</artifactId>"
        f"<versioning><versions>{version_tags}</versions></versioning>"
        "</metadata>"
    )


class FakeRepository:
    """In-memory RepositoryClient serving a tree of files keyed by path."""

    def __init__(self, files: Dict[str, str]) -> None:
        self.files = dict(files)
        self.failing: Set[str] = set()
        self.requests: List[str] = []
        self.on_request: Optional[Callable[[str], None]] = None
        self.binary: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def _record(self, path: str) -> None:
        with self._lock:
            self.requests.append(path)
        if self.on_request is not None:
            self.on_request(path)
        if path in self.failing:
            raise RepositoryError(f"GET {path} returned 500", status_code=500)

    def list_dir(self, path: str) -> List[str]:
        self._record(path)
        entries = []
        for name in sorted(set(self.files) | set(self.binary)):
            if not name.startswith(path):
                continue
            rest = name[len(path) :]
            head, sep, _ = rest.partition("/")
            entry = head + sep
            if entry not in entries:
                entries.append(entry)
        if not entries:
            raise RepositoryError(f"directory not found: {path}", status_code=404)
        return entries

    def fetch_text(self, path: str) -> Optional[str]:
        self._record(path)
        return self.files.get(path)

    def sha1_of(self, path: str) -> Optional[bytes]:
        self._record(path)
        data = self.binary.get(path)
        return sha1_of(data) if data is not None else None

    def close(self) -> None:
        pass


def add_artifact(
    files: Dict[str, str],
    group_id: str,
    artifact_id: str,
    versions: Dict[str, List[str]],
) -> None:
    """Publish ``artifact_id`` with a ``.sha1`` sidecar for each listed extension."""
    base = "/".join(group_id.split(".")) + f"/{artifact_id}/"
    files[base + "maven-metadata.xml"] = metadata_xml(group_id, artifact_id, list(versions))
    for version, extensions in versions.items():
        for ext in extensions:
            name = f"{base}{version}/{artifact_id}-{version}.{ext}"
            files[name] = "binary"
            digest = sha1_of(f"{group_id}:{artifact_id}:{version}:{ext}".encode()).hex()
            files[name + ".sha1"] = f"{digest}  {artifact_id}-{version}.{ext}\n"
        files[f"{base}{version}/{artifact_id}-{version}.pom"] = "<project/>"
