# === NAVMAP v1 ===
# {
#   "module": "JavaDB.crawler",
#   "purpose": "Walk the remote Maven tree with a bounded worker pool and fill the crawl cache",
#   "sections": [
#     {"id": "options", "name": "Options & Report", "anchor": "OPT", "kind": "models"},
#     {"id": "crawler", "name": "Crawler", "anchor": "CRW", "kind": "api"},
#     {"id": "units", "name": "Unit Processing", "anchor": "UNT", "kind": "infra"}
#   ]
# }
# === /NAVMAP ===

"""Crawler for the remote Maven repository.

The repository tree is walked one directory at a time.  Every directory is a
*crawl unit* placed on a work queue that ``limit`` worker threads consume, so
at most ``limit`` units are in flight.  A directory whose ``maven-metadata.xml``
lists versions for an artifact named like the directory is an *artifact unit*:
its release files are hashed (from the published ``.sha1`` sidecar) and the
result is written to the crawl cache as a single file.  Any other directory
just enqueues its sub-directories.

A failing unit is recorded and its siblings keep going; the crawl fails as a
whole only when the share of failed units exceeds ``tolerance``.  Cancellation
is cooperative: queued units are drained without work and in-flight units stop
before their next request without touching the cache.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from queue import Queue
from typing import List, Optional

from .cache import CachedFile, CacheEntry, CrawlCache
from .cancellation import CancellationToken
from .errors import (
    CrawlError,
    OperationCancelled,
    RepositoryError,
    UnitCrawlError,
    UserConfigError,
)
from .maven import METADATA_FILE, MavenMetadata, parse_metadata, parse_sha1, release_files
from .network import MavenRepository, RepositoryClient
from .settings import HttpSettings

logger = logging.getLogger(__name__)

_PROGRESS_EVERY = 1000


# ============================================================================
# OPTIONS & REPORT (OPT)
# ============================================================================


@dataclass(frozen=True)
class CrawlerOption:
    """Crawl parameters.

    Attributes:
        limit: Worker pool size, i.e. maximum number of units in flight.
        cache_dir: Root of the crawl cache.
        tolerance: Fraction of visited units allowed to fail.
        compute_missing: Hash release files that have no ``.sha1`` sidecar.
    """

    limit: int
    cache_dir: Path
    tolerance: float = 0.0
    compute_missing: bool = False

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise UserConfigError(f"limit must be positive, got {self.limit}")
        if not 0.0 <= self.tolerance <= 1.0:
            raise UserConfigError(f"tolerance must be within [0, 1], got {self.tolerance}")


@dataclass
class CrawlReport:
    """Counters collected while crawling."""

    units_visited: int = 0
    artifacts_written: int = 0
    indexes_found: int = 0
    failures: List[UnitCrawlError] = field(default_factory=list)
    cancelled: bool = False

    @property
    def failure_ratio(self) -> float:
        if self.units_visited == 0:
            return 0.0
        return len(self.failures) / self.units_visited


# ============================================================================
# CRAWLER (CRW)
# ============================================================================


class Crawler:
    """Bounded-concurrency walker writing artifact units into the crawl cache.

    Args:
        option: Crawl parameters.
        repository: Remote access capability; a :class:`MavenRepository` built
            from ``http_settings`` is used (and closed) when omitted.
        http_settings: HTTP settings for the default repository client.
    """

    def __init__(
        self,
        option: CrawlerOption,
        repository: Optional[RepositoryClient] = None,
        http_settings: Optional[HttpSettings] = None,
    ) -> None:
        self.option = option
        self.cache = CrawlCache(option.cache_dir)
        self._repository = repository
        self._http_settings = http_settings or HttpSettings()
        self._lock = threading.Lock()
        self._report = CrawlReport()

    def crawl(self, token: Optional[CancellationToken] = None) -> CrawlReport:
        """Crawl the whole repository tree.

        Args:
            token: Cancellation token; a private one is created when omitted.

        Returns:
            Report of the completed crawl.

        Raises:
            CrawlError: When cancelled, or when failures exceed the tolerance.
        """
        token = token or CancellationToken()
        self._report = CrawlReport()
        repository = self._repository
        owns_repository = repository is None
        if repository is None:
            repository = MavenRepository(self._http_settings, token=token)

        logger.info(
            "crawl started",
            extra={"cache_dir": str(self.option.cache_dir), "limit": self.option.limit},
        )
        try:
            self._run(repository, token)
        finally:
            if owns_repository:
                repository.close()

        report = self._report
        report.cancelled = token.is_cancelled()
        return self._finish(report)

    def _run(self, repository: RepositoryClient, token: CancellationToken) -> None:
        units: "Queue[Optional[str]]" = Queue()
        units.put("")

        threads = []
        for i in range(self.option.limit):
            t = threading.Thread(
                target=self._worker_loop,
                args=(units, repository, token),
                daemon=True,
                name=f"crawl-worker-{i}",
            )
            t.start()
            threads.append(t)

        try:
            units.join()
        except BaseException:
            # interrupted while waiting: let in-flight units wind down
            token.cancel()
            raise
        finally:
            for _ in threads:
                units.put(None)
        for t in threads:
            t.join()

    def _worker_loop(
        self,
        units: "Queue[Optional[str]]",
        repository: RepositoryClient,
        token: CancellationToken,
    ) -> None:
        while True:
            path = units.get()
            try:
                if path is None:
                    return
                if token.is_cancelled():
                    continue
                self._visit(path, units, repository, token)
            finally:
                units.task_done()

    def _visit(
        self,
        path: str,
        units: "Queue[Optional[str]]",
        repository: RepositoryClient,
        token: CancellationToken,
    ) -> None:
        with self._lock:
            self._report.units_visited += 1
            visited = self._report.units_visited
        if visited % _PROGRESS_EVERY == 0:
            logger.info(
                "crawl progress",
                extra={
                    "units_visited": visited,
                    "artifacts_written": self._report.artifacts_written,
                    "pending": units.qsize(),
                },
            )

        try:
            _UnitVisitor(self, path, repository, token).run(units)
        except OperationCancelled:
            logger.debug("unit abandoned", extra={"path": path})
        except (RepositoryError, ValueError, OSError) as exc:
            logger.warning("unit failed: %s", exc, extra={"path": path})
            self._record_failure(path, exc)
        except Exception as exc:
            logger.exception("unexpected error in unit", extra={"path": path})
            self._record_failure(path, exc)

    def _record_failure(self, path: str, exc: BaseException) -> None:
        with self._lock:
            self._report.failures.append(UnitCrawlError(path or "/", exc))

    def _record_artifact(self, indexes: int) -> None:
        with self._lock:
            self._report.artifacts_written += 1
            self._report.indexes_found += indexes

    def _finish(self, report: CrawlReport) -> CrawlReport:
        failures = sorted(report.failures, key=lambda f: f.path)
        if report.cancelled:
            raise CrawlError(
                f"crawl cancelled after {report.units_visited} units "
                f"({report.artifacts_written} artifacts written)",
                failures=failures,
                cancelled=True,
            )
        if failures and report.failure_ratio > self.option.tolerance:
            raise CrawlError(
                f"{len(failures)} of {report.units_visited} crawl units failed "
                f"(tolerance {self.option.tolerance:.2%}); first: {failures[0]}",
                failures=failures,
            )
        for failure in failures:
            logger.warning("tolerated unit failure: %s", failure, extra={"path": failure.path})
        logger.info(
            "crawl finished",
            extra={
                "units_visited": report.units_visited,
                "artifacts_written": report.artifacts_written,
                "indexes_found": report.indexes_found,
                "failures": len(failures),
            },
        )
        return report


# ============================================================================
# UNIT PROCESSING (UNT)
# ============================================================================


class _UnitVisitor:
    """Processes one remote directory on behalf of a worker thread."""

    def __init__(
        self,
        crawler: Crawler,
        path: str,
        repository: RepositoryClient,
        token: CancellationToken,
    ) -> None:
        self.crawler = crawler
        self.path = path
        self.repository = repository
        self.token = token

    def run(self, units: "Queue[Optional[str]]") -> None:
        entries = self._list_dir(self.path)
        metadata = self._artifact_metadata(entries)
        skip = set()
        if metadata is not None:
            self._crawl_artifact(metadata)
        elif len(self._segments()) >= 2:
            # the directory may have been an artifact on a previous crawl
            self._drop_stale_entry()
            # version directories belong to this unit; anything else is a nested artifact
            skip = {f"{v}/" for v in metadata.versions}

        for entry in entries:
            if entry.endswith("/") and entry not in skip:
                units.put(self.path + entry)

    # -- requests --------------------------------------------------------

    def _checkpoint(self) -> None:
        if self.token.is_cancelled():
            raise OperationCancelled(f"crawl cancelled while visiting {self.path or '/'}")

    def _list_dir(self, path: str) -> List[str]:
        self._checkpoint()
        return self.repository.list_dir(path)

    def _fetch_text(self, path: str) -> Optional[str]:
        self._checkpoint()
        return self.repository.fetch_text(path)

    def _sha1_of(self, path: str) -> Optional[bytes]:
        self._checkpoint()
        return self.repository.sha1_of(path)

    # -- artifact units --------------------------------------------------

    def _segments(self) -> List[str]:
        return [s for s in self.path.split("/") if s]

    def _artifact_metadata(self, entries: List[str]) -> Optional[MavenMetadata]:
        segments = self._segments()
        if METADATA_FILE not in entries or len(segments) < 2:
            return None
        text = self._fetch_text(self.path + METADATA_FILE)
        if text is None:
            return None
        metadata = parse_metadata(text)
        if not metadata.versions or metadata.artifact_id != segments[-1]:
            return None
        return metadata

    def _crawl_artifact(self, metadata: MavenMetadata) -> None:
        segments = self._segments()
        group_id = ".".join(segments[:-1])
        artifact_id = segments[-1]
        if metadata.group_id and metadata.group_id != group_id:
            logger.debug(
                "metadata groupId differs from directory layout",
                extra={"path": self.path, "group_id": metadata.group_id},
            )

        files: List[CachedFile] = []
        for version in metadata.release_versions():
            files.extend(self._crawl_version(artifact_id, version))

        if not files:
            logger.debug("artifact has no release archives", extra={"path": self.path})
            self._drop_stale_entry()
            return

        self._checkpoint()
        entry = CacheEntry(group_id=group_id, artifact_id=artifact_id, files=tuple(files))
        self.crawler.cache.write(entry)
        self.crawler._record_artifact(len(files))

    def _drop_stale_entry(self) -> None:
        segments = self._segments()
        self._checkpoint()
        if self.crawler.cache.remove(".".join(segments[:-1]), segments[-1]):
            logger.info("removed stale cache entry", extra={"path": self.path})

    def _crawl_version(self, artifact_id: str, version: str) -> List[CachedFile]:
        version_dir = f"{self.path}{version}/"
        try:
            listing = self._list_dir(version_dir)
        except RepositoryError as exc:
            if exc.status_code == 404:
                logger.debug("version directory missing", extra={"path": version_dir})
                return []
            raise

        names = set(listing)
        files = []
        for archive_type, filename in sorted(
            release_files(artifact_id, version, listing), key=lambda item: item[1]
        ):
            sha1 = self._file_sha1(version_dir + filename, f"{filename}.sha1" in names)
            if sha1 is not None:
                files.append(CachedFile(version=version, archive_type=archive_type, sha1=sha1))
        return files

    def _file_sha1(self, file_path: str, has_sidecar: bool) -> Optional[bytes]:
        text = self._fetch_text(file_path + ".sha1") if has_sidecar else None
        if text is not None:
            return parse_sha1(text)
        if not self.crawler.option.compute_missing:
            logger.warning("missing sha1 checksum, skipping", extra={"path": file_path})
            return None
        return self._sha1_of(file_path)


__all__ = ["Crawler", "CrawlerOption", "CrawlReport"]
