# === NAVMAP v1 ===
# {
#   "module": "JavaDB.builder",
#   "purpose": "Load the crawl cache into a storage engine and stamp the metadata record",
#   "sections": [
#     {"id": "builder", "name": "Builder", "anchor": "BLD", "kind": "api"},
#     {"id": "run", "name": "Build Command Flow", "anchor": "RUN", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Builder turning the crawl cache into a queryable database.

Unit files are read in lexicographic order and their indexes are inserted in
fixed-size batches, one transaction per batch, so two builds of the same cache
produce the same rows.  The metadata record is written only after every batch
has committed and the database has been compacted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from tqdm import tqdm

from .cache import CacheEntry, CrawlCache
from .db import SCHEMA_VERSION, DB, Metadata, MetadataClient, metadata_dir
from .db import new as new_db
from .db import reset as reset_db
from .errors import BuildError, DatabaseError, JavaDBError
from .settings import BuildSettings, DatabaseConfig
from .types import Index

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BuildReport:
    """Outcome of a successful build."""

    unit_files: int = 0
    indexes_submitted: int = 0
    batches: int = 0
    rows: Dict[str, int] = field(default_factory=dict)
    metadata: Optional[Metadata] = None


# ============================================================================
# BUILDER (BLD)
# ============================================================================


class Builder:
    """Loads every cache unit into ``db`` and records the build in ``meta``."""

    def __init__(
        self,
        db: DB,
        meta: MetadataClient,
        *,
        batch_size: int = 1000,
        update_interval: timedelta = timedelta(hours=72),
        clock: Callable[[], datetime] = _utcnow,
        show_progress: bool = False,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.db = db
        self.meta = meta
        self.batch_size = batch_size
        self.update_interval = update_interval
        self.clock = clock
        self.show_progress = show_progress

    def build(self, cache_dir: Path) -> BuildReport:
        """Load ``cache_dir`` into the database.

        Args:
            cache_dir: Crawl cache root (the directory holding ``indexes/``).

        Returns:
            Counters of the load and the metadata that was written.

        Raises:
            BuildError: If the cache is missing or malformed, or a batch,
                the vacuum or the metadata write fails.
        """
        cache = CrawlCache(cache_dir)
        if not cache.root.is_dir():
            raise BuildError(f"no crawl cache found at {cache.root}")

        report = BuildReport()
        files = list(cache.iter_unit_files())
        logger.info(
            "build started",
            extra={"cache_dir": str(cache_dir), "unit_files": len(files)},
        )

        batch: List[Index] = []
        for path in tqdm(files, desc="Building", unit="file", disable=not self.show_progress):
            entry = self._load(path)
            report.unit_files += 1
            for index in entry.to_indexes():
                batch.append(index)
                if len(batch) == self.batch_size:
                    self._flush(batch, report)
                    batch = []
        if batch:
            self._flush(batch, report)

        try:
            self.db.vacuum()
            report.rows = self.db.count_rows()
        except DatabaseError as exc:
            raise BuildError(f"failed to finalize database: {exc}") from exc

        now = self.clock()
        metadata = Metadata(
            version=SCHEMA_VERSION,
            updated_at=now,
            next_update=now + self.update_interval,
        )
        try:
            self.meta.update(metadata)
        except OSError as exc:
            raise BuildError(f"failed to write metadata: {exc}") from exc
        report.metadata = metadata

        logger.info(
            "build finished",
            extra={
                "unit_files": report.unit_files,
                "batches": report.batches,
                "artifacts": report.rows.get("artifacts"),
                "indices": report.rows.get("indices"),
            },
        )
        return report

    @staticmethod
    def _load(path: Path) -> CacheEntry:
        try:
            return CacheEntry.from_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise BuildError(f"malformed cache file {path}: {exc}") from exc

    def _flush(self, batch: List[Index], report: BuildReport) -> None:
        try:
            self.db.insert_indexes(batch)
        except DatabaseError as exc:
            raise BuildError(f"batch {report.batches + 1} failed: {exc}") from exc
        report.batches += 1
        report.indexes_submitted += len(batch)
        logger.debug("batch committed", extra={"batch": report.batches, "size": len(batch)})


# ============================================================================
# BUILD COMMAND FLOW (RUN)
# ============================================================================


def run_build(
    cache_dir: Path,
    db_config: DatabaseConfig,
    settings: Optional[BuildSettings] = None,
    *,
    clock: Callable[[], datetime] = _utcnow,
) -> BuildReport:
    """Reset the target, create the schema, load the cache and stamp metadata.

    On any failure the partially loaded target is wiped again, so a failed
    build never leaves a database that looks usable.
    """
    settings = settings or BuildSettings()
    meta = MetadataClient(metadata_dir(cache_dir))
    meta.delete()
    reset_db(db_config)

    db = new_db(db_config)
    try:
        db.init()
        report = Builder(
            db,
            meta,
            batch_size=settings.batch_size,
            update_interval=timedelta(hours=settings.update_interval_hours),
            clock=clock,
            show_progress=settings.show_progress,
        ).build(cache_dir)
    except BaseException:
        db.close()
        _discard_target(db_config, meta)
        raise
    db.close()
    return report


def _discard_target(db_config: DatabaseConfig, meta: MetadataClient) -> None:
    meta.delete()
    try:
        reset_db(db_config)
    except JavaDBError:
        logger.exception("failed to wipe database after a failed build")


__all__ = ["Builder", "BuildReport", "run_build"]
