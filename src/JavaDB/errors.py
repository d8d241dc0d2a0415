# === NAVMAP v1 ===
# {
#   "module": "JavaDB.errors",
#   "purpose": "Define the exception hierarchy used across crawling, cache building, and storage",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "configuration", "name": "Configuration Errors", "anchor": "CFG", "kind": "api"},
#     {"id": "storage", "name": "Storage Errors", "anchor": "STO", "kind": "api"},
#     {"id": "crawl", "name": "Crawl & Build Errors", "anchor": "CRW", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Exception hierarchy shared across crawling, cache building, and storage.

The Java DB pipeline spans remote directory crawling, a file-based cache, and
two interchangeable relational backends.  Failures are grouped so callers can
react to high-level categories (configuration problems are fatal before any
work starts, per-unit crawl failures are aggregated, storage failures abort the
current command) while still having access to the specific subclass.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

__all__ = [
    "JavaDBError",
    "UserConfigError",
    "DatabaseError",
    "Sha1DecodeError",
    "RepositoryError",
    "UnitCrawlError",
    "CrawlError",
    "BuildError",
    "OperationCancelled",
]


class JavaDBError(RuntimeError):
    """Base exception for crawl, build, or storage failures."""


class UserConfigError(JavaDBError):
    """Raised when CLI arguments or settings are invalid."""


class DatabaseError(JavaDBError):
    """Raised when a storage engine cannot open, create its schema, or commit."""


class Sha1DecodeError(DatabaseError, ValueError):
    """Raised when a lookup receives a hash that is not valid hexadecimal."""


class RepositoryError(JavaDBError):
    """Raised when the remote repository cannot be listed or read."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OperationCancelled(JavaDBError):
    """Raised inside a worker when the crawl was cancelled mid-unit."""


class UnitCrawlError(JavaDBError):
    """Failure of a single crawl unit, tagged with the unit's remote path."""

    def __init__(self, path: str, cause: BaseException) -> None:
        super().__init__(f"{path}: {cause}")
        self.path = path
        self.cause = cause


class CrawlError(JavaDBError):
    """Aggregate error reported once the crawl has drained or was cancelled.

    Attributes:
        failures: Every unit failure collected during the crawl.
        cancelled: True when the crawl stopped because of a cancellation request.
    """

    def __init__(
        self,
        message: str,
        *,
        failures: Sequence[UnitCrawlError] = (),
        cancelled: bool = False,
    ) -> None:
        super().__init__(message)
        self.failures: Tuple[UnitCrawlError, ...] = tuple(failures)
        self.cancelled = cancelled


class BuildError(JavaDBError):
    """Raised when the cache cannot be parsed or a batch fails to load."""
