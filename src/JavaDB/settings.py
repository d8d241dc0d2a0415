# === NAVMAP v1 ===
# {
#   "module": "JavaDB.settings",
#   "purpose": "Typed settings for crawling, building, logging, and database selection",
#   "sections": [
#     {"id": "domains", "name": "Settings Domains", "anchor": "DOM", "kind": "models"},
#     {"id": "database", "name": "Database Selection", "anchor": "DBS", "kind": "models"},
#     {"id": "root", "name": "Root Settings & Singleton", "anchor": "ROOT", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Typed configuration for the Java DB crawler and builder.

Settings are grouped into small frozen pydantic models (HTTP, crawl, build,
logging) and assembled into :class:`JavaDBSettings`, a ``BaseSettings`` model
that reads ``JAVADB_*`` environment variables with ``__`` as the nested
delimiter (for example ``JAVADB_HTTP__TIMEOUT_READ=60``).  CLI options override
these values explicitly; nothing is read from ambient module state.

Database selection is modelled separately by :class:`DatabaseConfig`, which
holds exactly one of :class:`SqliteConfig` or :class:`MysqlConfig`.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Optional

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from .errors import UserConfigError

__all__ = [
    "APP_NAME",
    "MAVEN_CENTRAL_URL",
    "HttpSettings",
    "CrawlSettings",
    "BuildSettings",
    "LoggingSettings",
    "SqliteConfig",
    "MysqlConfig",
    "DatabaseConfig",
    "JavaDBSettings",
    "default_cache_dir",
    "resolve_database_config",
    "get_settings",
    "reset_settings",
]

APP_NAME = "java-db"
MAVEN_CENTRAL_URL = "https://repo.maven.apache.org/maven2/"


def default_cache_dir() -> Path:
    """Return the platform user-cache directory used when ``--cache-dir`` is omitted."""
    return Path(platformdirs.user_cache_dir(APP_NAME))


# ============================================================================
# SETTINGS DOMAINS (DOM)
# ============================================================================


class HttpSettings(BaseModel):
    """HTTP client settings for talking to the remote repository."""

    model_config = ConfigDict(frozen=True)

    repository_url: str = Field(
        default=MAVEN_CENTRAL_URL,
        description="Root URL of the Maven repository to crawl",
    )
    http2: bool = Field(default=False, description="Enable HTTP/2 support")
    timeout_connect: float = Field(default=10.0, gt=0.0, le=120.0)
    timeout_read: float = Field(default=60.0, gt=0.0, le=600.0)
    pool_max_connections: int = Field(
        default=1000,
        ge=1,
        le=10000,
        description="Max concurrent connections; should cover the crawl limit",
    )
    user_agent: str = Field(default="java-db (+https://github.com/aquasecurity/trivy-java-db)")
    max_attempts: int = Field(default=10, ge=1, le=50, description="Attempts per request")
    max_delay_seconds: int = Field(
        default=300,
        ge=1,
        le=3600,
        description="Overall retry deadline per request",
    )

    @field_validator("repository_url")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        """Directory URLs are joined relative to the root, which needs a trailing slash."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"repository_url must be an http(s) URL, got '{v}'")
        return v if v.endswith("/") else v + "/"


class CrawlSettings(BaseModel):
    """Crawler worker pool and cache placement."""

    model_config = ConfigDict(frozen=True)

    limit: int = Field(default=1000, ge=1, description="Max crawl units in flight")
    cache_dir: Path = Field(default_factory=default_cache_dir)
    tolerance: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Fraction of failed units tolerated before the crawl fails",
    )
    compute_missing: bool = Field(
        default=False,
        description="Download and hash release files that have no .sha1 sibling",
    )

    @field_validator("cache_dir", mode="before")
    @classmethod
    def expand_cache_dir(cls, v: Any) -> Path:
        return Path(v).expanduser()


class BuildSettings(BaseModel):
    """Builder batching and metadata stamping."""

    model_config = ConfigDict(frozen=True)

    batch_size: int = Field(default=1000, ge=1, description="Indexes per insert transaction")
    update_interval_hours: int = Field(
        default=72,
        ge=1,
        description="Hours until consumers should expect the next database",
    )
    show_progress: bool = Field(default=True, description="Render a progress bar")


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO", description="DEBUG, INFO, WARNING or ERROR")
    log_file: Optional[Path] = Field(default=None, description="Optional JSON-lines log file")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Normalize and validate logging level."""
        upper = str(v).upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {sorted(valid_levels)}, got '{v}'")
        return upper

    def level_int(self) -> int:
        """Convert level string to logging module integer."""
        return getattr(logging, self.level)


# ============================================================================
# DATABASE SELECTION (DBS)
# ============================================================================


class SqliteConfig(BaseModel):
    """Embedded single-file engine."""

    model_config = ConfigDict(frozen=True)

    db_path: Path

    @field_validator("db_path", mode="before")
    @classmethod
    def expand_db_path(cls, v: Any) -> Path:
        return Path(v).expanduser()


class MysqlConfig(BaseModel):
    """Networked engine reached through a SQLAlchemy URL.

    ``mysql://`` URLs are normalised to the PyMySQL driver.
    """

    model_config = ConfigDict(frozen=True)

    connect_url: str

    @field_validator("connect_url")
    @classmethod
    def validate_connect_url(cls, v: str) -> str:
        v = v.strip()
        if v.startswith("mysql://"):
            v = "mysql+pymysql://" + v[len("mysql://") :]
        try:
            url = make_url(v)
        except ArgumentError as exc:
            raise ValueError(f"malformed database connect url: {exc}") from exc
        if url.get_backend_name() != "mysql":
            raise ValueError(f"connect url must use the mysql dialect, got '{url.drivername}'")
        if not url.database:
            raise ValueError("connect url must name a database")
        return v


class DatabaseConfig(BaseModel):
    """Exactly one storage engine selection."""

    model_config = ConfigDict(frozen=True)

    sqlite: Optional[SqliteConfig] = None
    mysql: Optional[MysqlConfig] = None

    @model_validator(mode="after")
    def exactly_one_backend(self) -> "DatabaseConfig":
        if self.sqlite is None and self.mysql is None:
            raise ValueError("no database backend selected; use --sqlite or --mysql")
        if self.sqlite is not None and self.mysql is not None:
            raise ValueError("--sqlite and --mysql are mutually exclusive")
        return self

    @property
    def backend(self) -> str:
        return "sqlite" if self.sqlite is not None else "mysql"


def resolve_database_config(
    *,
    sqlite: bool,
    db_path: Optional[Path],
    mysql: bool,
    db_connect_url: Optional[str],
) -> DatabaseConfig:
    """Turn the build command's backend flags into a :class:`DatabaseConfig`.

    Args:
        sqlite: ``--sqlite`` flag.
        db_path: ``--db-path`` value, required together with ``--sqlite``.
        mysql: ``--mysql`` flag.
        db_connect_url: ``--db-connect-url`` value, required together with ``--mysql``.

    Returns:
        Validated database selection.

    Raises:
        UserConfigError: If no backend, both backends, or a flag without its
            companion is given, or the connect URL is malformed.
    """
    if sqlite and mysql:
        raise UserConfigError("--sqlite and --mysql are mutually exclusive")
    if sqlite != (db_path is not None):
        raise UserConfigError("--sqlite and --db-path must be used together")
    if mysql != (db_connect_url is not None):
        raise UserConfigError("--mysql and --db-connect-url must be used together")
    try:
        if sqlite:
            return DatabaseConfig(sqlite=SqliteConfig(db_path=db_path))
        if mysql:
            return DatabaseConfig(mysql=MysqlConfig(connect_url=db_connect_url))
        return DatabaseConfig()
    except PydanticValidationError as exc:
        messages = "; ".join(err["msg"] for err in exc.errors())
        raise UserConfigError(messages) from exc


# ============================================================================
# ROOT SETTINGS & SINGLETON (ROOT)
# ============================================================================


class JavaDBSettings(BaseSettings):
    """Root settings assembled from defaults and ``JAVADB_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="JAVADB_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    http: HttpSettings = Field(default_factory=HttpSettings)
    crawl: CrawlSettings = Field(default_factory=CrawlSettings)
    build: BuildSettings = Field(default_factory=BuildSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


_settings: Optional[JavaDBSettings] = None
_settings_lock = threading.Lock()


def get_settings() -> JavaDBSettings:
    """Return the process-wide settings, loading them from the environment once.

    Raises:
        UserConfigError: If an environment override does not validate.
    """
    global _settings
    if _settings is not None:
        return _settings
    with _settings_lock:
        if _settings is None:
            try:
                _settings = JavaDBSettings()
            except PydanticValidationError as exc:
                raise UserConfigError(f"invalid JAVADB_* settings: {exc}") from exc
        return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment (tests)."""
    global _settings
    with _settings_lock:
        _settings = None
