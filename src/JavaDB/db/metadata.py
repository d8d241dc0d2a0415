"""Metadata record describing a built database.

Stored next to the database as ``<cache_dir>/db/metadata.json`` with the key
names consumers of the published database already read::

    {"Version": 1, "UpdatedAt": "...Z", "NextUpdate": "...Z"}
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..io_safe import atomic_write_text

logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"


class Metadata(BaseModel):
    """Schema version and freshness stamps of a database build."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: int = Field(alias="Version", ge=1)
    updated_at: datetime = Field(alias="UpdatedAt")
    next_update: datetime = Field(alias="NextUpdate")

    @field_validator("updated_at", "next_update")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class MetadataClient:
    """Reads and writes the metadata record in ``db_dir``."""

    def __init__(self, db_dir: Path) -> None:
        self.db_dir = Path(db_dir)
        self.path = self.db_dir / METADATA_FILE

    def update(self, metadata: Metadata) -> None:
        atomic_write_text(self.path, metadata.model_dump_json(by_alias=True, indent=2) + "\n")
        logger.info(
            "metadata written",
            extra={"path": str(self.path), "version": metadata.version},
        )

    def get(self) -> Optional[Metadata]:
        """Return the stored metadata, or ``None`` when absent or unreadable."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return Metadata.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "ignoring unreadable metadata",
                extra={"path": str(self.path), "error_count": exc.error_count()},
            )
            return None

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)


__all__ = ["Metadata", "MetadataClient", "METADATA_FILE"]
