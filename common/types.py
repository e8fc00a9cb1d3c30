"""Shared data type definitions (FileRecord, FilePatch)."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass
class FileRecord:
    """
    Metadata for one stored file.

    storage_path is engine-internal and must never be handed to callers
    outside the engine unfiltered.
    """
    file_id: str
    name: str
    owner_id: str
    storage_path: str
    is_encrypted: bool = False
    content_type: str = ""
    description: str = ""
    size: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    deleted_at: Optional[datetime] = None
    replaced_file_id: Optional[str] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def copy(self, **changes) -> "FileRecord":
        return replace(self, **changes)


@dataclass(frozen=True)
class FilePatch:
    """
    Owner-supplied changes to a FileRecord.

    None or empty string leaves the field unchanged.
    """
    name: Optional[str] = None
    content_type: Optional[str] = None
    description: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.name or self.content_type or self.description)
