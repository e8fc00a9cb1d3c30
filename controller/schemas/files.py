"""Pydantic schemas for file operation endpoints."""

from typing import List, Optional
from pydantic import BaseModel

from common.types import FilePatch, FileRecord


class FileResponse(BaseModel):
    """Response model for file metadata. The storage path is never exposed."""
    file_id: str
    name: str
    content_type: str
    description: str
    owner_id: str
    is_encrypted: bool
    size: int
    created_at: str
    updated_at: str
    replaced_file_id: Optional[str] = None

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileResponse":
        return cls(
            file_id=record.file_id,
            name=record.name,
            content_type=record.content_type,
            description=record.description,
            owner_id=record.owner_id,
            is_encrypted=record.is_encrypted,
            size=record.size,
            created_at=record.created_at.isoformat(),
            updated_at=record.updated_at.isoformat(),
            replaced_file_id=record.replaced_file_id,
        )


class ListFilesResponse(BaseModel):
    """Response model for file listing."""
    files: List[FileResponse]


class UpdateFileRequest(BaseModel):
    """Request model for file metadata updates. Empty fields are left unchanged."""
    name: Optional[str] = None
    content_type: Optional[str] = None
    description: Optional[str] = None

    def to_patch(self) -> FilePatch:
        return FilePatch(
            name=self.name,
            content_type=self.content_type,
            description=self.description,
        )
