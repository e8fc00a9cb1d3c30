"""Metadata collaborator interface and an in-memory implementation."""

import logging
import threading
from typing import Dict, List, Optional, Protocol

from common.types import FileRecord, utc_now
from engine.exceptions import MetadataError

logger = logging.getLogger(__name__)


class MetadataStore(Protocol):
    """
    Key-value style store for FileRecords consumed by FileEngine.

    Implementations raise MetadataError on backend failures. Soft-deleted
    records are invisible to get(), list() and find_by_owner_and_name().
    """

    def create(self, record: FileRecord) -> str:
        ...

    def get(self, file_id: str) -> Optional[FileRecord]:
        ...

    def save(self, record: FileRecord) -> None:
        ...

    def delete(self, file_id: str) -> None:
        ...

    def list(self) -> List[FileRecord]:
        ...

    def find_by_owner_and_name(self, owner_id: str, name: str) -> Optional[FileRecord]:
        ...


class InMemoryMetadataStore:
    """
    Thread-safe MetadataStore kept in a dict, for embedding and tests.
    """

    def __init__(self):
        """Initialize empty store."""
        self._records: Dict[str, FileRecord] = {}
        self._lock = threading.Lock()

    def create(self, record: FileRecord) -> str:
        with self._lock:
            if record.file_id in self._records:
                raise MetadataError(f"File record {record.file_id} already exists")
            self._records[record.file_id] = record.copy()
        logger.debug(f"Created file record [file_id={record.file_id}]")
        return record.file_id

    def get(self, file_id: str) -> Optional[FileRecord]:
        with self._lock:
            record = self._records.get(file_id)
            if record is None or record.is_deleted:
                return None
            return record.copy()

    def save(self, record: FileRecord) -> None:
        with self._lock:
            existing = self._records.get(record.file_id)
            if existing is None or existing.is_deleted:
                raise MetadataError(f"File record {record.file_id} does not exist")
            self._records[record.file_id] = record.copy()

    def delete(self, file_id: str) -> None:
        """
        Soft delete a record by stamping deleted_at.
        """
        with self._lock:
            record = self._records.get(file_id)
            if record is None or record.is_deleted:
                raise MetadataError(f"File record {file_id} does not exist")
            self._records[file_id] = record.copy(deleted_at=utc_now())

    def list(self) -> List[FileRecord]:
        with self._lock:
            records = [r.copy() for r in self._records.values() if not r.is_deleted]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def find_by_owner_and_name(self, owner_id: str, name: str) -> Optional[FileRecord]:
        with self._lock:
            for record in self._records.values():
                if not record.is_deleted and record.owner_id == owner_id and record.name == name:
                    return record.copy()
        return None
