"""File repository: SQLite-backed metadata store for the storage engine."""

import sqlite3
from datetime import datetime
from typing import List, Optional

from common.logging_config import get_logger
from common.types import FileRecord, utc_now
from controller.database import DbPath, get_db_connection
from engine.exceptions import MetadataError

logger = get_logger(__name__)

_COLUMNS = (
    "file_id, name, content_type, storage_path, description, owner_id, "
    "is_encrypted, size, created_at, updated_at, deleted_at, replaced_file_id"
)


def _row_to_record(row: sqlite3.Row) -> FileRecord:
    return FileRecord(
        file_id=row["file_id"],
        name=row["name"],
        content_type=row["content_type"],
        storage_path=row["storage_path"],
        description=row["description"],
        owner_id=row["owner_id"],
        is_encrypted=bool(row["is_encrypted"]),
        size=row["size"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
        deleted_at=datetime.fromisoformat(row["deleted_at"]) if row["deleted_at"] else None,
        replaced_file_id=row["replaced_file_id"],
    )


class FileRepository:
    """
    MetadataStore implementation on top of the files table.

    Deletes are soft: deleted_at is stamped and the row is hidden from reads.
    """

    def __init__(self, db_path: DbPath):
        self.db_path = db_path

    def create(self, record: FileRecord) -> str:
        logger.debug(f"Creating file record [file_id={record.file_id}]")
        try:
            with get_db_connection(self.db_path) as conn:
                conn.execute(
                    f"INSERT INTO files ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        record.file_id,
                        record.name,
                        record.content_type,
                        record.storage_path,
                        record.description,
                        record.owner_id,
                        int(record.is_encrypted),
                        record.size,
                        record.created_at.isoformat(),
                        record.updated_at.isoformat(),
                        None,
                        record.replaced_file_id,
                    )
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to create file record [file_id={record.file_id}]: {e}", exc_info=True)
            raise MetadataError(f"Error creating file record: {e}") from e

        logger.info(f"File record created [file_id={record.file_id}]")
        return record.file_id

    def get(self, file_id: str) -> Optional[FileRecord]:
        try:
            with get_db_connection(self.db_path) as conn:
                row = conn.execute(
                    f"SELECT {_COLUMNS} FROM files WHERE file_id = ? AND deleted_at IS NULL",
                    (file_id,)
                ).fetchone()
        except sqlite3.Error as e:
            raise MetadataError(f"Error loading file record {file_id}: {e}") from e

        if row is None:
            return None
        return _row_to_record(row)

    def save(self, record: FileRecord) -> None:
        """
        Persist the mutable fields of an existing record.

        owner_id and is_encrypted are not written.
        """
        try:
            with get_db_connection(self.db_path) as conn:
                cursor = conn.execute(
                    """
                    UPDATE files
                    SET name = ?, content_type = ?, storage_path = ?, description = ?, updated_at = ?
                    WHERE file_id = ? AND deleted_at IS NULL
                    """,
                    (
                        record.name,
                        record.content_type,
                        record.storage_path,
                        record.description,
                        record.updated_at.isoformat(),
                        record.file_id,
                    )
                )
                conn.commit()
                updated_rows = cursor.rowcount
        except sqlite3.Error as e:
            logger.error(f"Failed to update file record [file_id={record.file_id}]: {e}", exc_info=True)
            raise MetadataError(f"Error updating file record: {e}") from e

        if updated_rows == 0:
            raise MetadataError(f"File record {record.file_id} does not exist")

    def delete(self, file_id: str) -> None:
        """
        Soft delete a file record.
        """
        logger.debug(f"Deleting file [file_id={file_id}]")
        try:
            with get_db_connection(self.db_path) as conn:
                cursor = conn.execute(
                    "UPDATE files SET deleted_at = ? WHERE file_id = ? AND deleted_at IS NULL",
                    (utc_now().isoformat(), file_id)
                )
                conn.commit()
                updated_rows = cursor.rowcount
        except sqlite3.Error as e:
            logger.error(f"Failed to delete file [file_id={file_id}]: {e}", exc_info=True)
            raise MetadataError(f"Error deleting file record: {e}") from e

        if updated_rows == 0:
            raise MetadataError(f"File record {file_id} does not exist")
        logger.info(f"File deleted successfully [file_id={file_id}]")

    def list(self) -> List[FileRecord]:
        try:
            with get_db_connection(self.db_path) as conn:
                rows = conn.execute(
                    f"SELECT {_COLUMNS} FROM files WHERE deleted_at IS NULL ORDER BY created_at DESC"
                ).fetchall()
        except sqlite3.Error as e:
            raise MetadataError(f"Error listing file records: {e}") from e

        return [_row_to_record(row) for row in rows]

    def find_by_owner_and_name(self, owner_id: str, name: str) -> Optional[FileRecord]:
        try:
            with get_db_connection(self.db_path) as conn:
                row = conn.execute(
                    f"""SELECT {_COLUMNS} FROM files
                        WHERE owner_id = ? AND name = ? AND deleted_at IS NULL
                        ORDER BY created_at DESC LIMIT 1""",
                    (owner_id, name)
                ).fetchone()
        except sqlite3.Error as e:
            raise MetadataError(f"Error looking up file '{name}': {e}") from e

        if row is None:
            return None
        return _row_to_record(row)
