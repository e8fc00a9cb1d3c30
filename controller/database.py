"""Database schema and connection management for SQLite."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Union

DbPath = Union[str, Path]


def init_database(db_path: DbPath) -> None:
    """
    Initialize database and create tables if they don't exist.

    Args:
        db_path: Path of the SQLite database file
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection(db_path) as conn:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                username TEXT UNIQUE NOT NULL,
                password_hash TEXT NOT NULL,
                api_key TEXT UNIQUE,
                created_at TEXT NOT NULL,
                key_updated_at TEXT
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS files (
                file_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                content_type TEXT NOT NULL DEFAULT '',
                storage_path TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                owner_id TEXT NOT NULL,
                is_encrypted INTEGER NOT NULL DEFAULT 0,
                size INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                deleted_at TEXT,
                replaced_file_id TEXT
            )
        """)

        file_columns = {row["name"] for row in cursor.execute("PRAGMA table_info(files)")}
        if "replaced_file_id" not in file_columns:
            cursor.execute("ALTER TABLE files ADD COLUMN replaced_file_id TEXT")

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_files_owner ON files(owner_id)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_files_owner_name ON files(owner_id, name)
        """)

        conn.commit()


@contextmanager
def get_db_connection(db_path: DbPath) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.
    """
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()

