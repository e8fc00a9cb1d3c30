"""User repository for database operations."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from common.logging_config import get_logger
from controller.database import DbPath, get_db_connection

logger = get_logger(__name__)

_COLUMNS = "user_id, username, password_hash, api_key, created_at, key_updated_at"


@dataclass
class User:
    user_id: str
    username: str
    password_hash: str
    api_key: Optional[str]
    created_at: datetime
    key_updated_at: Optional[datetime]


def _row_to_user(row) -> User:
    return User(
        user_id=row["user_id"],
        username=row["username"],
        password_hash=row["password_hash"],
        api_key=row["api_key"],
        created_at=datetime.fromisoformat(row["created_at"]),
        key_updated_at=datetime.fromisoformat(row["key_updated_at"]) if row["key_updated_at"] else None,
    )


class UserRepository:
    def __init__(self, db_path: DbPath):
        self.db_path = db_path

    def create_user(
        self,
        user_id: str,
        username: str,
        password_hash: str,
        api_key: str,
        created_at: datetime,
    ) -> User:
        logger.debug(f"Creating user: {username} [user_id={user_id}]")

        with get_db_connection(self.db_path) as conn:
            try:
                conn.execute(
                    f"INSERT INTO users ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                    (user_id, username, password_hash, api_key,
                     created_at.isoformat(), created_at.isoformat())
                )
                conn.commit()
                logger.info(f"User created successfully: {username} [user_id={user_id}]")
            except Exception as e:
                logger.error(f"Failed to create user {username}: {e}", exc_info=True)
                raise

        return User(
            user_id=user_id,
            username=username,
            password_hash=password_hash,
            api_key=api_key,
            created_at=created_at,
            key_updated_at=created_at,
        )

    def get_by_username(self, username: str) -> Optional[User]:
        logger.debug(f"Fetching user by username: {username}")
        with get_db_connection(self.db_path) as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM users WHERE username = ?",
                (username,)
            ).fetchone()

        if row is None:
            logger.debug(f"User not found: {username}")
            return None
        return _row_to_user(row)

    def get_by_user_id(self, user_id: str) -> Optional[User]:
        with get_db_connection(self.db_path) as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM users WHERE user_id = ?",
                (user_id,)
            ).fetchone()

        if row is None:
            return None
        return _row_to_user(row)

    def get_by_api_key(self, api_key: str) -> Optional[User]:
        logger.debug("Fetching user by API key")
        with get_db_connection(self.db_path) as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM users WHERE api_key = ?",
                (api_key,)
            ).fetchone()

        if row is None:
            logger.debug("User not found for provided API key")
            return None

        logger.debug(f"User found by API key [user_id={row['user_id']}]")
        return _row_to_user(row)

    def update_api_key(self, user_id: str, new_api_key: str, updated_at: datetime) -> None:
        logger.debug(f"Updating API key [user_id={user_id}]")
        with get_db_connection(self.db_path) as conn:
            try:
                conn.execute(
                    "UPDATE users SET api_key = ?, key_updated_at = ? WHERE user_id = ?",
                    (new_api_key, updated_at.isoformat(), user_id)
                )
                conn.commit()
                logger.info(f"API key updated successfully [user_id={user_id}]")
            except Exception as e:
                logger.error(f"Failed to update API key [user_id={user_id}]: {e}", exc_info=True)
                raise
