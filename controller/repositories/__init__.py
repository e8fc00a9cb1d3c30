"""Repository layer for data access."""

from controller.repositories.user_repository import UserRepository
from controller.repositories.file_repository import FileRepository

__all__ = [
    "UserRepository",
    "FileRepository",
]
