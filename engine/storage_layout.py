"""Maps (owner, file name) to a traversal-safe path under the storage root."""

import logging
from pathlib import Path, PurePosixPath
from typing import Union

from common.constants import DEFAULT_DIRECTORY_MODE, OWNER_DIRECTORY_PREFIX, STAGING_SUFFIX
from engine.atomic_writer import ensure_directory
from engine.exceptions import InvalidNameError, StorageIOError

logger = logging.getLogger(__name__)

OwnerId = Union[str, int]


def sanitize_name(raw_name: str) -> str:
    """
    Reduce a caller-supplied file name to a safe base name.

    Only the final path segment survives, so "../../etc/passwd" becomes
    "passwd". Backslashes count as separators.

    Args:
        raw_name: Name as supplied by the caller

    Returns:
        Sanitized base name

    Raises:
        InvalidNameError: If nothing usable remains
    """
    if not isinstance(raw_name, str):
        raise InvalidNameError("File name must be a string")

    name = PurePosixPath(raw_name.replace("\\", "/")).name.strip()

    if not name or name in (".", ".."):
        raise InvalidNameError(f"File name {raw_name!r} is empty after sanitization")
    if "\x00" in name:
        raise InvalidNameError("File name must not contain NUL bytes")
    if name.startswith(".") and name.endswith(STAGING_SUFFIX):
        raise InvalidNameError(f"File name {name!r} is reserved for staging files")
    return name


def normalize_owner_id(owner_id: OwnerId) -> str:
    """
    Turn an opaque owner identity into the string form used on disk and in metadata.

    Raises:
        InvalidNameError: If the owner id is empty or contains path separators
    """
    if isinstance(owner_id, bool) or not isinstance(owner_id, (str, int)):
        raise InvalidNameError("Owner id must be a string or integer")

    owner = str(owner_id).strip()
    if not owner or owner in (".", "..") or "/" in owner or "\\" in owner or "\x00" in owner:
        raise InvalidNameError(f"Owner id {owner_id!r} is not usable as a directory name")
    return owner


class StorageLayout:
    """
    Deterministic on-disk layout: <root>/owner_<owner_id>/<sanitized name>.
    """

    def __init__(self, root: Union[str, Path], directory_mode: int = DEFAULT_DIRECTORY_MODE):
        """
        Initialize layout.

        Args:
            root: Storage root directory
            directory_mode: Permission bits for directories created by the engine
        """
        self.root = Path(root).resolve()
        self.directory_mode = directory_mode

    def initialize(self) -> Path:
        """
        Create the storage root.

        Raises:
            StorageIOError: If the root cannot be created; fatal at startup
        """
        ensure_directory(self.root, self.directory_mode)
        logger.info(f"Storage root ready at {self.root}")
        return self.root

    def owner_directory(self, owner_id: OwnerId) -> Path:
        return self.root / f"{OWNER_DIRECTORY_PREFIX}{normalize_owner_id(owner_id)}"

    def ensure_owner_directory(self, owner_id: OwnerId) -> Path:
        return ensure_directory(self.owner_directory(owner_id), self.directory_mode)

    def resolve(self, owner_id: OwnerId, raw_name: str) -> Path:
        """
        Resolve the physical path for an owner's file.

        Args:
            owner_id: Opaque owner identity
            raw_name: Caller-supplied file name

        Returns:
            Absolute path inside the owner's directory

        Raises:
            InvalidNameError: If the name or owner id is unusable
        """
        path = self.owner_directory(owner_id) / sanitize_name(raw_name)
        if not self.is_within_root(path):
            raise InvalidNameError(f"File name {raw_name!r} escapes the storage root")
        return path

    def is_within_root(self, path: Union[str, Path]) -> bool:
        """
        Check whether a path lies inside the storage root after resolving symlinks.
        """
        try:
            Path(path).resolve().relative_to(self.root)
        except ValueError:
            return False
        return True

    def check_stored_path(self, path: Union[str, Path]) -> Path:
        """
        Validate a storage path loaded from metadata before opening it.

        Raises:
            StorageIOError: If the path lies outside the storage root
        """
        if not self.is_within_root(path):
            raise StorageIOError(f"Stored path {path} is outside the storage root")
        return Path(path)
