"""Staged writes published by atomic rename, plus staging-file housekeeping."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Union

from common.constants import DEFAULT_DIRECTORY_MODE, STAGING_SUFFIX
from engine.exceptions import StorageIOError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def ensure_directory(path: PathLike, mode: int = DEFAULT_DIRECTORY_MODE) -> Path:
    """
    Create a directory (and parents) if it does not exist yet.

    Creating an existing directory is not an error.

    Raises:
        StorageIOError: If the directory cannot be created
    """
    path = Path(path)
    try:
        path.mkdir(mode=mode, parents=True, exist_ok=True)
    except OSError as e:
        raise StorageIOError(f"Failed to create directory {path}: {e}") from e
    return path


def remove_quietly(path: PathLike) -> bool:
    """
    Best-effort file removal.

    Returns:
        True if the file was removed, False if it was missing or removal failed
    """
    try:
        os.unlink(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.error(f"Failed to remove {path}: {e}")
        return False


def _fsync_directory(directory: Path) -> None:
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError as e:
        logger.debug(f"Directory fsync not supported for {directory}: {e}")
    finally:
        os.close(fd)


class AtomicWriter:
    """
    Writes a byte stream to a staging file next to its destination and
    renames it into place only once the stream has been written completely.

    Readers of the final path either see the previous content or the new
    content, never a partial file.
    """

    def __init__(self, fsync: bool = True):
        """
        Initialize writer.

        Args:
            fsync: Flush staging files to disk before publishing them
        """
        self.fsync = fsync

    def write(self, final_path: PathLike, producer: Iterable[bytes]) -> int:
        """
        Stream producer's pieces into final_path as a single unit.

        Args:
            final_path: Destination path; its directory must exist
            producer: Iterable of byte pieces, consumed lazily

        Returns:
            Number of bytes written

        Raises:
            StorageIOError: On filesystem failures
            Exception: Anything raised by the producer, after cleanup
        """
        final_path = Path(final_path)
        directory = final_path.parent

        try:
            fd, staging_name = tempfile.mkstemp(
                dir=directory,
                prefix=f".{final_path.name}.",
                suffix=STAGING_SUFFIX,
            )
        except OSError as e:
            raise StorageIOError(f"Failed to create staging file in {directory}: {e}") from e

        staging_path = Path(staging_name)
        written = 0
        try:
            with os.fdopen(fd, "wb") as staging:
                for piece in producer:
                    staging.write(piece)
                    written += len(piece)
                staging.flush()
                if self.fsync:
                    os.fsync(staging.fileno())
            os.replace(staging_path, final_path)
        except OSError as e:
            remove_quietly(staging_path)
            logger.error(f"Write to {final_path} failed after {written} bytes: {e}")
            raise StorageIOError(f"Failed to write {final_path}: {e}") from e
        except BaseException:
            remove_quietly(staging_path)
            logger.warning(f"Write to {final_path} aborted after {written} bytes, staging file removed")
            raise

        if self.fsync:
            _fsync_directory(directory)

        logger.debug(f"Published {written} bytes to {final_path}")
        return written


def cleanup_stale_staging(root: PathLike) -> int:
    """
    Remove staging files left behind by interrupted writes.

    No metadata record ever references a staging file, so removing them
    is always safe. Failures are logged and skipped.

    Args:
        root: Storage root to scan

    Returns:
        Number of staging files removed
    """
    root = Path(root)
    if not root.exists():
        return 0

    removed = 0
    for staging_path in root.rglob(f".*{STAGING_SUFFIX}"):
        if staging_path.is_file() and remove_quietly(staging_path):
            removed += 1

    if removed:
        logger.info(f"Removed {removed} stale staging files under {root}")
    return removed
