"""Store / retrieve orchestration and FileRecord lifecycle."""

import logging
import os
import uuid
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Tuple

from common.constants import STAGING_SUFFIX
from common.types import FilePatch, FileRecord, utc_now
from engine.atomic_writer import AtomicWriter, remove_quietly
from engine.chunked_codec import CountingReader, decrypt_stream, encrypt_stream, iter_plaintext
from engine.cipher_stream import validate_key
from engine.config import EngineConfig
from engine.exceptions import (
    FileConflictError,
    KeyRequiredError,
    MetadataError,
    NotFoundError,
    RecordValidationError,
    StorageEngineError,
    StorageIOError,
    TruncatedStreamError,
    UnauthorizedError,
)
from engine.metadata import MetadataStore
from engine.storage_layout import StorageLayout, normalize_owner_id, sanitize_name
from engine.streams import PlaintextStream

logger = logging.getLogger(__name__)


def _normalize_key(key) -> Optional[bytes]:
    if key is None:
        return None
    if isinstance(key, (bytes, bytearray, memoryview)) and len(key) == 0:
        return None
    return validate_key(key)


def _move_without_overwrite(source: Path, target: Path) -> None:
    """
    Move a file, failing instead of replacing an existing target.

    Linking the new name first makes the existence check and the move a
    single step.

    Raises:
        FileConflictError: target already exists
        StorageIOError: the move failed otherwise
    """
    try:
        os.link(source, target)
    except FileExistsError:
        raise FileConflictError(f"A file named '{target.name}' already exists") from None
    except OSError as e:
        raise StorageIOError(f"Failed to move {source} to {target}: {e}") from e

    try:
        os.unlink(source)
    except OSError as e:
        remove_quietly(target)
        raise StorageIOError(f"Failed to move {source} to {target}: {e}") from e


class FileEngine:
    """
    Encrypted file storage engine.

    Bytes are written before metadata: a record only ever exists for
    content that was published completely. Keys are used per call and
    never stored.
    """

    def __init__(self, config: EngineConfig, metadata: MetadataStore):
        """
        Initialize engine.

        Args:
            config: Storage root, chunk size and filesystem policy
            metadata: Metadata collaborator holding FileRecords
        """
        self.config = config
        self.metadata = metadata
        self.layout = StorageLayout(config.storage_root, config.directory_mode)
        self.writer = AtomicWriter(fsync=config.fsync)

    def store(
        self,
        owner_id,
        name: str,
        stream: BinaryIO,
        content_type: str = "",
        description: str = "",
        key: Optional[bytes] = None,
        expected_size: Optional[int] = None,
    ) -> FileRecord:
        """
        Write content to storage, optionally encrypted, and create its record.

        Either both the bytes and the record exist afterwards, or neither
        does (a crash between the two steps can leave orphaned bytes). When
        the name is already taken, the earlier content is kept aside and put
        back if the new record cannot be persisted.

        Args:
            owner_id: Identity of the uploading user
            name: Requested file name; reduced to its base name
            stream: Readable binary stream of unbounded length
            content_type: Free-form MIME type
            description: Optional description
            key: Optional AES key (16, 24 or 32 bytes) enabling encryption
            expected_size: If given, the exact number of bytes the stream must yield

        Returns:
            The created FileRecord; replaced_file_id is set when an earlier
            record of the same owner and name was superseded

        Raises:
            InvalidKeyError: Bad key, detected before any I/O
            InvalidNameError: Unusable name or owner id
            TruncatedStreamError: Stream length differs from expected_size
            StorageIOError: Filesystem failure
            MetadataError: Record could not be persisted (bytes are rolled back)
        """
        key = _normalize_key(key)
        owner = normalize_owner_id(owner_id)
        final_path = self.layout.resolve(owner, name)
        self.layout.ensure_owner_directory(owner)

        superseded = self._find_superseded(owner, final_path)

        counter = CountingReader(stream)
        if key is not None:
            pieces = encrypt_stream(key, counter, self.config.chunk_size)
        else:
            pieces = iter_plaintext(counter, self.config.chunk_size)

        logger.info(
            f"Storing file '{final_path.name}' for owner {owner} "
            f"[encrypted={key is not None}]"
        )
        backup = self._backup_existing(final_path)
        try:
            self.writer.write(final_path, self._checked(pieces, counter, expected_size))
        except BaseException:
            if backup is not None:
                remove_quietly(backup)
            raise

        record = FileRecord(
            file_id=str(uuid.uuid4()),
            name=final_path.name,
            owner_id=owner,
            storage_path=str(final_path),
            is_encrypted=key is not None,
            content_type=content_type or "",
            description=description or "",
            size=counter.bytes_read,
            replaced_file_id=superseded.file_id if superseded is not None else None,
        )

        try:
            self._validate_record(record)
            self.metadata.create(record)
        except Exception as e:
            logger.error(f"Metadata persistence failed, rolling back bytes at {final_path}: {e}")
            self._roll_back_bytes(final_path, backup)
            if isinstance(e, StorageEngineError):
                raise
            raise MetadataError(f"Failed to create file record: {e}") from e

        if superseded is not None:
            try:
                self.metadata.delete(superseded.file_id)
            except Exception as e:
                logger.error(
                    f"Failed to retire superseded record {superseded.file_id}, "
                    f"withdrawing new record {record.file_id}: {e}"
                )
                try:
                    self.metadata.delete(record.file_id)
                except Exception as undo_error:
                    logger.error(f"Failed to withdraw record {record.file_id}: {undo_error}")
                self._roll_back_bytes(final_path, backup)
                if isinstance(e, StorageEngineError):
                    raise
                raise MetadataError(f"Failed to retire superseded record {superseded.file_id}: {e}") from e
            logger.info(f"File {record.file_id} superseded earlier record {superseded.file_id}")

        if backup is not None:
            remove_quietly(backup)

        logger.info(f"Stored file {record.file_id} ({record.size} bytes) for owner {owner}")
        return record

    def _find_superseded(self, owner: str, final_path: Path) -> Optional[FileRecord]:
        try:
            existing = self.metadata.find_by_owner_and_name(owner, final_path.name)
        except StorageEngineError:
            raise
        except Exception as e:
            raise MetadataError(f"Failed to look up existing file '{final_path.name}': {e}") from e

        if existing is None or existing.storage_path != str(final_path):
            return None
        return existing

    @staticmethod
    def _backup_existing(final_path: Path) -> Optional[Path]:
        """
        Hard-link the file currently at final_path to a hidden staging name.

        The link keeps the earlier content reachable while the new upload is
        published over final_path. Backups match the staging pattern, so the
        startup sweep removes any left behind by a crash.
        """
        backup = final_path.with_name(f".{final_path.name}.{uuid.uuid4().hex}{STAGING_SUFFIX}")
        try:
            os.link(final_path, backup)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageIOError(f"Failed to preserve existing content of {final_path}: {e}") from e
        return backup

    @staticmethod
    def _roll_back_bytes(final_path: Path, backup: Optional[Path]) -> None:
        if backup is None:
            if not remove_quietly(final_path):
                logger.error(f"Failed to roll back upload, orphaned file: {final_path}")
            return

        try:
            os.replace(backup, final_path)
            logger.warning(f"Restored previous content of {final_path}")
        except OSError as e:
            logger.error(f"Failed to restore previous content of {final_path} from {backup}: {e}")

    def _checked(
        self,
        pieces: Iterator[bytes],
        counter: CountingReader,
        expected_size: Optional[int],
    ) -> Iterator[bytes]:
        for piece in pieces:
            if expected_size is not None and counter.bytes_read > expected_size:
                raise TruncatedStreamError(
                    f"Upload exceeded its announced size of {expected_size} bytes"
                )
            yield piece

        if expected_size is not None and counter.bytes_read != expected_size:
            raise TruncatedStreamError(
                f"Upload ended after {counter.bytes_read} of {expected_size} bytes"
            )

    @staticmethod
    def _validate_record(record: FileRecord) -> None:
        if not record.name:
            raise RecordValidationError("File record requires a name")
        if not record.owner_id:
            raise RecordValidationError("File record requires an owner id")
        if not record.storage_path:
            raise RecordValidationError("File record requires a storage path")

    def _load_owned(self, file_id: str, requester_id) -> FileRecord:
        try:
            record = self.metadata.get(file_id)
        except StorageEngineError:
            raise
        except Exception as e:
            raise MetadataError(f"Failed to load file record {file_id}: {e}") from e

        if record is None:
            raise NotFoundError(f"File {file_id} not found")

        if str(requester_id) != record.owner_id:
            logger.warning(f"User {requester_id} denied access to file {file_id}")
            raise UnauthorizedError(f"User {requester_id} does not own file {file_id}")
        return record

    def retrieve(self, file_id: str, requester_id, key: Optional[bytes] = None) -> Tuple[PlaintextStream, FileRecord]:
        """
        Open a stored file for reading, decrypting it if needed.

        The first encrypted chunk is verified before returning, so a wrong
        key is reported here. Corruption in later chunks surfaces as
        AuthenticationError while reading the stream.

        Args:
            file_id: Id of the file record
            requester_id: Identity of the caller; must be the owner
            key: AES key, required for encrypted files

        Returns:
            (plaintext stream, FileRecord); the caller must close the stream

        Raises:
            NotFoundError: No such record
            UnauthorizedError: Requester is not the owner
            InvalidKeyError: Supplied key has an invalid length
            KeyRequiredError: File is encrypted and no key was given
            AuthenticationError: Wrong key or corrupted content
            StorageIOError: Stored bytes are missing or unreadable
        """
        record = self._load_owned(file_id, requester_id)
        key = _normalize_key(key)

        if record.is_encrypted and key is None:
            raise KeyRequiredError(f"File {file_id} is encrypted, decryption key required")

        path = self.layout.check_stored_path(record.storage_path)
        try:
            source = open(path, "rb")
        except OSError as e:
            logger.error(f"Stored bytes for file {file_id} unavailable at {path}: {e}")
            raise StorageIOError(f"Failed to open stored content of file {file_id}: {e}") from e

        if not record.is_encrypted:
            logger.info(f"Retrieving file {file_id} for owner {record.owner_id}")
            return PlaintextStream(iter_plaintext(source, self.config.chunk_size), source), record

        pieces = decrypt_stream(key, source)
        try:
            first_piece = next(pieces, b"")
        except BaseException:
            pieces.close()
            source.close()
            logger.warning(f"Decryption of file {file_id} failed on its first chunk")
            raise

        logger.info(f"Retrieving encrypted file {file_id} for owner {record.owner_id}")
        return PlaintextStream(pieces, source, first_piece), record

    def get(self, file_id: str, requester_id) -> FileRecord:
        return self._load_owned(file_id, requester_id)

    def list_files(self, requester_id) -> List[FileRecord]:
        """
        List the requester's live file records, newest first.
        """
        owner = str(requester_id)
        try:
            records = self.metadata.list()
        except StorageEngineError:
            raise
        except Exception as e:
            raise MetadataError(f"Failed to list file records: {e}") from e
        return [r for r in records if r.owner_id == owner]

    def update(self, file_id: str, requester_id, patch: FilePatch) -> FileRecord:
        """
        Apply the non-empty fields of a patch to a file record.

        Renaming moves the stored bytes so the storage path keeps matching
        the name. is_encrypted and owner_id are never changed.

        Raises:
            NotFoundError: No such record
            UnauthorizedError: Requester is not the owner
            InvalidNameError: New name is unusable
            FileConflictError: Another file already uses the new name
            StorageIOError: The bytes could not be moved
            MetadataError: The record could not be saved
        """
        record = self._load_owned(file_id, requester_id)
        if patch.is_empty():
            logger.debug(f"Empty update for file {file_id}, nothing to change")
            return record

        updated = record.copy(updated_at=utc_now())

        if patch.content_type:
            updated.content_type = patch.content_type
        if patch.description:
            updated.description = patch.description

        old_path = Path(record.storage_path)
        new_path = old_path
        if patch.name:
            new_name = sanitize_name(patch.name)
            if new_name != record.name:
                new_path = self.layout.resolve(record.owner_id, new_name)
                updated.name = new_name
                updated.storage_path = str(new_path)

        if new_path != old_path:
            _move_without_overwrite(self.layout.check_stored_path(old_path), new_path)
            logger.info(f"Moved file {file_id}: {old_path.name} -> {new_path.name}")

        try:
            self.metadata.save(updated)
        except Exception as e:
            if new_path != old_path:
                logger.warning(f"Saving file {file_id} failed, moving bytes back to {old_path}")
                try:
                    _move_without_overwrite(new_path, old_path)
                except StorageEngineError as move_error:
                    logger.error(f"Failed to move {new_path} back to {old_path}: {move_error}")
            if isinstance(e, StorageEngineError):
                raise
            raise MetadataError(f"Failed to save file record {file_id}: {e}") from e

        logger.info(f"Updated file {file_id}")
        return updated

    def delete(self, file_id: str, requester_id) -> None:
        """
        Delete a file record and, best-effort, its stored bytes.

        Once the record is gone the file no longer exists for users;
        bytes that cannot be removed are logged as orphaned.

        Raises:
            NotFoundError: No such record
            UnauthorizedError: Requester is not the owner
            MetadataError: The record could not be deleted
        """
        record = self._load_owned(file_id, requester_id)

        try:
            self.metadata.delete(file_id)
        except StorageEngineError:
            raise
        except Exception as e:
            raise MetadataError(f"Failed to delete file record {file_id}: {e}") from e
        logger.info(f"Deleted file record {file_id}")

        if not self.layout.is_within_root(record.storage_path):
            logger.error(f"Not removing bytes of file {file_id}: {record.storage_path} is outside the storage root")
            return

        if remove_quietly(record.storage_path):
            logger.info(f"Removed stored bytes of file {file_id}")
        elif Path(record.storage_path).exists():
            logger.error(f"Failed to remove bytes of deleted file {file_id}, orphaned: {record.storage_path}")
