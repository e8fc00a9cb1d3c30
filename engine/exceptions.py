"""Error taxonomy for the storage engine."""


class StorageEngineError(Exception):
    """
    Base exception class for all storage engine errors.
    """
    pass


class InvalidKeyError(StorageEngineError):
    """
    Raised when an encryption key is not 16, 24 or 32 bytes long.
    """
    pass


class InvalidNameError(StorageEngineError):
    """
    Raised when a file name (or owner id) is empty or unsafe after sanitization.
    """
    pass


class AuthenticationError(StorageEngineError):
    """
    Raised when ciphertext fails tag verification (wrong key, corrupted
    or truncated data).
    """
    pass


class MalformedInputError(AuthenticationError):
    """
    Raised when a sealed unit or chunk frame cannot possibly be valid,
    e.g. it is shorter than one nonce.
    """
    pass


class KeyRequiredError(StorageEngineError):
    """
    Raised when an encrypted file is retrieved without a key.
    """
    pass


class NotFoundError(StorageEngineError):
    """
    Raised when a requested file record does not exist.
    """
    pass


class UnauthorizedError(StorageEngineError):
    """
    Raised when a requester is not the owner of a file.
    """
    pass


class FileConflictError(StorageEngineError):
    """
    Raised when a rename would overwrite another stored file.
    """
    pass


class RecordValidationError(StorageEngineError):
    """
    Raised when a FileRecord is missing required fields.
    """
    pass


class StorageIOError(StorageEngineError):
    """
    Raised on filesystem failures (permissions, disk full, missing bytes).
    """
    pass


class TruncatedStreamError(StorageIOError):
    """
    Raised when an upload stream delivers a different number of bytes
    than announced.
    """
    pass


class MetadataError(StorageEngineError):
    """
    Raised when the metadata collaborator fails.
    """
    pass
