"""Project-wide constants (chunk sizes, cipher parameters, default paths)."""

DEFAULT_CHUNK_SIZE_BYTES: int = 64 * 1024  # 64 KiB plaintext per chunk
MAX_CHUNK_SIZE_BYTES: int = 16 * 1024 * 1024

VALID_KEY_LENGTHS: tuple = (16, 24, 32)  # AES-128 / AES-192 / AES-256
NONCE_SIZE_BYTES: int = 12
TAG_SIZE_BYTES: int = 16
LENGTH_PREFIX_BYTES: int = 4
CHUNK_OVERHEAD_BYTES: int = NONCE_SIZE_BYTES + TAG_SIZE_BYTES

OWNER_DIRECTORY_PREFIX: str = "owner_"
STAGING_SUFFIX: str = ".staging"
DEFAULT_DIRECTORY_MODE: int = 0o700

DEFAULT_STORAGE_ROOT: str = "/app/data/files"
DEFAULT_DATABASE_PATH: str = "/app/data/metadata.db"

API_KEY_PREFIX: str = "sf_"
