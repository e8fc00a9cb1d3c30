"""
Chunked streaming encryption with explicit length framing.

On-disk chunk layout (big-endian):
- 4 bytes: length L of the sealed unit that follows
- 12 bytes: random nonce
- L - 28 bytes: ciphertext
- 16 bytes: GCM tag

Each chunk is sealed with associated data carrying its position and
whether it is the last chunk, so chunks cannot be reordered, dropped
or cut off at a chunk boundary without failing verification.
"""

import logging
import struct
from typing import BinaryIO, Iterator

from common.constants import (
    DEFAULT_CHUNK_SIZE_BYTES,
    LENGTH_PREFIX_BYTES,
    MAX_CHUNK_SIZE_BYTES,
)
from engine.cipher_stream import CHUNK_OVERHEAD, NONCE_SIZE, open_sealed, seal, validate_key
from engine.exceptions import AuthenticationError, MalformedInputError

logger = logging.getLogger(__name__)

_LENGTH_PREFIX = struct.Struct(">I")
_AAD_PREFIX = b"sealedfiles/chunk"
MAX_FRAME_SIZE = MAX_CHUNK_SIZE_BYTES + CHUNK_OVERHEAD


def chunk_associated_data(index: int, final: bool) -> bytes:
    """Associated data binding a chunk to its position in the stream."""
    return _AAD_PREFIX + index.to_bytes(8, "big") + (b"\x01" if final else b"\x00")


def read_exact(reader: BinaryIO, size: int) -> bytes:
    """
    Read up to size bytes, retrying short reads until EOF.

    Args:
        reader: Readable binary stream
        size: Number of bytes wanted

    Returns:
        Exactly size bytes, or fewer only if the stream ended
    """
    parts = []
    remaining = size
    while remaining > 0:
        piece = reader.read(remaining)
        if not piece:
            break
        parts.append(piece)
        remaining -= len(piece)
    return b"".join(parts)


def _check_chunk_size(chunk_size: int) -> None:
    if not 0 < chunk_size <= MAX_CHUNK_SIZE_BYTES:
        raise ValueError(
            f"chunk_size must be between 1 and {MAX_CHUNK_SIZE_BYTES} bytes, got {chunk_size}"
        )


class CountingReader:
    """
    Wraps a readable stream and counts the bytes handed out.
    """

    def __init__(self, reader: BinaryIO):
        self._reader = reader
        self.bytes_read = 0

    def read(self, size: int = -1) -> bytes:
        data = self._reader.read(size)
        if data:
            self.bytes_read += len(data)
        return data


def iter_plaintext(reader: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE_BYTES) -> Iterator[bytes]:
    """
    Stream raw content in pieces of at most chunk_size bytes.

    Args:
        reader: Readable binary stream
        chunk_size: Maximum piece size

    Yields:
        Plaintext pieces, unframed
    """
    _check_chunk_size(chunk_size)
    while True:
        piece = reader.read(chunk_size)
        if not piece:
            break
        yield piece


def encrypt_stream(
    key: bytes,
    reader: BinaryIO,
    chunk_size: int = DEFAULT_CHUNK_SIZE_BYTES,
) -> Iterator[bytes]:
    """
    Lazily encrypt a plaintext stream into length-prefixed sealed chunks.

    Memory use is bounded by two plaintext chunks (current plus lookahead).
    An empty stream yields exactly one chunk sealing zero bytes.

    Args:
        key: AES key (16, 24 or 32 bytes)
        reader: Readable plaintext stream
        chunk_size: Plaintext bytes per chunk

    Yields:
        Framed chunks: 4-byte length prefix followed by nonce || ciphertext || tag

    Raises:
        InvalidKeyError: If the key has an invalid length
        ValueError: If chunk_size is out of range
    """
    key = validate_key(key)
    _check_chunk_size(chunk_size)

    index = 0
    current = read_exact(reader, chunk_size)
    while True:
        upcoming = read_exact(reader, chunk_size) if len(current) == chunk_size else b""
        final = not upcoming
        unit = seal(key, current, chunk_associated_data(index, final))
        yield _LENGTH_PREFIX.pack(len(unit)) + unit
        if final:
            break
        current = upcoming
        index += 1

    logger.debug(f"Encrypted stream into {index + 1} chunks")


def decrypt_stream(key: bytes, reader: BinaryIO) -> Iterator[bytes]:
    """
    Lazily decrypt a stream of framed chunks produced by encrypt_stream().

    Reads one chunk at a time and yields its plaintext immediately. The
    sequence is finite and cannot be restarted.

    Args:
        key: AES key used for encryption
        reader: Readable stream positioned at the first length prefix

    Yields:
        Plaintext pieces in original order

    Raises:
        InvalidKeyError: If the key has an invalid length
        AuthenticationError: On the first chunk that fails verification,
            or if the stream is empty or truncated
        MalformedInputError: If a frame declares an impossible length
    """
    key = validate_key(key)

    frame = _read_frame(reader, index=0)
    if frame is None:
        raise AuthenticationError("Encrypted content contains no chunks")

    index = 0
    while frame is not None:
        upcoming = _read_frame(reader, index + 1)
        final = upcoming is None
        yield open_sealed(key, frame, chunk_associated_data(index, final))
        frame = upcoming
        index += 1


def _read_frame(reader: BinaryIO, index: int):
    prefix = read_exact(reader, LENGTH_PREFIX_BYTES)
    if not prefix:
        return None
    if len(prefix) < LENGTH_PREFIX_BYTES:
        raise AuthenticationError(f"Chunk {index} is truncated: incomplete length prefix")

    (length,) = _LENGTH_PREFIX.unpack(prefix)
    if length < NONCE_SIZE or length > MAX_FRAME_SIZE:
        raise MalformedInputError(f"Chunk {index} declares an invalid length of {length} bytes")

    unit = read_exact(reader, length)
    if len(unit) < length:
        raise AuthenticationError(
            f"Chunk {index} is truncated: expected {length} bytes, got {len(unit)}"
        )
    return unit


def encrypted_size(plaintext_size: int, chunk_size: int = DEFAULT_CHUNK_SIZE_BYTES) -> int:
    """
    Number of bytes encrypt_stream() produces for a plaintext of the given size.
    """
    _check_chunk_size(chunk_size)
    chunks = max(1, -(-plaintext_size // chunk_size))
    return plaintext_size + chunks * (LENGTH_PREFIX_BYTES + CHUNK_OVERHEAD)
