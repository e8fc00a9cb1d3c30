"""AES-GCM sealing and opening of self-contained authenticated units."""

import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from common.constants import CHUNK_OVERHEAD_BYTES, NONCE_SIZE_BYTES, TAG_SIZE_BYTES, VALID_KEY_LENGTHS
from engine.exceptions import AuthenticationError, InvalidKeyError, MalformedInputError

NONCE_SIZE = NONCE_SIZE_BYTES
TAG_SIZE = TAG_SIZE_BYTES
CHUNK_OVERHEAD = CHUNK_OVERHEAD_BYTES


def validate_key(key) -> bytes:
    """
    Check that a key is usable for AES-GCM.

    Args:
        key: Raw key material (bytes, bytearray or memoryview)

    Returns:
        The key as immutable bytes

    Raises:
        InvalidKeyError: If the key is not bytes-like or not 16, 24 or 32 bytes
    """
    if not isinstance(key, (bytes, bytearray, memoryview)):
        raise InvalidKeyError(f"Encryption key must be bytes, got {type(key).__name__}")

    key = bytes(key)
    if len(key) not in VALID_KEY_LENGTHS:
        raise InvalidKeyError(
            f"Invalid key length {len(key)}: must be 16, 24, or 32 bytes"
        )
    return key


def seal(key: bytes, plaintext: bytes, associated_data: Optional[bytes] = None) -> bytes:
    """
    Encrypt and authenticate a buffer under a freshly drawn random nonce.

    Args:
        key: AES key (16, 24 or 32 bytes)
        plaintext: Bytes to encrypt (may be empty)
        associated_data: Optional data authenticated but not stored

    Returns:
        nonce || ciphertext || tag
    """
    aead = AESGCM(validate_key(key))
    nonce = os.urandom(NONCE_SIZE)
    return nonce + aead.encrypt(nonce, bytes(plaintext), associated_data)


def open_sealed(key: bytes, unit: bytes, associated_data: Optional[bytes] = None) -> bytes:
    """
    Verify and decrypt a unit produced by seal().

    Args:
        key: AES key used for sealing
        unit: nonce || ciphertext || tag
        associated_data: The associated data given to seal()

    Returns:
        Decrypted plaintext

    Raises:
        InvalidKeyError: If the key has an invalid length
        MalformedInputError: If the unit is shorter than one nonce
        AuthenticationError: If the tag does not verify or the unit is truncated
    """
    aead = AESGCM(validate_key(key))

    if len(unit) < NONCE_SIZE:
        raise MalformedInputError(
            f"Sealed unit of {len(unit)} bytes is shorter than the {NONCE_SIZE}-byte nonce"
        )
    if len(unit) < CHUNK_OVERHEAD:
        raise AuthenticationError("Sealed unit is truncated: authentication tag missing")

    nonce = bytes(unit[:NONCE_SIZE])
    try:
        return aead.decrypt(nonce, bytes(unit[NONCE_SIZE:]), associated_data)
    except InvalidTag:
        raise AuthenticationError("Message authentication failed: wrong key or corrupted data") from None
