"""Utility helper functions for the Controller."""

import base64
import binascii
import uuid
from typing import Optional
from urllib.parse import quote

from engine.exceptions import InvalidKeyError


def generate_uuid() -> str:
    """
    Generate a new UUID4 string.

    Returns:
        UUID4 string
    """
    return str(uuid.uuid4())


def decode_key_header(value: Optional[str]) -> Optional[bytes]:
    """
    Decode a base64 key header into raw key bytes.

    Args:
        value: Header value, or None when the header is absent

    Returns:
        Raw key bytes, or None for an absent or blank header

    Raises:
        InvalidKeyError: Value is not valid base64
    """
    if value is None or not value.strip():
        return None
    try:
        return base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError):
        raise InvalidKeyError("Key header must be base64 encoded") from None


def content_disposition(filename: str) -> str:
    """
    Build an attachment Content-Disposition header safe for any file name.
    """
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "'")
    return f'attachment; filename="{fallback}"; filename*=UTF-8\'\'{quote(filename)}'
