"""Tests for single-unit AES-GCM sealing."""

import os

import pytest

from engine.cipher_stream import CHUNK_OVERHEAD, NONCE_SIZE, TAG_SIZE, open_sealed, seal, validate_key
from engine.exceptions import AuthenticationError, InvalidKeyError, MalformedInputError


class TestValidateKey:
    """Test key validation."""

    @pytest.mark.parametrize("length", [16, 24, 32])
    def test_accepts_valid_lengths(self, length):
        key = os.urandom(length)
        assert validate_key(key) == key

    @pytest.mark.parametrize("length", [0, 1, 15, 17, 31, 33, 64])
    def test_rejects_invalid_lengths(self, length):
        with pytest.raises(InvalidKeyError):
            validate_key(b"k" * length)

    def test_accepts_bytearray(self):
        key = bytearray(os.urandom(16))
        assert validate_key(key) == bytes(key)

    def test_rejects_text_key(self):
        with pytest.raises(InvalidKeyError):
            validate_key("0123456789abcdef")


class TestSealOpen:
    """Test sealing and opening units."""

    def test_round_trip(self, key):
        unit = seal(key, b"hello world")
        assert open_sealed(key, unit) == b"hello world"

    def test_unit_size(self, aes_key):
        unit = seal(aes_key, b"x" * 100)
        assert len(unit) == 100 + CHUNK_OVERHEAD
        assert CHUNK_OVERHEAD == NONCE_SIZE + TAG_SIZE == 28

    def test_empty_plaintext(self, key):
        unit = seal(key, b"")
        assert len(unit) == CHUNK_OVERHEAD
        assert open_sealed(key, unit) == b""

    def test_fresh_nonce_per_call(self, aes_key):
        first = seal(aes_key, b"same input")
        second = seal(aes_key, b"same input")
        assert first[:NONCE_SIZE] != second[:NONCE_SIZE]
        assert first != second

    def test_wrong_key_fails(self, aes_key):
        unit = seal(aes_key, b"secret")
        with pytest.raises(AuthenticationError):
            open_sealed(os.urandom(32), unit)

    @pytest.mark.parametrize("position", [0, NONCE_SIZE, NONCE_SIZE + 3, -1])
    def test_bit_flip_detected(self, aes_key, position):
        unit = bytearray(seal(aes_key, b"tamper evident payload"))
        unit[position] ^= 0x01
        with pytest.raises(AuthenticationError):
            open_sealed(aes_key, bytes(unit))

    def test_associated_data_must_match(self, aes_key):
        unit = seal(aes_key, b"bound", b"context-a")
        assert open_sealed(aes_key, unit, b"context-a") == b"bound"
        with pytest.raises(AuthenticationError):
            open_sealed(aes_key, unit, b"context-b")

    def test_shorter_than_nonce_is_malformed(self, aes_key):
        with pytest.raises(MalformedInputError):
            open_sealed(aes_key, b"\x00" * (NONCE_SIZE - 1))

    def test_missing_tag_is_authentication_error(self, aes_key):
        with pytest.raises(AuthenticationError) as exc_info:
            open_sealed(aes_key, b"\x00" * (NONCE_SIZE + 4))
        assert not isinstance(exc_info.value, MalformedInputError)

    def test_invalid_key_rejected_before_opening(self):
        with pytest.raises(InvalidKeyError):
            open_sealed(b"short", b"\x00" * 64)
