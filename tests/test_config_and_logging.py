"""Tests for configuration, logging filters and controller helpers."""

import base64
import logging

import pytest

from common.logging_config import LOG_FORMAT, SensitiveDataFilter, setup_logging
from controller.auth import generate_api_key, hash_password, verify_password
from controller.utils import content_disposition, decode_key_header
from engine.config import EngineConfig
from engine.exceptions import InvalidKeyError


def filtered_message(msg, *args):
    record = logging.LogRecord("test", logging.INFO, __file__, 1, msg, args, None)
    SensitiveDataFilter().filter(record)
    return record.getMessage()


class TestEngineConfig:
    """Test EngineConfig."""

    def test_defaults(self, tmp_path):
        config = EngineConfig(storage_root=tmp_path)
        assert config.chunk_size == 64 * 1024
        assert config.directory_mode == 0o700
        assert config.fsync is True

    @pytest.mark.parametrize("chunk_size", [0, -1, 17 * 1024 * 1024])
    def test_rejects_bad_chunk_size(self, tmp_path, chunk_size):
        with pytest.raises(ValueError):
            EngineConfig(storage_root=tmp_path, chunk_size=chunk_size)

    def test_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SF_STORAGE_ROOT", str(tmp_path))
        monkeypatch.setenv("SF_CHUNK_SIZE", "4096")
        monkeypatch.setenv("SF_DIRECTORY_MODE", "750")
        monkeypatch.setenv("SF_FSYNC", "no")

        config = EngineConfig.from_env()

        assert config.storage_root == str(tmp_path)
        assert config.chunk_size == 4096
        assert config.directory_mode == 0o750
        assert config.fsync is False


class TestSensitiveDataFilter:
    """Test masking of secrets in log records."""

    def test_masks_password(self):
        assert "hunter2" not in filtered_message("login password=hunter2 for alice")

    def test_masks_bearer_token(self):
        assert "sf_" not in filtered_message("header Authorization: Bearer sf_12345")

    def test_masks_encryption_key_header(self):
        message = filtered_message("X-Encryption-Key: c2VjcmV0a2V5c2VjcmV0a2V5")
        assert "c2VjcmV0a2V5c2VjcmV0a2V5" not in message

    def test_masks_api_key_value(self):
        api_key = generate_api_key()
        assert api_key not in filtered_message(f"issued {api_key}")

    def test_masks_raw_bytes_args(self):
        assert filtered_message("key material %s", b"\x01\x02") == "key material ***BYTES***"

    def test_leaves_ordinary_messages(self):
        assert filtered_message("Stored file abc (11 bytes)") == "Stored file abc (11 bytes)"


class TestSetupLogging:
    """Test setup_logging."""

    def test_single_masked_handler(self):
        logger = setup_logging("sealedfiles_test_component", "debug")
        try:
            setup_logging("sealedfiles_test_component", "warning")

            assert logger.level == logging.WARNING
            assert len(logger.handlers) == 1
            handler = logger.handlers[0]
            assert handler.formatter._fmt == LOG_FORMAT
            assert any(isinstance(f, SensitiveDataFilter) for f in handler.filters)
        finally:
            logger.handlers.clear()


class TestControllerHelpers:
    """Test auth and header helpers."""

    def test_password_hashing(self):
        hashed = hash_password("s3cret")
        assert hashed != "s3cret"
        assert verify_password("s3cret", hashed)
        assert not verify_password("wrong", hashed)

    def test_api_key_format(self):
        api_key = generate_api_key()
        assert api_key.startswith("sf_")
        assert api_key != generate_api_key()

    def test_decode_key_header(self):
        raw = bytes(range(32))
        assert decode_key_header(base64.b64encode(raw).decode()) == raw
        assert decode_key_header(None) is None
        assert decode_key_header("  ") is None

    def test_decode_key_header_invalid(self):
        with pytest.raises(InvalidKeyError):
            decode_key_header("%%%")

    def test_content_disposition(self):
        header = content_disposition('résumé "final".pdf')
        assert header.startswith('attachment; filename="r')
        assert "filename*=UTF-8''r%C3%A9sum%C3%A9%20%22final%22.pdf" in header
        assert '"final"' not in header
