"""Shared pytest fixtures for all tests."""

import os

import pytest
from fastapi.testclient import TestClient

from controller.main import app
from engine.config import EngineConfig
from engine.file_engine import FileEngine
from engine.metadata import InMemoryMetadataStore


@pytest.fixture(params=[16, 24, 32], ids=["aes128", "aes192", "aes256"])
def key(request):
    """
    Random AES key of every supported length.
    """
    return os.urandom(request.param)


@pytest.fixture
def aes_key():
    """
    Random 32-byte AES key.
    """
    return os.urandom(32)


@pytest.fixture
def storage_root(tmp_path):
    """
    Empty storage root directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to the storage root
    """
    root = tmp_path / "storage"
    root.mkdir()
    return root


@pytest.fixture
def metadata():
    return InMemoryMetadataStore()


@pytest.fixture
def engine(storage_root, metadata):
    """
    FileEngine over a temporary root with in-memory metadata.

    Uses a small chunk size so modest payloads span several chunks.
    """
    config = EngineConfig(storage_root=storage_root, chunk_size=1024, fsync=False)
    return FileEngine(config, metadata)


@pytest.fixture
def client(tmp_path, monkeypatch):
    """
    FastAPI test client with a temporary database and storage root.

    Startup runs inside the context manager, so the engine and the auth
    service are registered before the first request.
    """
    monkeypatch.setattr("controller.config.DATABASE_PATH", str(tmp_path / "metadata.db"))
    monkeypatch.setenv("SF_STORAGE_ROOT", str(tmp_path / "files"))
    monkeypatch.setenv("SF_FSYNC", "false")
    monkeypatch.setenv("SF_CHUNK_SIZE", "4096")

    with TestClient(app) as test_client:
        yield test_client
