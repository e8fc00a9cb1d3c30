"""Configuration settings for the Controller server."""

import os

from common.constants import API_KEY_PREFIX, DEFAULT_DATABASE_PATH
from engine.config import EngineConfig


DATABASE_PATH = os.environ.get("SF_DATABASE_PATH", DEFAULT_DATABASE_PATH)

CONTROLLER_HOST = os.environ.get("SF_HOST", "0.0.0.0")

CONTROLLER_PORT = int(os.environ.get("SF_PORT", "8000"))

ENCRYPTION_KEY_HEADER = "X-Encryption-Key"

DECRYPTION_KEY_HEADER = "X-Decryption-Key"


def load_engine_config() -> EngineConfig:
    """
    Build the storage engine configuration from SF_* environment variables.
    """
    return EngineConfig.from_env()
