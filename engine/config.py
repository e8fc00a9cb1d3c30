"""Explicit configuration handed to FileEngine."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from common.constants import (
    DEFAULT_CHUNK_SIZE_BYTES,
    DEFAULT_DIRECTORY_MODE,
    DEFAULT_STORAGE_ROOT,
    MAX_CHUNK_SIZE_BYTES,
)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class EngineConfig:
    """
    Settings for one FileEngine instance.
    """
    storage_root: Union[str, Path]
    chunk_size: int = DEFAULT_CHUNK_SIZE_BYTES
    directory_mode: int = DEFAULT_DIRECTORY_MODE
    fsync: bool = True

    def __post_init__(self):
        if not 0 < self.chunk_size <= MAX_CHUNK_SIZE_BYTES:
            raise ValueError(
                f"chunk_size must be between 1 and {MAX_CHUNK_SIZE_BYTES} bytes, got {self.chunk_size}"
            )

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """
        Build configuration from SF_* environment variables.
        """
        return cls(
            storage_root=os.environ.get("SF_STORAGE_ROOT", DEFAULT_STORAGE_ROOT),
            chunk_size=int(os.environ.get("SF_CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE_BYTES))),
            directory_mode=int(os.environ.get("SF_DIRECTORY_MODE", oct(DEFAULT_DIRECTORY_MODE)), 8),
            fsync=_env_bool(os.environ.get("SF_FSYNC", "true")),
        )
