"""Pydantic schemas for API requests and responses."""

from controller.schemas.auth import (
    RegisterRequest,
    RegisterResponse,
    LoginRequest,
    LoginResponse
)
from controller.schemas.files import (
    FileResponse,
    ListFilesResponse,
    UpdateFileRequest
)
from controller.schemas.common import ErrorResponse

__all__ = [
    "RegisterRequest",
    "RegisterResponse",
    "LoginRequest",
    "LoginResponse",
    "FileResponse",
    "ListFilesResponse",
    "UpdateFileRequest",
    "ErrorResponse"
]
