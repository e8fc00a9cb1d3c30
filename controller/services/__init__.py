"""Service layer for business logic."""

from controller.services.auth_service import AuthService

__all__ = [
    "AuthService",
]
