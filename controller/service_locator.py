"""Service locator for the engine and auth components built at startup."""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from engine.file_engine import FileEngine
    from controller.services.auth_service import AuthService

_file_engine: Optional['FileEngine'] = None
_auth_service: Optional['AuthService'] = None


def set_file_engine(engine):
    """Set global file engine instance"""
    global _file_engine
    _file_engine = engine


def get_file_engine() -> 'FileEngine':
    """Get global file engine instance"""
    if _file_engine is None:
        raise RuntimeError("File engine has not been initialized")
    return _file_engine


def set_auth_service(service):
    """Set global auth service instance"""
    global _auth_service
    _auth_service = service


def get_auth_service() -> 'AuthService':
    """Get global auth service instance"""
    if _auth_service is None:
        raise RuntimeError("Auth service has not been initialized")
    return _auth_service
