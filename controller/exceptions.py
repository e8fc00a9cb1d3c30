"""Custom exception classes for the Controller."""


class ControllerException(Exception):
    """
    Base exception class for controller-level errors (accounts, API keys).
    """
    pass


class UserAlreadyExistsError(ControllerException):
    """
    Raised when attempting to register a username that already exists.
    """
    pass


class InvalidCredentialsError(ControllerException):
    """
    Raised when login credentials are invalid.
    """
    pass


class InvalidAPIKeyError(ControllerException):
    """
    Raised when an API Key is invalid or expired.
    """
    pass
