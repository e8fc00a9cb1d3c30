"""Common schemas used across multiple endpoints."""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Error body returned by every exception handler; code is UPPER_SNAKE."""
    detail: str
    code: str
