"""Pydantic schemas for authentication endpoints."""

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    """Request model for user registration."""
    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1)


class RegisterResponse(BaseModel):
    """Response model for user registration. The API key uses the 'sf_' prefix."""
    api_key: str
    user_id: str


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    """Response model for user login; the returned key replaces the previous one."""
    api_key: str
