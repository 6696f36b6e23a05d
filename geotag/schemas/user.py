"""
GeoTag Backend - Auth & User Schemas
======================================

Request bodies are intentionally permissive (plain strings with empty
defaults): field rules live in CredentialService so that one
ValidationError can list every bad field with the same error kind the rest
of the API uses. Response models never contain a password or hash field.
"""

import uuid
from typing import Optional

from pydantic import Field

from geotag.schemas.common import CamelModel, UtcDatetime


class RegisterRequest(CamelModel):
    name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: Optional[str] = Field(
        default=None,
        description="Optional; when sent it must equal password",
    )


class LoginRequest(CamelModel):
    email: str = ""
    password: str = ""


class ProfileUpdateRequest(CamelModel):
    """Only the fields that are present are changed."""

    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class UserResponse(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    created_at: UtcDatetime


class AuthResponse(CamelModel):
    """Returned by register and login."""

    user: UserResponse
    token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Token lifetime in seconds")
