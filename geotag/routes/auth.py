"""
GeoTag Backend - Auth Route Handlers
======================================

    POST /api/auth/register   create account, returns {user, token}
    POST /api/auth/login      exchange email + password for a token
    GET  /api/auth/profile    the authenticated user
    PUT  /api/auth/profile    change name / email / password
    GET  /api/auth/session    {authenticated, user}; never 401s

Login failures always answer "Invalid email or password", whichever half
was wrong.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from geotag.database import get_db_session
from geotag.dependencies import get_access_gate, optional_owner, require_owner
from geotag.exceptions import UnauthenticatedError
from geotag.models.user import User
from geotag.schemas.common import CamelModel, ErrorResponse
from geotag.schemas.user import (
    AuthResponse,
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    UserResponse,
)
from geotag.services.access_gate import AccessGate
from geotag.services.credential_service import credential_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


class SessionStatus(CamelModel):
    authenticated: bool
    user: Optional[UserResponse] = Field(default=None)


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        created_at=user.created_at,
    )


def _auth_response(user: User, gate: AccessGate) -> AuthResponse:
    return AuthResponse(
        user=_user_response(user),
        token=gate.sessions.issue(user.id),
        expires_in=gate.sessions.expires_in_seconds,
    )


@router.post(
    "/register",
    status_code=201,
    response_model=AuthResponse,
    responses={400: {"description": "Invalid fields or email taken", "model": ErrorResponse}},
    summary="Register a new account",
)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
    gate: AccessGate = Depends(get_access_gate),
) -> AuthResponse:
    user = await credential_service.register(
        db,
        name=body.name,
        email=body.email,
        password=body.password,
        confirm_password=body.confirm_password,
    )
    return _auth_response(user, gate)


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"description": "Invalid email or password", "model": ErrorResponse}},
    summary="Log in and receive a bearer token",
)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
    gate: AccessGate = Depends(get_access_gate),
) -> AuthResponse:
    user = await credential_service.verify_credentials(db, body.email, body.password)
    if user is None:
        logger.warning("Failed login attempt")
        raise UnauthenticatedError("Invalid email or password")
    logger.info("User %s logged in", user.id)
    return _auth_response(user, gate)


@router.get(
    "/profile",
    response_model=UserResponse,
    responses={401: {"description": "Not authenticated", "model": ErrorResponse}},
    summary="Get the authenticated user's profile",
)
async def get_profile(user: User = Depends(require_owner)) -> UserResponse:
    return _user_response(user)


@router.put(
    "/profile",
    response_model=UserResponse,
    responses={
        400: {"description": "Invalid fields or email taken", "model": ErrorResponse},
        401: {"description": "Not authenticated", "model": ErrorResponse},
    },
    summary="Update name, email or password",
)
async def update_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    updated = await credential_service.update_profile(
        db,
        user,
        name=body.name,
        email=body.email,
        password=body.password,
    )
    return _user_response(updated)


@router.get(
    "/session",
    response_model=SessionStatus,
    summary="Report whether the bearer token (if any) is usable",
)
async def session_status(user: Optional[User] = Depends(optional_owner)) -> SessionStatus:
    if user is None:
        return SessionStatus(authenticated=False)
    return SessionStatus(authenticated=True, user=_user_response(user))
