"""
GeoTag Backend - FastAPI Dependencies
=======================================

What:  Glue between FastAPI's dependency injection and the AccessGate.
How:   The gate lives on `app.state.access_gate` (built in main.create_app),
       so tests can swap it per application instead of patching a global.

    require_owner   → User, or 401 via the UnauthenticatedError handler
    optional_owner  → User or None, never fails on auth problems

Both record the resolved id on `request.state.owner_id` for logging and
downstream handlers. Entry routes read the owner only from here, never
from the request body.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from geotag.database import get_db_session
from geotag.models.user import User
from geotag.services.access_gate import AccessGate

# auto_error=False: a missing header must become our own 401 body, not
# FastAPI's default 403
bearer_scheme = HTTPBearer(auto_error=False)


def get_access_gate(request: Request) -> AccessGate:
    return request.app.state.access_gate


def _authorization_header(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    # HTTPBearer drops malformed headers; pass the raw value so the gate
    # sees exactly what the client sent
    if credentials is not None:
        return f"{credentials.scheme} {credentials.credentials}"
    return request.headers.get("Authorization")


async def require_owner(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
    gate: AccessGate = Depends(get_access_gate),
) -> User:
    user = await gate.authenticate(db, _authorization_header(request, credentials))
    request.state.owner_id = user.id
    return user


async def optional_owner(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
    gate: AccessGate = Depends(get_access_gate),
) -> Optional[User]:
    user = await gate.authenticate_optional(db, _authorization_header(request, credentials))
    request.state.owner_id = user.id if user is not None else None
    return user
