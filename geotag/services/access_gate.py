"""
GeoTag Backend - Access-Control Gate
======================================

What:  Turns an inbound Authorization header into an authenticated User.
How:   header → bearer token → SessionAuthority.verify → CredentialService.find_by_id
Who:   Wrapped by the FastAPI dependencies in geotag/dependencies.py; every
       entry route depends on it before any Entry query runs.

Outcomes (required mode):
    no header / not "Bearer <token>"    → UnauthenticatedError
    bad signature, garbage, wrong alg   → InvalidTokenError   (401)
    expired                             → ExpiredTokenError   (401)
    valid token, user no longer exists  → UnauthenticatedError
    otherwise                           → the User

Optional mode swallows every one of those and returns None instead.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from geotag.exceptions import UnauthenticatedError
from geotag.models.user import User
from geotag.services.credential_service import CredentialService
from geotag.services.session_service import SessionAuthority
from geotag.services.token_cache import TokenCache

logger = logging.getLogger(__name__)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from 'Bearer <token>' (scheme is case-insensitive)."""
    if not authorization:
        return None
    parts = authorization.strip().split(None, 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


class AccessGate:
    def __init__(
        self,
        sessions: SessionAuthority,
        credentials: CredentialService,
        cache: Optional[TokenCache] = None,
    ):
        self.sessions = sessions
        self.credentials = credentials
        self.cache = cache

    async def authenticate(self, db: AsyncSession, authorization: Optional[str]) -> User:
        """Resolve the caller or raise an UnauthenticatedError (or subclass)."""
        token = extract_bearer_token(authorization)
        if token is None:
            raise UnauthenticatedError("Access denied. No token provided.")

        user_id = self.cache.get(token) if self.cache is not None else None
        if user_id is None:
            user_id, expires_at = self.sessions.resolve(token)
            if self.cache is not None:
                self.cache.put(token, user_id, expires_at)

        # Always hit the store: a cached token must not outlive its user
        user = await self.credentials.find_by_id(db, user_id)
        if user is None:
            logger.warning("Token for unknown user %s rejected", user_id)
            raise UnauthenticatedError("Access denied. User not found.")

        return user

    async def authenticate_optional(
        self,
        db: AsyncSession,
        authorization: Optional[str],
    ) -> Optional[User]:
        """Like authenticate(), but any auth failure means 'anonymous'."""
        try:
            return await self.authenticate(db, authorization)
        except UnauthenticatedError as e:
            if authorization:
                logger.info("Optional auth: proceeding without identity (%s)", e.error_code)
            return None
