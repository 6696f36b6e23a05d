"""
GeoTag Backend - Session Authority
====================================

What:  Issues and verifies bearer tokens that assert a user id.
How:   HS256 JWTs (PyJWT) with claims {sub, iat, exp}. Nothing is stored
       server-side; verification is purely cryptographic.
Who:   Auth routes call issue(); the AccessGate calls verify().

Failure kinds:
    ExpiredTokenError  signature fine, `exp` in the past  → client re-logs in silently
    InvalidTokenError  anything else (garbage, bad signature, wrong algorithm,
                       missing/invalid `sub`)            → client hard-logs out

There is no revocation list: logging out means the client deletes its token.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple

import jwt

from geotag.config import settings
from geotag.exceptions import ExpiredTokenError, InvalidTokenError

logger = logging.getLogger(__name__)


class SessionAuthority:
    """
    Stateless token issuer/verifier.

    Args:
        secret:     HMAC signing key
        algorithm:  JWT algorithm (only this one is accepted on verify)
        expires_in: token lifetime
        clock:      returns "now" as an aware datetime; injectable for tests
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        expires_in: Optional[timedelta] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.secret = secret or settings.jwt_secret
        self.algorithm = algorithm or settings.jwt_algorithm
        self.expires_in = (
            expires_in if expires_in is not None else timedelta(seconds=settings.jwt_expires_in)
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def issue(self, user_id: uuid.UUID) -> str:
        now = self._clock()
        payload: Dict[str, Any] = {
            "sub": str(user_id),
            "iat": int(now.timestamp()),
            "exp": int((now + self.expires_in).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> Dict[str, Any]:
        """
        Verify signature and expiry and return the claims.

        Raises:
            ExpiredTokenError, InvalidTokenError
        """
        if not token:
            raise InvalidTokenError()
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise ExpiredTokenError()
        except jwt.InvalidTokenError as e:
            logger.debug("Token rejected: %s", type(e).__name__)
            raise InvalidTokenError()

    def resolve(self, token: str) -> Tuple[uuid.UUID, datetime]:
        """Return (user id, expiry) for a valid token."""
        claims = self.decode(token)
        try:
            user_id = uuid.UUID(str(claims["sub"]))
            expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError):
            raise InvalidTokenError()
        return user_id, expires_at

    def verify(self, token: str) -> uuid.UUID:
        """Return the user id the token asserts."""
        user_id, _ = self.resolve(token)
        return user_id

    @property
    def expires_in_seconds(self) -> int:
        return int(self.expires_in.total_seconds())
