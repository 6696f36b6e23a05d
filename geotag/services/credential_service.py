"""
GeoTag Backend - Credential Service (Credential Store)
========================================================

What:  Owns user records: registration, credential verification, lookup by id
       and profile updates.
How:   passlib's CryptContext with bcrypt. Every hash carries its own random
       salt, and comparison happens inside passlib in constant time.
Who:   Called by the auth routes and by the AccessGate (find_by_id).

Security rules:
    - Plaintext passwords never reach the database or the logs
    - verify_credentials() returns None for both "no such user" and "wrong
      password", and burns a dummy hash for unknown emails so response time
      doesn't reveal which one happened
    - Email uniqueness is checked up front for a friendly error and also
      enforced by the unique index (IntegrityError → DuplicateKeyError) for
      the race where two registrations interleave
"""

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from email_validator import EmailNotValidError, validate_email
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from geotag.config import settings
from geotag.exceptions import DatabaseError, DuplicateKeyError, ValidationError
from geotag.models.user import User

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 6
# bcrypt only looks at the first 72 bytes; longer input is rejected instead
# of being silently truncated
PASSWORD_MAX_BYTES = 72

_WHITESPACE = re.compile(r"\s+")


class CredentialService:
    """
    Registration and login logic over the `users` table.

    The CryptContext is built per instance so tests can use a cheap cost
    factor without touching global state.
    """

    def __init__(self, bcrypt_rounds: Optional[int] = None):
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=bcrypt_rounds or settings.bcrypt_rounds,
        )

    # ── Hashing ───────────────────────────────────────────────────────────

    def hash_password(self, plaintext: str) -> str:
        return self.pwd_context.hash(plaintext)

    def set_password(self, user: User, plaintext: str) -> None:
        """The only writer of User.password_hash; always re-salts."""
        user.password_hash = self.hash_password(plaintext)

    # ── Validation ────────────────────────────────────────────────────────

    @staticmethod
    def _normalize_email(email: str) -> str:
        return (email or "").strip().lower()

    @staticmethod
    def _name_errors(name: str) -> List[Dict[str, str]]:
        cleaned = _WHITESPACE.sub(" ", (name or "").strip())
        if not cleaned:
            return [{"field": "name", "message": "Name is required"}]
        if len(cleaned) > NAME_MAX_LENGTH:
            return [{"field": "name", "message": f"Name cannot exceed {NAME_MAX_LENGTH} characters"}]
        return []

    @staticmethod
    def _email_errors(email: str) -> List[Dict[str, str]]:
        if not email:
            return [{"field": "email", "message": "Email is required"}]
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            return [{"field": "email", "message": "Please enter a valid email address"}]
        return []

    @staticmethod
    def _password_errors(password: str) -> List[Dict[str, str]]:
        if not password or len(password) < PASSWORD_MIN_LENGTH:
            return [{
                "field": "password",
                "message": f"Password must be at least {PASSWORD_MIN_LENGTH} characters long",
            }]
        if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
            return [{
                "field": "password",
                "message": f"Password cannot exceed {PASSWORD_MAX_BYTES} bytes",
            }]
        return []

    @staticmethod
    def _raise_if_errors(errors: List[Dict[str, str]]) -> None:
        if errors:
            fields = ", ".join(e["field"] for e in errors)
            raise ValidationError(message=f"Validation failed: {fields}", errors=errors)

    # ── Operations ────────────────────────────────────────────────────────

    async def register(
        self,
        db: AsyncSession,
        name: str,
        email: str,
        password: str,
        confirm_password: Optional[str] = None,
    ) -> User:
        """
        Create a new account.

        Raises:
            ValidationError: one entry per invalid field (name, email, password,
                             confirmPassword)
            DuplicateKeyError: the email is already registered
            DatabaseError: the insert failed for any other reason
        """
        normalized_email = self._normalize_email(email)

        errors = self._name_errors(name)
        errors += self._email_errors(normalized_email)
        errors += self._password_errors(password)
        if confirm_password is not None and confirm_password != password:
            errors.append({"field": "confirmPassword", "message": "Passwords do not match"})
        self._raise_if_errors(errors)

        if await self.find_by_email(db, normalized_email) is not None:
            raise DuplicateKeyError(field="email")

        now = datetime.now(timezone.utc)
        user = User(
            name=_WHITESPACE.sub(" ", name.strip()),
            email=normalized_email,
            created_at=now,
            updated_at=now,
        )
        self.set_password(user, password)
        db.add(user)

        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise DuplicateKeyError(field="email")
        except SQLAlchemyError as e:
            logger.error("Database error registering user: %s", str(e))
            raise DatabaseError(
                message="Could not create the account. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("User registered: %s", user.id)
        return user

    async def verify_credentials(
        self,
        db: AsyncSession,
        email: str,
        password: str,
    ) -> Optional[User]:
        """
        Return the user when email and password match, otherwise None.

        The caller cannot tell an unknown email from a wrong password.
        """
        user = await self.find_by_email(db, self._normalize_email(email))
        if user is None:
            # Equalize timing with the real verification path
            self.pwd_context.dummy_verify()
            return None

        if not password or not self.pwd_context.verify(password, user.password_hash):
            return None

        return user

    async def find_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        try:
            result = await db.execute(select(User).where(User.email == email))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error looking up user by email: %s", str(e))
            raise DatabaseError(context={"error_type": type(e).__name__})

    async def find_by_id(self, db: AsyncSession, user_id: uuid.UUID) -> Optional[User]:
        try:
            return await db.get(User, user_id)
        except SQLAlchemyError as e:
            logger.error("Database error looking up user %s: %s", user_id, str(e))
            raise DatabaseError(context={"error_type": type(e).__name__})

    async def update_profile(
        self,
        db: AsyncSession,
        user: User,
        name: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> User:
        """
        Change name, email and/or password. Absent (None) fields are untouched.

        The hash is recomputed only when a new plaintext password is given.
        """
        normalized_email = self._normalize_email(email) if email is not None else None

        errors: List[Dict[str, str]] = []
        if name is not None:
            errors += self._name_errors(name)
        if normalized_email is not None:
            errors += self._email_errors(normalized_email)
        if password is not None:
            errors += self._password_errors(password)
        self._raise_if_errors(errors)

        if normalized_email is not None and normalized_email != user.email:
            existing = await self.find_by_email(db, normalized_email)
            if existing is not None and existing.id != user.id:
                raise DuplicateKeyError(field="email")
            user.email = normalized_email

        if name is not None:
            user.name = _WHITESPACE.sub(" ", name.strip())
        if password is not None:
            self.set_password(user, password)
        user.updated_at = datetime.now(timezone.utc)

        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise DuplicateKeyError(field="email")
        except SQLAlchemyError as e:
            logger.error("Database error updating user %s: %s", user.id, str(e))
            raise DatabaseError(
                message="Could not update the profile. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("User %s updated profile", user.id)
        return user


credential_service = CredentialService()
