"""
GeoTag Backend - User SQLAlchemy Model
========================================

What:  ORM model for the `users` table (the Credential Store's records).
How:   Inherits from the shared DeclarativeBase; Alembic reads the metadata.

Table Design Rationale:
    - UUID primary key: non-sequential, so user ids cannot be enumerated
    - email: stored lowercased; the unique index makes uniqueness a store-level
      guarantee, not just a pre-insert check in the service
    - password_hash: bcrypt string ($2b$...) with its own random salt. The
      plaintext never reaches this table; set_password() is the only writer.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from geotag.database import Base

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    A registered account.

    Lifecycle:
        1. Created on registration (password hashed before insert)
        2. Profile updates may change name/email; the hash is recomputed only
           when a new plaintext password is supplied
        3. Never hard-deleted by the API
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(50), nullable=False)

    # Lowercased before it gets here; see CredentialService._normalize_email
    email: Mapped[str] = mapped_column(String(254), nullable=False)

    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    # No User.entries collection: entries are only ever read through
    # EntryService queries filtered by owner_id.

    __table_args__ = (
        Index("idx_users_email", "email", unique=True),
    )

    def __repr__(self) -> str:
        # password_hash deliberately left out of the repr (it ends up in logs)
        return f"<User(id={self.id}, email='{self.email}')>"
