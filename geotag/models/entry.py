"""
GeoTag Backend - Entry SQLAlchemy Model
=========================================

What:  ORM model for the `entries` table: one geotagged photo per row.
Who:   EntryService performs every read and write; each query is filtered by
       owner_id taken from the authenticated identity.

Table Design Rationale:
    - owner_id: required FK, set once at creation, never updated
    - image_url: absolute URI assigned at upload time, immutable
    - latitude/longitude: plain floats, range-checked by EntryService and
      backed by CHECK constraints so a bad row cannot be written even by
      code that bypasses the service
    - created_at/updated_at: UTC, assigned by the service

Indexes:
    idx_entries_owner_created (owner_id, created_at DESC):
        serves both the paginated listing and the date-range listing,
        which always filter by owner and order newest first
    idx_entries_lat_lng (latitude, longitude):
        flat compound index for map viewport queries; no geospatial index
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from geotag.database import Base
from geotag.models.user import utc_now

if TYPE_CHECKING:
    from geotag.models.user import User

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500


class Entry(Base):
    """
    A photo entry with coordinates, owned by exactly one user.

    State machine:
        nonexistent → create → active → update* → delete → gone
    There is no soft delete; a deleted row is gone.
    """

    __tablename__ = "entries"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(TITLE_MAX_LENGTH), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    image_url: Mapped[str] = mapped_column(String(2048), nullable=False)

    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)

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

    # Many-to-one is always needed for the owner summary in responses, so it
    # is joined in the same SELECT rather than lazy-loaded (which async
    # sessions cannot do implicitly).
    owner: Mapped["User"] = relationship(lazy="joined")

    __table_args__ = (
        CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_entries_latitude"),
        CheckConstraint("longitude >= -180 AND longitude <= 180", name="ck_entries_longitude"),
        Index("idx_entries_owner_created", "owner_id", created_at.desc()),
        Index("idx_entries_lat_lng", "latitude", "longitude"),
    )

    def __repr__(self) -> str:
        return (
            f"<Entry(id={self.id}, owner_id={self.owner_id}, "
            f"lat={self.latitude}, lng={self.longitude})>"
        )
