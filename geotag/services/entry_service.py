"""
GeoTag Backend - Entry Service (Entry Lifecycle)
==================================================

What:  create / list / get / update / delete for photo entries.
Why:   All ownership, validation and pagination rules live here, independent
       of HTTP, so they can be tested against a real session without a server.
Who:   Called by geotag/routes/entries.py with the owner id resolved by the
       AccessGate. No method accepts an owner from client input.

Ownership:
    Every query filters on owner_id. An entry owned by someone else is
    reported exactly like a missing one (NotFoundError("entry")), so ids of
    other users' entries cannot be confirmed by probing.

Listing modes:
    start_date AND end_date given → every entry with start ≤ created_at ≤ end,
                                     newest first, NOT paginated
    otherwise                     → page `page` (1-based) of `limit` entries,
                                     newest first
    total_entries is always the caller's full count, unaffected by dates.
    page < 1 is clamped to 1; limit is clamped into [1, max_page_size].

Ordering:
    created_at DESC, then id DESC so entries sharing a timestamp still come
    back in a stable order.
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import urlparse

from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from geotag.config import settings
from geotag.exceptions import (
    DatabaseError,
    MissingImageError,
    NotFoundError,
    ValidationError,
)
from geotag.models.entry import DESCRIPTION_MAX_LENGTH, TITLE_MAX_LENGTH, Entry
from geotag.models.user import User
from geotag.schemas.entry import (
    EntryListResponse,
    EntryResponse,
    OwnerSummary,
    PaginationInfo,
)

logger = logging.getLogger(__name__)

Coordinate = Union[float, int, str, None]


# ── Field Validation ──────────────────────────────────────────────────────

def _parse_coordinate(value: Coordinate) -> Optional[float]:
    """Numbers and numeric strings become floats; anything else is None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def validate_entry_fields(
    title: Optional[str],
    description: Optional[str],
    latitude: Coordinate,
    longitude: Coordinate,
) -> Tuple[str, Optional[str], float, float]:
    """
    Check every field and return the cleaned values.

    Collects all violations before raising, so the client learns about the
    title and the latitude in one round trip.

    Raises:
        ValidationError with `errors` = [{"field", "message"}, ...]
    """
    errors: List[Dict[str, str]] = []

    clean_title = (title or "").strip()
    if not clean_title:
        errors.append({"field": "title", "message": "Title is required"})
    elif len(clean_title) > TITLE_MAX_LENGTH:
        errors.append({
            "field": "title",
            "message": f"Title must be between 1 and {TITLE_MAX_LENGTH} characters",
        })

    clean_description = description.strip() if description is not None else None
    if clean_description is not None and len(clean_description) > DESCRIPTION_MAX_LENGTH:
        errors.append({
            "field": "description",
            "message": f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters",
        })

    lat = _parse_coordinate(latitude)
    if lat is None or not -90 <= lat <= 90:
        errors.append({"field": "latitude", "message": "Latitude must be between -90 and 90"})

    lng = _parse_coordinate(longitude)
    if lng is None or not -180 <= lng <= 180:
        errors.append({"field": "longitude", "message": "Longitude must be between -180 and 180"})

    if errors:
        fields = ", ".join(e["field"] for e in errors)
        raise ValidationError(message=f"Validation failed: {fields}", errors=errors)

    return clean_title, clean_description, lat, lng


def _validate_image_url(image_url: Optional[str]) -> str:
    if not image_url or not image_url.strip():
        raise MissingImageError()
    parsed = urlparse(image_url.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(
            message="Image reference must be an absolute http(s) URL",
            field="image",
        )
    return image_url.strip()


def parse_date_param(value: Optional[str], field: str) -> Optional[datetime]:
    """
    Parse an ISO 8601 query parameter into an aware UTC datetime.

    Naive values (including bare dates like 2024-01-15) are taken as UTC.
    """
    if value is None or value == "":
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(
            message=f"{field} must be an ISO 8601 date or datetime",
            field=field,
        )
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_entry_id(entry_id: Union[str, uuid.UUID]) -> uuid.UUID:
    if isinstance(entry_id, uuid.UUID):
        return entry_id
    try:
        return uuid.UUID(str(entry_id))
    except ValueError:
        # Malformed ids look exactly like missing ones
        raise NotFoundError(resource="entry")


class EntryService:
    """
    Stateless apart from the injectable clock, which tests use to give
    entries distinct, known creation times.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _now(self) -> datetime:
        return self._clock()

    # ── Serialization ─────────────────────────────────────────────────────

    @staticmethod
    def to_response(entry: Entry) -> EntryResponse:
        return EntryResponse(
            id=entry.id,
            owner=OwnerSummary(
                id=entry.owner.id,
                name=entry.owner.name,
                email=entry.owner.email,
            ),
            title=entry.title,
            description=entry.description or "",
            image_url=entry.image_url,
            latitude=entry.latitude,
            longitude=entry.longitude,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )

    # ── Lookup ────────────────────────────────────────────────────────────

    async def _get_owned(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        entry_id: Union[str, uuid.UUID],
    ) -> Entry:
        parsed_id = _parse_entry_id(entry_id)
        try:
            result = await db.execute(
                select(Entry).where(Entry.id == parsed_id, Entry.owner_id == owner_id)
            )
            entry = result.unique().scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching entry %s: %s", parsed_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the entry. Please try again.",
                context={"error_type": type(e).__name__},
            )

        if entry is None:
            raise NotFoundError(resource="entry")
        return entry

    # ── Operations ────────────────────────────────────────────────────────

    async def create_entry(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        title: Optional[str],
        description: Optional[str],
        latitude: Coordinate,
        longitude: Coordinate,
        image_url: Optional[str],
    ) -> EntryResponse:
        """
        Create an entry for `owner_id`.

        Field errors are reported before a missing image, matching the order
        the upload form is filled in.

        Raises:
            ValidationError, MissingImageError, NotFoundError (owner vanished),
            DatabaseError
        """
        clean_title, clean_description, lat, lng = validate_entry_fields(
            title, description, latitude, longitude
        )
        clean_image_url = _validate_image_url(image_url)

        try:
            owner = await db.get(User, owner_id)
            if owner is None:
                raise NotFoundError(resource="user")

            now = self._now()
            entry = Entry(
                owner=owner,
                title=clean_title,
                description=clean_description or "",
                image_url=clean_image_url,
                latitude=lat,
                longitude=lng,
                created_at=now,
                updated_at=now,
            )
            db.add(entry)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error creating entry: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="An error occurred while saving your entry. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Entry %s created by %s at (%.5f, %.5f)", entry.id, owner_id, lat, lng)
        return self.to_response(entry)

    async def list_entries(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        page: int = 1,
        limit: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> EntryListResponse:
        """
        List the owner's entries, newest first.

        Args:
            page:       1-based page number (clamped to ≥ 1)
            limit:      page size (clamped to 1..max_page_size)
            start_date: inclusive lower bound on created_at
            end_date:   inclusive upper bound on created_at
                        (both bounds are needed to switch to date mode)
        """
        page = max(1, int(page or 1))
        if limit is None:
            limit = settings.default_page_size
        limit = min(max(1, int(limit)), settings.max_page_size)
        date_filtered = start_date is not None and end_date is not None

        query = (
            select(Entry)
            .where(Entry.owner_id == owner_id)
            .order_by(desc(Entry.created_at), desc(Entry.id))
        )
        if date_filtered:
            query = query.where(
                Entry.created_at >= start_date,
                Entry.created_at <= end_date,
            )

        try:
            count_result = await db.execute(
                select(func.count(Entry.id)).where(Entry.owner_id == owner_id)
            )
            total_entries = count_result.scalar() or 0

            offset = (page - 1) * limit
            if not date_filtered and offset >= total_entries:
                # Past the last page: nothing to fetch, and an arbitrarily
                # large offset would not fit the database's integer type
                entries = []
            else:
                if not date_filtered:
                    query = query.offset(offset).limit(limit)
                result = await db.execute(query)
                entries = list(result.unique().scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing entries: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve entries. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return EntryListResponse(
            entries=[self.to_response(entry) for entry in entries],
            pagination=PaginationInfo(
                current_page=page,
                total_pages=math.ceil(total_entries / limit),
                total_entries=total_entries,
                entries_per_page=limit,
            ),
            date_filtered=date_filtered,
        )

    async def get_entry(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        entry_id: Union[str, uuid.UUID],
    ) -> EntryResponse:
        entry = await self._get_owned(db, owner_id, entry_id)
        return self.to_response(entry)

    async def update_entry(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        entry_id: Union[str, uuid.UUID],
        title: Optional[str],
        description: Optional[str],
        latitude: Coordinate,
        longitude: Coordinate,
    ) -> EntryResponse:
        """
        Replace title, coordinates and (when given) description.

        Owner and image_url are not touched. description=None keeps the
        current description; "" clears it.
        """
        entry = await self._get_owned(db, owner_id, entry_id)
        clean_title, clean_description, lat, lng = validate_entry_fields(
            title, description, latitude, longitude
        )

        entry.title = clean_title
        if clean_description is not None:
            entry.description = clean_description
        entry.latitude = lat
        entry.longitude = lng
        entry.updated_at = self._now()

        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating entry %s: %s", entry.id, str(e))
            raise DatabaseError(
                message="Could not update the entry. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Entry %s updated by %s", entry.id, owner_id)
        return self.to_response(entry)

    async def delete_entry(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        entry_id: Union[str, uuid.UUID],
    ) -> Dict[str, Any]:
        """Delete an owned entry. A second call for the same id is NotFound."""
        entry = await self._get_owned(db, owner_id, entry_id)
        deleted = {"id": entry.id, "image_url": entry.image_url}

        try:
            await db.delete(entry)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting entry %s: %s", entry.id, str(e))
            raise DatabaseError(
                message="Could not delete the entry. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Entry %s deleted by %s", deleted["id"], owner_id)
        return deleted


entry_service = EntryService()
