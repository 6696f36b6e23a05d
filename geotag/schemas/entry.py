"""
GeoTag Backend - Entry Request/Response Schemas
=================================================

What:  The API contract for photo entries.
Why:   Separate from the ORM model so the response can embed an owner summary
       and can never carry the owner's password hash.

Wire shape (camelCase):
    {
        "id": "...",
        "owner": {"id": "...", "name": "Ada", "email": "ada@example.com"},
        "title": "Sunset",
        "description": "",
        "imageUrl": "http://host/uploads/2024/01/15/<uuid>.jpg",
        "latitude": 48.85,
        "longitude": 2.35,
        "createdAt": "2024-01-15T18:02:11.123456Z",
        "updatedAt": "2024-01-15T18:02:11.123456Z"
    }
"""

import uuid
from typing import List, Optional, Union

from pydantic import Field, StrictFloat, StrictInt

from geotag.schemas.common import CamelModel, UtcDatetime


class OwnerSummary(CamelModel):
    id: uuid.UUID
    name: str
    email: str


class EntryResponse(CamelModel):
    id: uuid.UUID
    owner: OwnerSummary
    title: str
    description: str
    image_url: str
    latitude: float
    longitude: float
    created_at: UtcDatetime
    updated_at: UtcDatetime


class EntryUpdateRequest(CamelModel):
    """
    Body of PUT /api/entries/{id}.

    Coordinates accept numbers or numeric strings (form-style clients send
    strings); EntryService parses and range-checks them. Omitting
    description leaves it unchanged.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    # Strict numbers so JSON true/false are rejected instead of becoming 1.0/0.0
    latitude: Optional[Union[StrictInt, StrictFloat, str]] = None
    longitude: Optional[Union[StrictInt, StrictFloat, str]] = None


class PaginationInfo(CamelModel):
    current_page: int
    total_pages: int
    total_entries: int = Field(description="All entries owned by the caller, unfiltered")
    entries_per_page: int


class EntryListResponse(CamelModel):
    """
    Listing response.

    date_filtered=True means startDate/endDate were applied: `entries` then
    holds the full matching set and is not paginated.
    """

    entries: List[EntryResponse]
    pagination: PaginationInfo
    date_filtered: bool = False
