"""
GeoTag Backend - Entry Route Handlers
=======================================

What:  REST surface of the entry lifecycle. All routes require a bearer token.

    POST   /api/entries          multipart: image + title/description/latitude/longitude
    GET    /api/entries          ?page&limit  or  ?startDate&endDate
    GET    /api/entries/{id}
    PUT    /api/entries/{id}     JSON: title, description, latitude, longitude
    DELETE /api/entries/{id}

Routes stay thin: read the request, call EntryService with the owner id the
AccessGate resolved, shape the response. Error bodies come from the global
exception handlers in main.py.

Create flow:
    1. Validate the text fields (so a bad form never writes a file)
    2. Require the image part (MissingImageError otherwise)
    3. Store the photo and derive its absolute URL
    4. Create the entry; if that fails, delete the stored photo again
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from geotag.database import get_db_session
from geotag.dependencies import require_owner
from geotag.exceptions import MissingImageError
from geotag.models.user import User
from geotag.schemas.common import ErrorResponse, MessageResponse
from geotag.schemas.entry import EntryListResponse, EntryResponse, EntryUpdateRequest
from geotag.services.entry_service import entry_service, parse_date_param, validate_entry_fields
from geotag.services.file_service import file_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/entries", tags=["Entries"])

_AUTH_ERRORS = {401: {"description": "Missing, invalid or expired token", "model": ErrorResponse}}


@router.post(
    "",
    status_code=201,
    response_model=EntryResponse,
    responses={
        400: {"description": "Invalid fields or missing image", "model": ErrorResponse},
        **_AUTH_ERRORS,
    },
    summary="Create a geotagged photo entry",
)
async def create_entry(
    request: Request,
    title: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    latitude: Optional[str] = Form(default=None),
    longitude: Optional[str] = Form(default=None),
    image: Optional[UploadFile] = File(default=None, description="Photo (jpg, png, gif, webp)"),
    user: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db_session),
) -> EntryResponse:
    validate_entry_fields(title, description, latitude, longitude)

    if image is None or not image.filename:
        raise MissingImageError()

    try:
        content = await image.read()
        absolute_path, relative_path = await file_service.validate_and_store(
            filename=image.filename,
            content=content,
            content_length=image.size,
        )
    finally:
        await image.close()

    image_url = file_service.public_url(relative_path, str(request.base_url))

    try:
        return await entry_service.create_entry(
            db,
            owner_id=user.id,
            title=title,
            description=description,
            latitude=latitude,
            longitude=longitude,
            image_url=image_url,
        )
    except Exception:
        # The entry was not created; don't leave its photo behind
        await file_service.cleanup_file(absolute_path)
        raise


@router.get(
    "",
    response_model=EntryListResponse,
    responses={400: {"description": "Unparseable date", "model": ErrorResponse}, **_AUTH_ERRORS},
    summary="List your entries, newest first",
    description=(
        "Paginated by default. When both startDate and endDate are given, returns "
        "every entry created in that inclusive range, unpaginated. "
        "pagination.totalEntries always counts all of your entries."
    ),
)
async def list_entries(
    response: Response,
    page: int = Query(default=1, description="1-based page number; values below 1 act as 1"),
    limit: Optional[int] = Query(default=None, description="Page size; clamped to 1..MAX_PAGE_SIZE"),
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    user: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db_session),
) -> EntryListResponse:
    result = await entry_service.list_entries(
        db,
        owner_id=user.id,
        page=page,
        limit=limit,
        start_date=parse_date_param(start_date, "startDate"),
        end_date=parse_date_param(end_date, "endDate"),
    )
    response.headers["X-Total-Count"] = str(result.pagination.total_entries)
    return result


@router.get(
    "/{entry_id}",
    response_model=EntryResponse,
    responses={404: {"description": "Entry not found", "model": ErrorResponse}, **_AUTH_ERRORS},
    summary="Get one of your entries",
)
async def get_entry(
    entry_id: str,
    response: Response,
    user: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db_session),
) -> EntryResponse:
    result = await entry_service.get_entry(db, owner_id=user.id, entry_id=entry_id)
    # Entries are mutable and per-user
    response.headers["Cache-Control"] = "private, no-cache"
    return result


@router.put(
    "/{entry_id}",
    response_model=EntryResponse,
    responses={
        400: {"description": "Invalid fields", "model": ErrorResponse},
        404: {"description": "Entry not found", "model": ErrorResponse},
        **_AUTH_ERRORS,
    },
    summary="Update title, description and coordinates",
)
async def update_entry(
    entry_id: str,
    body: EntryUpdateRequest,
    user: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db_session),
) -> EntryResponse:
    return await entry_service.update_entry(
        db,
        owner_id=user.id,
        entry_id=entry_id,
        title=body.title,
        description=body.description,
        latitude=body.latitude,
        longitude=body.longitude,
    )


@router.delete(
    "/{entry_id}",
    response_model=MessageResponse,
    responses={404: {"description": "Entry not found", "model": ErrorResponse}, **_AUTH_ERRORS},
    summary="Delete one of your entries",
)
async def delete_entry(
    entry_id: str,
    user: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await entry_service.delete_entry(db, owner_id=user.id, entry_id=entry_id)
    return MessageResponse(message="Entry deleted successfully")
