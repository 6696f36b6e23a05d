"""
GeoTag Backend - Stored Photo Route
=====================================

    GET /uploads/{file_path}

Serves photos written by FileService so that every entry's imageUrl
resolves. Public, like the static uploads directory it replaces: the URLs
contain an unguessable UUID. FileService.resolve() refuses paths that
escape the storage root.
"""

from fastapi import APIRouter
from fastapi.responses import FileResponse

from geotag.exceptions import NotFoundError
from geotag.services.file_service import UPLOADS_URL_PREFIX, file_service

router = APIRouter(prefix=UPLOADS_URL_PREFIX, tags=["Uploads"])


@router.get(
    "/{file_path:path}",
    summary="Serve an uploaded photo",
    responses={200: {"description": "Image file"}, 404: {"description": "File not found"}},
)
async def serve_upload(file_path: str) -> FileResponse:
    path = file_service.resolve(file_path)
    if path is None:
        raise NotFoundError(resource="file")

    # FileResponse guesses the media type from the extension
    return FileResponse(
        path=str(path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
