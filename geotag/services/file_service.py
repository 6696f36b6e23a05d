"""
GeoTag Backend - Photo Storage Service
========================================

What:  Validates uploaded photos, writes them to disk, builds their public
       URL, and removes them again when entry creation fails.
How:   Extension allow-list and size limit, then an async write (aiofiles)
       into a date-organized directory under a UUID filename.
Who:   The create-entry route. An upload must finish and yield a URL before
       EntryService.create_entry runs, so an entry never points at a file
       that was not stored.

Directory Structure:
    uploads/
    └── 2024/
        └── 01/
            └── 15/
                ├── a1b2c3d4-....jpg
                └── e5f6a7b8-....png

UUID filenames carry no user input, which rules out path traversal through
the upload name and collisions between concurrent uploads.
"""

import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles

from geotag.config import settings
from geotag.exceptions import FileStorageError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

# Mount point of the uploads route; keep in sync with routes/uploads.py
UPLOADS_URL_PREFIX = "/uploads"


class FileService:
    """
    Args:
        storage_root: override settings.storage_root (tests pass a tmp dir)
    """

    def __init__(self, storage_root: Optional[str] = None):
        self.storage_root = Path(storage_root or settings.storage_root).resolve()

    def validate_extension(self, filename: str) -> str:
        """Return the lowercased extension or raise ValidationError."""
        ext = Path(filename or "").suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext or 'none'}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="image",
                context={"extension": ext},
            )
        return ext

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Reject empty files and files over settings.max_file_size.

        The Content-Length header is checked too because some clients
        report a size that does not match the body.
        """
        max_mb = settings.max_file_size / (1024 * 1024)

        if actual_size == 0:
            raise ValidationError(message="Uploaded image is empty.", field="image")

        if content_length and content_length > settings.max_file_size:
            raise ValidationError(
                message=f"Image size exceeds maximum of {max_mb:.0f}MB.",
                field="image",
                context={"reported_size": content_length},
            )

        if actual_size > settings.max_file_size:
            raise ValidationError(
                message=(
                    f"Image size ({actual_size / (1024 * 1024):.1f}MB) "
                    f"exceeds maximum of {max_mb:.0f}MB."
                ),
                field="image",
                context={"actual_size": actual_size},
            )

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        date_dir = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        relative_path = f"{date_dir}/{uuid.uuid4()}{extension}"
        return self.storage_root / relative_path, relative_path

    async def store_file(self, content: bytes, extension: str) -> Tuple[str, str]:
        """Write bytes to disk. Returns (absolute_path, relative_path)."""
        absolute_path, relative_path = self._generate_storage_path(extension)

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"os_error": str(e)},
            )

        logger.info("Photo stored: %s (%d bytes)", relative_path, len(content))
        return str(absolute_path), relative_path

    async def validate_and_store(
        self,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> Tuple[str, str]:
        """Extension check, size check, then write. Cheapest checks first."""
        ext = self.validate_extension(filename)
        self.validate_size(content_length, len(content))
        return await self.store_file(content, ext)

    def public_url(self, relative_path: str, base_url: str) -> str:
        """
        Absolute URL clients use to fetch the photo.

        settings.public_base_url wins over the request's base URL, so
        deployments behind a proxy can pin the external host.
        """
        root = (settings.public_base_url or base_url).rstrip("/")
        return f"{root}{UPLOADS_URL_PREFIX}/{relative_path}"

    def resolve(self, relative_path: str) -> Optional[Path]:
        """
        Map a URL path back to a stored file.

        Returns None when the path escapes storage_root or does not exist.
        """
        candidate = (self.storage_root / relative_path).resolve()
        if not candidate.is_relative_to(self.storage_root):
            return None
        if not candidate.is_file():
            return None
        return candidate

    async def cleanup_file(self, file_path: str) -> None:
        """
        Best-effort removal of a stored photo after a failed create.

        Failures are logged, never raised: the caller is already reporting
        the original error.
        """
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))


file_service = FileService()
