"""
GeoTag Backend - Shared Response Schemas
==========================================

What:  Error, message and health payloads used across all routers.
How:   Every model serializes with camelCase aliases (the mobile client's
       convention) while Python code keeps snake_case attribute names.
"""

from datetime import datetime, timezone
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel


def to_utc_iso(value: datetime) -> str:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# Timestamps always leave the API as ISO 8601 UTC with a trailing Z
UtcDatetime = Annotated[datetime, PlainSerializer(to_utc_iso, return_type=str)]


class CamelModel(BaseModel):
    """Base for API schemas: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(BaseModel):
    """
    Standardized error body for every failure response.

    Fields:
        error:      Stable machine-readable kind (e.g. "not_found", "token_expired")
        message:    Human-readable description
        details:    Optional extra context (e.g. the list of invalid fields)
        request_id: Correlation ID for tracing the failure in server logs
    """

    error: str = Field(description="Machine-readable error kind")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class MessageResponse(CamelModel):
    message: str


class HealthResponse(CamelModel):
    status: str = Field(description="Overall service status: healthy or unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
