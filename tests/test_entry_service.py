"""
GeoTag Backend - Entry Service Tests
======================================

Runs against a real in-memory SQLite session. A stepping clock gives every
entry a distinct, known created_at.

What we test:
    ✅ Field validation (bounds, lengths, numeric strings, all errors at once)
    ✅ Field errors are reported before a missing image
    ✅ Ownership: other users' entries look exactly like missing ones
    ✅ Pagination arithmetic and clamping; newest-first ordering
    ✅ Date-range mode: inclusive bounds, unpaginated, totals unaffected
    ✅ Update keeps owner and image; delete twice → NotFound
    ✅ Users carry no entries collection
"""

import math
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from geotag.config import settings
from geotag.database import Base
from geotag.exceptions import (
    DatabaseError,
    MissingImageError,
    NotFoundError,
    ValidationError,
)
from geotag.models.user import User
from geotag.services.credential_service import CredentialService
from geotag.services.entry_service import (
    EntryService,
    parse_date_param,
    validate_entry_fields,
)

IMAGE_URL = "http://test/uploads/2024/01/15/photo.jpg"
START = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


class SteppingClock:
    """Returns START, START+1min, START+2min, ... on successive calls."""

    def __init__(self, start: datetime = START, step: timedelta = timedelta(minutes=1)):
        self.current = start - step
        self.step = step

    def __call__(self) -> datetime:
        self.current += self.step
        return self.current


async def make_user(db_session, email="ada@example.com"):
    return await CredentialService(bcrypt_rounds=4).register(db_session, "Ada", email, "secret123")


class TestValidateEntryFields:

    def test_valid_fields_are_cleaned(self):
        title, description, lat, lng = validate_entry_fields("  Sunset ", " warm ", "48.85", -2)

        assert title == "Sunset"
        assert description == "warm"
        assert (lat, lng) == (48.85, -2.0)

    def test_boundaries_are_inclusive(self):
        _, _, lat, lng = validate_entry_fields("t", None, 90, -180)

        assert (lat, lng) == (90.0, -180.0)

    def test_all_errors_collected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_entry_fields("", "d" * 501, 90.0001, "east")

        assert exc_info.value.fields == ["title", "description", "latitude", "longitude"]

    @pytest.mark.parametrize("latitude", [91, -90.5, "nan", "inf", None, "", True])
    def test_bad_latitudes(self, latitude):
        with pytest.raises(ValidationError) as exc_info:
            validate_entry_fields("t", None, latitude, 0)

        assert exc_info.value.fields == ["latitude"]

    def test_title_length_limit(self):
        validate_entry_fields("t" * 100, None, 0, 0)
        with pytest.raises(ValidationError):
            validate_entry_fields("t" * 101, None, 0, 0)


class TestParseDateParam:

    def test_z_suffix(self):
        assert parse_date_param("2024-01-15T10:00:00Z", "startDate") == datetime(
            2024, 1, 15, 10, tzinfo=timezone.utc
        )

    def test_offset_converted_to_utc(self):
        assert parse_date_param("2024-01-15T12:00:00+02:00", "startDate") == datetime(
            2024, 1, 15, 10, tzinfo=timezone.utc
        )

    def test_bare_date_is_utc_midnight(self):
        assert parse_date_param("2024-01-15", "endDate") == datetime(2024, 1, 15, tzinfo=timezone.utc)

    def test_absent(self):
        assert parse_date_param(None, "startDate") is None
        assert parse_date_param("", "startDate") is None

    def test_garbage(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_date_param("last tuesday", "startDate")

        assert exc_info.value.fields == ["startDate"]

    def test_short_fraction_with_z(self):
        assert parse_date_param("2024-01-15T10:00:00.5Z", "startDate") == datetime(
            2024, 1, 15, 10, 0, 0, 500000, tzinfo=timezone.utc
        )


class TestCreateEntry:

    def setup_method(self):
        self.service = EntryService(clock=SteppingClock())

    @pytest.mark.asyncio
    async def test_create_returns_owner_summary(self, db_session):
        user = await make_user(db_session)

        entry = await self.service.create_entry(
            db_session, user.id, "Sunset", None, "45.5", "-73.56", IMAGE_URL
        )

        assert entry.owner.id == user.id
        assert entry.owner.email == "ada@example.com"
        assert entry.description == ""
        assert entry.latitude == 45.5
        assert entry.created_at == START
        assert entry.updated_at == entry.created_at

    @pytest.mark.asyncio
    async def test_field_errors_before_missing_image(self, db_session):
        user = await make_user(db_session)

        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_entry(db_session, user.id, "", None, 0, 0, None)

        assert not isinstance(exc_info.value, MissingImageError)

    @pytest.mark.asyncio
    async def test_missing_image(self, db_session):
        user = await make_user(db_session)

        with pytest.raises(MissingImageError) as exc_info:
            await self.service.create_entry(db_session, user.id, "t", None, 0, 0, "")

        assert exc_info.value.error_code == "missing_image"

    @pytest.mark.asyncio
    async def test_relative_image_url_rejected(self, db_session):
        user = await make_user(db_session)

        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_entry(db_session, user.id, "t", None, 0, 0, "/uploads/x.jpg")

        assert exc_info.value.fields == ["image"]

    @pytest.mark.asyncio
    async def test_create_for_vanished_owner(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.create_entry(db_session, uuid.uuid4(), "t", None, 0, 0, IMAGE_URL)

    @pytest.mark.asyncio
    async def test_store_failure_is_database_error(self, mock_db_session):
        mock_db_session.get.side_effect = OperationalError("SELECT", {}, Exception("down"))

        with pytest.raises(DatabaseError):
            await self.service.create_entry(
                mock_db_session, uuid.uuid4(), "t", None, 0, 0, IMAGE_URL
            )


class TestOwnership:

    def setup_method(self):
        self.service = EntryService(clock=SteppingClock())

    @pytest.mark.asyncio
    async def test_other_owner_sees_not_found_everywhere(self, db_session):
        alice = await make_user(db_session, "alice@example.com")
        bob = await make_user(db_session, "bob@example.com")
        entry = await self.service.create_entry(db_session, alice.id, "Mine", None, 1, 1, IMAGE_URL)

        with pytest.raises(NotFoundError):
            await self.service.get_entry(db_session, bob.id, entry.id)
        with pytest.raises(NotFoundError):
            await self.service.update_entry(db_session, bob.id, entry.id, "Hijack", None, 0, 0)
        with pytest.raises(NotFoundError):
            await self.service.delete_entry(db_session, bob.id, entry.id)

        still_there = await self.service.get_entry(db_session, alice.id, entry.id)
        assert still_there.title == "Mine"

    @pytest.mark.asyncio
    async def test_foreign_and_missing_errors_are_identical(self, db_session):
        alice = await make_user(db_session, "alice@example.com")
        bob = await make_user(db_session, "bob@example.com")
        entry = await self.service.create_entry(db_session, alice.id, "Mine", None, 1, 1, IMAGE_URL)

        with pytest.raises(NotFoundError) as foreign:
            await self.service.get_entry(db_session, bob.id, entry.id)
        with pytest.raises(NotFoundError) as missing:
            await self.service.get_entry(db_session, bob.id, uuid.uuid4())

        assert foreign.value.message == missing.value.message

    @pytest.mark.asyncio
    async def test_malformed_id_is_not_found(self, db_session):
        user = await make_user(db_session)

        with pytest.raises(NotFoundError):
            await self.service.get_entry(db_session, user.id, "not-a-uuid")

    @pytest.mark.asyncio
    async def test_listing_only_shows_own_entries(self, db_session):
        alice = await make_user(db_session, "alice@example.com")
        bob = await make_user(db_session, "bob@example.com")
        await self.service.create_entry(db_session, alice.id, "A", None, 1, 1, IMAGE_URL)
        await self.service.create_entry(db_session, bob.id, "B", None, 1, 1, IMAGE_URL)

        listing = await self.service.list_entries(db_session, bob.id)

        assert [e.title for e in listing.entries] == ["B"]
        assert listing.pagination.total_entries == 1


class TestListEntries:

    def setup_method(self):
        self.service = EntryService(clock=SteppingClock())

    async def _seed(self, db_session, count):
        user = await make_user(db_session)
        for i in range(count):
            await self.service.create_entry(db_session, user.id, f"E{i}", None, 0, 0, IMAGE_URL)
        return user

    @pytest.mark.asyncio
    async def test_newest_first_and_page_math(self, db_session):
        user = await self._seed(db_session, 25)

        first = await self.service.list_entries(db_session, user.id, page=1, limit=10)
        last = await self.service.list_entries(db_session, user.id, page=3, limit=10)

        assert [e.title for e in first.entries][:3] == ["E24", "E23", "E22"]
        assert first.pagination.total_pages == 3
        assert first.pagination.total_entries == 25
        assert first.pagination.entries_per_page == 10
        assert len(last.entries) == 5
        assert last.entries[-1].title == "E0"

    @pytest.mark.asyncio
    async def test_page_past_end_is_empty(self, db_session):
        user = await self._seed(db_session, 3)

        listing = await self.service.list_entries(db_session, user.id, page=5, limit=2)

        assert listing.entries == []
        assert listing.pagination.current_page == 5
        assert listing.pagination.total_pages == math.ceil(3 / 2)

    @pytest.mark.asyncio
    async def test_no_entries(self, db_session):
        user = await make_user(db_session)

        listing = await self.service.list_entries(db_session, user.id)

        assert listing.entries == []
        assert listing.pagination.total_pages == 0
        assert listing.pagination.entries_per_page == settings.default_page_size

    @pytest.mark.asyncio
    async def test_page_and_limit_are_clamped(self, db_session):
        user = await self._seed(db_session, 2)

        listing = await self.service.list_entries(db_session, user.id, page=0, limit=10_000)

        assert listing.pagination.current_page == 1
        assert listing.pagination.entries_per_page == settings.max_page_size
        assert len(listing.entries) == 2

        tiny = await self.service.list_entries(db_session, user.id, page=-3, limit=0)
        assert tiny.pagination.entries_per_page == 1
        assert len(tiny.entries) == 1

    @pytest.mark.asyncio
    async def test_date_range_is_inclusive_and_unpaginated(self, db_session):
        # Entries at 12:00, 12:01, ..., 12:05
        user = await self._seed(db_session, 6)

        listing = await self.service.list_entries(
            db_session,
            user.id,
            page=1,
            limit=1,
            start_date=START + timedelta(minutes=1),
            end_date=START + timedelta(minutes=4),
        )

        assert listing.date_filtered is True
        assert [e.title for e in listing.entries] == ["E4", "E3", "E2", "E1"]
        assert listing.pagination.total_entries == 6

    @pytest.mark.asyncio
    async def test_single_date_bound_is_ignored(self, db_session):
        user = await self._seed(db_session, 3)

        listing = await self.service.list_entries(
            db_session, user.id, start_date=START + timedelta(minutes=2)
        )

        assert listing.date_filtered is False
        assert len(listing.entries) == 3

    @pytest.mark.asyncio
    async def test_huge_page_is_empty_with_totals(self, db_session):
        user = await self._seed(db_session, 3)

        listing = await self.service.list_entries(db_session, user.id, page=10**19, limit=2)

        assert listing.entries == []
        assert listing.pagination.current_page == 10**19
        assert listing.pagination.total_entries == 3
        assert listing.pagination.total_pages == 2


class TestUpdateAndDelete:

    def setup_method(self):
        self.service = EntryService(clock=SteppingClock())

    @pytest.mark.asyncio
    async def test_update_round_trip(self, db_session):
        user = await make_user(db_session)
        created = await self.service.create_entry(
            db_session, user.id, "Old", "keep me", 1, 1, IMAGE_URL
        )

        updated = await self.service.update_entry(
            db_session, user.id, created.id, "New", None, "-33.9", 151.2
        )
        fetched = await self.service.get_entry(db_session, user.id, created.id)

        assert fetched.title == "New"
        assert fetched.description == "keep me"
        assert (fetched.latitude, fetched.longitude) == (-33.9, 151.2)
        assert fetched.image_url == IMAGE_URL
        assert fetched.owner.id == user.id
        assert updated.updated_at > created.updated_at
        assert fetched.created_at == created.created_at

    @pytest.mark.asyncio
    async def test_empty_description_clears(self, db_session):
        user = await make_user(db_session)
        created = await self.service.create_entry(db_session, user.id, "t", "text", 1, 1, IMAGE_URL)

        updated = await self.service.update_entry(db_session, user.id, created.id, "t", "", 1, 1)

        assert updated.description == ""

    @pytest.mark.asyncio
    async def test_invalid_update_changes_nothing(self, db_session):
        user = await make_user(db_session)
        created = await self.service.create_entry(db_session, user.id, "t", None, 1, 1, IMAGE_URL)

        with pytest.raises(ValidationError):
            await self.service.update_entry(db_session, user.id, created.id, "t", None, 95, 1)

        fetched = await self.service.get_entry(db_session, user.id, created.id)
        assert fetched.latitude == 1

    @pytest.mark.asyncio
    async def test_delete_twice(self, db_session):
        user = await make_user(db_session)
        created = await self.service.create_entry(db_session, user.id, "t", None, 1, 1, IMAGE_URL)

        deleted = await self.service.delete_entry(db_session, user.id, created.id)

        assert deleted["id"] == created.id
        assert deleted["image_url"] == IMAGE_URL
        with pytest.raises(NotFoundError):
            await self.service.delete_entry(db_session, user.id, created.id)
        with pytest.raises(NotFoundError):
            await self.service.get_entry(db_session, user.id, created.id)


class TestUserModel:

    def test_no_noload_relationships(self):
        assert "entries" not in inspect(User).relationships
        for mapper in Base.registry.mappers:
            for rel in mapper.relationships:
                assert rel.lazy != "noload"
