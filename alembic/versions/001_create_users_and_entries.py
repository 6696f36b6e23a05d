"""Create users and entries tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Initial schema: `users` (accounts) and `entries` (geotagged photos).
How:   Portable column types (sa.Uuid, TIMESTAMP WITH TIME ZONE) so the same
       migration runs on PostgreSQL and SQLite.

Rollback: downgrade() drops both tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column(
            "email",
            sa.String(254),
            nullable=False,
            comment="Stored lowercased; unique across all users",
        ),
        sa.Column(
            "password_hash",
            sa.String(255),
            nullable=False,
            comment="bcrypt hash; plaintext is never stored",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_users_email", "users", ["email"], unique=True)

    op.create_table(
        "entries",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("owner_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column(
            "description",
            sa.Text(),
            nullable=False,
            server_default=sa.text("''"),
        ),
        sa.Column(
            "image_url",
            sa.String(2048),
            nullable=False,
            comment="Absolute URI of the photo; immutable after creation",
        ),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_entries_latitude"),
        sa.CheckConstraint("longitude >= -180 AND longitude <= 180", name="ck_entries_longitude"),
    )

    # Owner listing, newest first: both the paginated and the date-range query
    op.create_index(
        "idx_entries_owner_created",
        "entries",
        ["owner_id", sa.text("created_at DESC")],
    )
    op.create_index("idx_entries_lat_lng", "entries", ["latitude", "longitude"])


def downgrade() -> None:
    op.drop_index("idx_entries_lat_lng", table_name="entries")
    op.drop_index("idx_entries_owner_created", table_name="entries")
    op.drop_table("entries")
    op.drop_index("idx_users_email", table_name="users")
    op.drop_table("users")
