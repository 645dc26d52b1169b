"""
Base Model for SQLModel ORM

Provides common fields and column helpers for all ledger tables.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def json_list_column() -> Column:
    """JSON array column (JSONB on PostgreSQL). A fresh Column per table."""
    return Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list)


def timestamp_field(nullable: bool = True, description: Optional[str] = None):
    """Timezone-aware timestamp column with no default."""
    return Field(
        default=None,
        nullable=nullable,
        sa_type=DateTime(timezone=True),
        description=description,
    )


class TimestampMixin(SQLModel):
    """
    Mixin providing timestamp fields for models.

    Stored as TIMESTAMP WITH TIME ZONE in UTC.
    """

    created_at: datetime = Field(
        default_factory=utc_now,
        nullable=False,
        sa_type=DateTime(timezone=True),
        description="Record creation timestamp (UTC)"
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"onupdate": utc_now},
        description="Last update timestamp (UTC)"
    )


class UUIDMixin(SQLModel):
    """Mixin providing UUID primary key."""

    id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
        nullable=False,
        description="Unique identifier (UUID v4)"
    )


class BaseModel(UUIDMixin, TimestampMixin):
    """
    Base model combining UUID and timestamp mixins.

    Provides: id, created_at, updated_at
    """
    pass


class AppendOnlyModel(UUIDMixin):
    """
    Base for ledger and audit tables.

    Rows are inserted once and never updated, so only created_at is kept.
    """

    created_at: datetime = Field(
        default_factory=utc_now,
        nullable=False,
        sa_type=DateTime(timezone=True),
        description="Insertion timestamp (UTC)"
    )
