"""Declarative base and column types shared by the PatternLens models.

Production runs on PostgreSQL; the test suite runs the same models on
in-memory SQLite. The types here keep both backends returning the same
Python values: UUID primary keys, JSON pattern metadata and timezone-aware
UTC timestamps.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB, UUID as PGUUID
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


class PortableJSON(TypeDecorator):
    """Pattern metadata and categories: JSONB on PostgreSQL, JSON on SQLite."""

    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(JSON())


class PortableUUID(TypeDecorator):
    """UUIDv7 identifiers: native UUID on PostgreSQL, 36-char text on SQLite."""

    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PGUUID(as_uuid=True))
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is None or dialect.name == "postgresql":
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, UUID):
            return value
        return UUID(value)


class UTCDateTime(TypeDecorator):
    """Timestamp stored with time zone and always read back as aware UTC.

    SQLite has no time zone support and returns naive values; those are
    taken to be UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect):
        if value is not None and value.tzinfo is not None:
            return value.astimezone(UTC)
        return value

    def process_result_value(self, value: datetime | None, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass
