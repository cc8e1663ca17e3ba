import uuid
from datetime import datetime, timezone

from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Shared declarative base for all PeopleOS models."""
    pass


def utcnow() -> datetime:
    """Naive UTC timestamp (what every DateTime column stores)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_token() -> str:
    """Unguessable token for public links."""
    return uuid.uuid4().hex


def enum_type(enum_cls):
    """Store a str Enum as its value in a VARCHAR column."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda e: [m.value for m in e],
    )
