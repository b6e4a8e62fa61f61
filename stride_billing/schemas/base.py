"""
Base schema classes.

ORM-backed API responses inherit from BaseResponseSchema; immutable values
handed to the billing core (catalog entries, promo state, coverage config)
inherit from BaseSnapshot.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Response read from an ORM row.

    Usage:
        class ServiceEventResponse(BaseResponseSchema):
            id: UUID
            service_code: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseSnapshot(BaseModel):
    """Frozen value for the billing core, built with ``model_validate(row)``."""
    model_config = ConfigDict(
        from_attributes=True,
        frozen=True,
    )


class BaseCreateSchema(BaseModel):
    # Unknown request fields are ignored
    model_config = ConfigDict(extra='ignore')


class BaseUpdateSchema(BaseModel):
    """Partial update; only fields the client sent are applied (``exclude_unset``)."""
    model_config = ConfigDict(extra='ignore')


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; treat naive datetimes as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
