"""
Race schemas.

Pydantic request models for race operations. Responses are plain dicts
built by the service (camelCase keys).
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from racetrack.config import settings
from racetrack.shared.time import to_naive_utc


class PointSchema(BaseModel):
    """Start or end point of a race."""

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    address: Optional[str] = Field(default=None, max_length=255)


class RaceCreate(BaseModel):
    """Create race request."""

    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    start_point: PointSchema = Field(alias="startPoint")
    end_point: PointSchema = Field(alias="endPoint")
    start_date: datetime = Field(alias="startDate")
    end_date: datetime = Field(alias="endDate")

    model_config = {"populate_by_name": True}

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_window(self):
        if to_naive_utc(self.end_date) <= to_naive_utc(self.start_date):
            raise ValueError("End date must be after start date")
        return self


class RaceUpdate(BaseModel):
    """Partial race update. Only provided fields change."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    start_point: Optional[PointSchema] = Field(default=None, alias="startPoint")
    end_point: Optional[PointSchema] = Field(default=None, alias="endPoint")
    start_date: Optional[datetime] = Field(default=None, alias="startDate")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")

    model_config = {"populate_by_name": True}


class HealthSyncRequest(BaseModel):
    """
    Batch of per-day distance totals from a health data source.

    Items stay loosely typed: each one is validated on its own and skipped
    when malformed instead of rejecting the whole batch.
    """

    days: list[Any] = Field(min_length=1)

    @field_validator("days")
    @classmethod
    def check_batch_size(cls, v: list[Any]) -> list[Any]:
        if len(v) > settings.sync_batch_max_days:
            raise ValueError(
                f"At most {settings.sync_batch_max_days} days per sync"
            )
        return v
