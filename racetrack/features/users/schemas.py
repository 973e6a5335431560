"""
User schemas.

Pydantic models for user operations.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional


class UserCreate(BaseModel):
    """Create user request."""

    name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(
        default=None,
        max_length=255,
        pattern=r"^\S+@\S+\.\S+$",
    )
    nickname: Optional[str] = Field(
        default=None,
        min_length=3,
        max_length=24,
        pattern=r"^[a-z0-9._]+$",
    )
    avatar_url: Optional[str] = Field(default=None, alias="avatarUrl", max_length=500)

    model_config = {"populate_by_name": True}

    @field_validator("email", "nickname", mode="before")
    @classmethod
    def normalize_lowercase(cls, v):
        """Emails and nicknames are stored trimmed and lowercase."""
        if isinstance(v, str):
            return v.strip().lower() or None
        return v

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v
