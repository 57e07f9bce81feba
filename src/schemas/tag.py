"""Pydantic schemas for tag endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TagCount(BaseModel):
    """Schema for a tag with its usage count."""

    id: int
    name: str
    bookmark_count: int


class TagListResponse(BaseModel):
    """Schema for the tags list response."""

    tags: list[TagCount]


class TagResponse(BaseModel):
    """Schema for a single tag (create and rename responses)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_at: datetime


class TagNameRequest(BaseModel):
    """
    Schema for creating or renaming a tag.

    Length and character rules are checked by the service against settings.
    """

    name: str = Field(..., min_length=1)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: object) -> str:
        """Trim the name."""
        if not isinstance(v, str):
            raise ValueError("Tag name must be a string")
        return v.strip()
