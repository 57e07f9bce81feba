"""Pydantic schemas for folder endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FolderCount(BaseModel):
    """Schema for a folder with the number of bookmarks it holds."""

    id: int
    name: str
    bookmark_count: int


class FolderListResponse(BaseModel):
    """Schema for the folders list response."""

    folders: list[FolderCount]


class FolderResponse(BaseModel):
    """Schema for a single folder."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_at: datetime


class FolderNameRequest(BaseModel):
    """Schema for creating or renaming a folder."""

    name: str = Field(..., min_length=1)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: object) -> str:
        if not isinstance(v, str):
            raise ValueError("Folder name must be a string")
        return v.strip()
