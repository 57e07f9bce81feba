"""Pydantic schemas for bookmark endpoints."""
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from schemas.validators import normalize_folder_name, normalize_names, validate_title_length


class BookmarkSource(StrEnum):
    """Client the bookmark was submitted from."""

    WEB = "web"
    MOBILE = "mobile"
    API = "api"


class BookmarkIngest(BaseModel):
    """
    Raw bookmark submitted for enrichment.

    The URL is optional at the schema level so that a missing URL produces the
    MISSING_URL error code rather than a generic validation error.
    """

    url: str | None = None
    title: str | None = None
    source_text: str | None = Field(
        default=None,
        validation_alias=AliasChoices("source_text", "sourceText"),
        description="Optional page text or excerpt given to the analysis service.",
    )
    source: BookmarkSource = BookmarkSource.WEB
    tags: list[str] = Field(
        default=[],
        description="Caller tags (strings or {'name': ...} objects), kept ahead of analysis tags.",
    )
    folder: str | None = Field(
        default=None,
        description="Caller folder (string or {'name': ...}); overrides the suggested folder.",
    )

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: Any) -> list[str]:
        """Reduce accepted tag shapes to unique trimmed names."""
        return normalize_names(v)

    @field_validator("folder", mode="before")
    @classmethod
    def normalize_folder(cls, v: Any) -> str | None:
        """Reduce accepted folder shapes to a trimmed name."""
        return normalize_folder_name(v)

    @field_validator("title")
    @classmethod
    def check_title_length(cls, v: str | None) -> str | None:
        """Validate title length."""
        return validate_title_length(v)


class BookmarkUpdate(BaseModel):
    """
    Schema for updating an existing bookmark.

    Omitted fields are left unchanged. `tags` replaces the whole tag set;
    `folder: null` detaches the bookmark from its folder.
    """

    title: str | None = None
    category: str | None = None
    group: str | None = None
    status: str | None = None
    summary: str | None = None
    tags: list[str] | None = None
    folder: str | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: Any) -> list[str] | None:
        """Reduce accepted tag shapes to unique trimmed names if provided."""
        if v is None:
            return None
        return normalize_names(v)

    @field_validator("folder", mode="before")
    @classmethod
    def normalize_folder(cls, v: Any) -> str | None:
        """Reduce accepted folder shapes to a trimmed name."""
        return normalize_folder_name(v)

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str | None) -> str:
        """Validate title length; a bookmark always keeps a title."""
        # Only runs when the field is sent, so None here is an explicit null
        if v is None:
            raise ValueError("Title cannot be null")
        return validate_title_length(v)


class BookmarkResponse(BaseModel):
    """
    Schema for bookmark responses.

    Note: Uses model_validator to extract tag and folder names from the
    relationships when eagerly loaded.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    category: str | None
    group: str | None
    status: str | None
    link: str
    summary: str | None
    source: str | None
    date_added: datetime
    tags: list[str]
    folder: str | None = None

    @model_validator(mode="before")
    @classmethod
    def extract_relation_names(cls, data: Any) -> Any:
        """
        Extract tag and folder names from the relationships.

        Only accesses relationships that are already loaded (not lazy) to avoid
        triggering database queries outside async context.
        """
        if hasattr(data, "__dict__") and not isinstance(data, dict):
            data_dict = {}
            for key in [
                "id", "title", "category", "group", "status", "link",
                "summary", "source", "date_added",
            ]:
                if hasattr(data, key):
                    data_dict[key] = getattr(data, key)

            loaded = data.__dict__
            tags = loaded.get("tags")
            data_dict["tags"] = [tag.name for tag in tags] if tags is not None else []
            folder = loaded.get("folder")
            data_dict["folder"] = folder.name if folder is not None else None
            return data_dict
        return data


class ThoughtTraceResponse(BaseModel):
    """Intermediate reasoning texts from a reflective analysis."""

    ideation: str
    critique: str


class BookmarkIngestResponse(BookmarkResponse):
    """Bookmark returned by the ingestion endpoint, with analysis details."""

    confidence: float | None = None
    rejected_names: list[str] = []
    thought_trace: ThoughtTraceResponse | None = None


class BookmarkListResponse(BaseModel):
    """Schema for bookmark list responses."""

    items: list[BookmarkResponse]
    total: int
