"""
Shared validation functions for Pydantic schemas and services.

Tag and folder names arrive from two places: callers (strings or {"name": ...}
objects) and the analysis service (whatever JSON the model produced). Both are
reduced to plain strings here before anything touches the database.
"""
import re
from collections.abc import Iterable
from typing import Any

from core.config import get_settings

# Control characters are never stored in tag or folder names
FORBIDDEN_NAME_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def name_from_shape(value: Any) -> str | None:
    """
    Reduce an accepted tag/folder shape to its name.

    Accepts a string or a mapping with a string "name" key; numbers are stringified.
    Anything else yields None.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return str(value)
    if isinstance(value, dict) and isinstance(value.get("name"), str):
        return value["name"]
    return None


def normalize_names(values: Any) -> list[str]:
    """
    Trim, drop empties and deduplicate names (case-sensitive, first occurrence wins).

    Args:
        values: A single name, or an iterable of names in any accepted shape.

    Returns:
        Ordered list of unique, trimmed names.
    """
    if values is None:
        return []
    if isinstance(values, str | dict) or not isinstance(values, Iterable):
        values = [values]

    normalized: list[str] = []
    seen: set[str] = set()
    for value in values:
        name = name_from_shape(value)
        if name is None:
            continue
        trimmed = name.strip()
        if not trimmed or trimmed in seen:
            continue
        seen.add(trimmed)
        normalized.append(trimmed)
    return normalized


def normalize_folder_name(value: Any) -> str | None:
    """Reduce a folder in any accepted shape to a trimmed name, or None."""
    name = name_from_shape(value)
    if name is None:
        return None
    return name.strip() or None


def validate_title_length(title: str | None) -> str | None:
    """Validate that title doesn't exceed maximum length."""
    settings = get_settings()
    if title is not None and len(title) > settings.max_title_length:
        raise ValueError(
            f"Title exceeds maximum length of {settings.max_title_length:,} characters "
            f"(got {len(title):,} characters).",
        )
    return title
