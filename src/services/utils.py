"""Shared utility functions for service layer."""
from sqlalchemy.exc import IntegrityError


def escape_like(value: str) -> str:
    r"""
    Escape special LIKE characters for safe use in LIKE/ILIKE patterns.

    LIKE treats these characters specially:
    - % matches any sequence of characters
    - _ matches any single character
    - \\ is the escape character

    This function escapes them so they match literally (use with escape="\\").
    """
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def is_unique_violation(error: IntegrityError, constraint: str, column: str) -> bool:
    """
    Check whether an IntegrityError came from a specific unique constraint.

    PostgreSQL reports the constraint name; SQLite reports "table.column".

    Args:
        error: The error raised by flush/commit.
        constraint: Constraint name, e.g. "uq_tags_name".
        column: Qualified column, e.g. "tags.name".
    """
    message = str(error)
    return constraint in message or f"UNIQUE constraint failed: {column}" in message
