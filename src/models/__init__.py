"""SQLAlchemy models."""
from models.base import Base, TimestampMixin
from models.tag import Tag, bookmark_tags  # Must be before bookmark due to import
from models.folder import Folder
from models.bookmark import Bookmark

__all__ = [
    "Base",
    "Bookmark",
    "Folder",
    "Tag",
    "TimestampMixin",
    "bookmark_tags",
]
