"""Folder model for grouping bookmarks."""
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base

if TYPE_CHECKING:
    from models.bookmark import Bookmark


class Folder(Base):
    """Folder model - a bookmark lives in at most one folder."""

    __tablename__ = "folders"
    __table_args__ = (
        UniqueConstraint("name", name="uq_folders_name"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # The database nulls bookmarks.folder_id when a folder is deleted
    bookmarks: Mapped[list["Bookmark"]] = relationship(
        back_populates="folder",
        passive_deletes=True,
    )
