"""Service layer for tag operations."""
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.tag import Tag, bookmark_tags
from schemas.tag import TagCount
from services.entity_reconciler import EntityReconciler
from services.utils import is_unique_violation


class TagNotFoundError(Exception):
    """Raised when a tag is not found."""

    def __init__(self, tag_id: int) -> None:
        self.tag_id = tag_id
        super().__init__(f"Tag {tag_id} not found")


class TagAlreadyExistsError(Exception):
    """Raised when creating or renaming a tag to a name that already exists."""

    def __init__(self, tag_name: str) -> None:
        self.tag_name = tag_name
        super().__init__(f"Tag '{tag_name}' already exists")


async def _name_taken(db: AsyncSession, name: str) -> bool:
    result = await db.execute(select(Tag.id).where(Tag.name == name))
    return result.first() is not None


async def _flush_unique(db: AsyncSession, name: str) -> None:
    """Flush a new or renamed tag, turning a name conflict into TagAlreadyExistsError."""
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        # Another request took the name between our check and the flush
        if is_unique_violation(e, "uq_tags_name", "tags.name"):
            raise TagAlreadyExistsError(name) from e
        raise


async def get_tags_with_counts(
    db: AsyncSession,
    include_zero_count: bool = True,
) -> list[TagCount]:
    """
    Get all tags with the number of bookmarks carrying each.

    Args:
        db: Database session.
        include_zero_count: If True, include tags no bookmark uses (left behind
            when their bookmarks were deleted or retagged).

    Returns:
        List of TagCount objects sorted by count desc, then name asc.
    """
    # COUNT ignores NULLs, so tags with no bookmarks get count=0
    count = func.count(bookmark_tags.c.bookmark_id)
    query = (
        select(Tag.id, Tag.name, count.label("bookmark_count"))
        .outerjoin(bookmark_tags, Tag.id == bookmark_tags.c.tag_id)
        .group_by(Tag.id, Tag.name)
        .order_by(count.desc(), Tag.name.asc())
    )
    if not include_zero_count:
        query = query.having(count > 0)

    result = await db.execute(query)
    return [
        TagCount(id=row.id, name=row.name, bookmark_count=row.bookmark_count)
        for row in result
    ]


async def create_tag(db: AsyncSession, reconciler: EntityReconciler, name: str) -> Tag:
    """
    Create a tag with no bookmarks.

    Args:
        db: Database session.
        reconciler: Supplies the name rules shared with ingestion.
        name: Tag name; surrounding whitespace is trimmed.

    Returns:
        The new Tag.

    Raises:
        InvalidEntityNameError: If the name cannot be stored.
        TagAlreadyExistsError: If a tag with this name already exists.
    """
    name = reconciler.validate_name("tag", name.strip())
    if await _name_taken(db, name):
        raise TagAlreadyExistsError(name)

    tag = Tag(name=name)
    db.add(tag)
    await _flush_unique(db, name)
    await db.refresh(tag)
    return tag


async def rename_tag(
    db: AsyncSession,
    reconciler: EntityReconciler,
    tag_id: int,
    new_name: str,
) -> Tag:
    """
    Rename a tag. Bookmarks carrying it show the new name.

    Renaming to the current name is a no-op.

    Raises:
        TagNotFoundError: If the tag doesn't exist.
        InvalidEntityNameError: If the new name cannot be stored.
        TagAlreadyExistsError: If another tag already has the new name.
    """
    tag = await db.get(Tag, tag_id)
    if tag is None:
        raise TagNotFoundError(tag_id)

    new_name = reconciler.validate_name("tag", new_name.strip())
    if tag.name == new_name:
        return tag
    if await _name_taken(db, new_name):
        raise TagAlreadyExistsError(new_name)

    tag.name = new_name
    await _flush_unique(db, new_name)
    await db.refresh(tag)
    return tag


async def delete_tag(db: AsyncSession, tag_id: int) -> None:
    """
    Delete a tag. Its bookmark links are removed by the database; bookmarks stay.

    Raises:
        TagNotFoundError: If the tag doesn't exist.
    """
    tag = await db.get(Tag, tag_id)
    if tag is None:
        raise TagNotFoundError(tag_id)
    await db.delete(tag)
    await db.flush()
