"""Tests for tag service layer functionality."""
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from models.tag import Tag, bookmark_tags
from services import tag_service
from services.entity_reconciler import EntityReconciler, InvalidEntityNameError
from services.tag_service import (
    TagAlreadyExistsError,
    TagNotFoundError,
    create_tag,
    delete_tag,
    get_tags_with_counts,
    rename_tag,
)


@pytest.fixture
async def tagged(db_session: AsyncSession) -> dict[str, Tag]:
    """Create tags python (2 bookmarks), web (1 bookmark) and unused (0)."""
    python = Tag(name="python")
    web = Tag(name="web")
    unused = Tag(name="unused")
    db_session.add_all([
        Bookmark(title="A", link="https://a.example.com", tags=[python, web]),
        Bookmark(title="B", link="https://b.example.com", tags=[python]),
        unused,
    ])
    await db_session.commit()
    return {"python": python, "web": web, "unused": unused}


async def test__get_tags_with_counts__sorted_by_count_then_name(
    db_session: AsyncSession, tagged: dict[str, Tag],
) -> None:
    """Tags come back with counts, most used first, ties by name."""
    tags = await get_tags_with_counts(db_session)

    assert [(t.name, t.bookmark_count) for t in tags] == [
        ("python", 2),
        ("web", 1),
        ("unused", 0),
    ]
    assert tags[0].id == tagged["python"].id


async def test__get_tags_with_counts__exclude_zero_count(
    db_session: AsyncSession, tagged: dict[str, Tag],
) -> None:
    """Unused tags can be left out."""
    tags = await get_tags_with_counts(db_session, include_zero_count=False)

    assert [t.name for t in tags] == ["python", "web"]


async def test__get_tags_with_counts__empty(db_session: AsyncSession) -> None:
    """No tags gives an empty list."""
    assert await get_tags_with_counts(db_session) == []


async def test__delete_tag__removes_links_keeps_bookmarks(
    db_session: AsyncSession, tagged: dict[str, Tag],
) -> None:
    """Deleting a tag unlinks it from bookmarks, which remain."""
    await delete_tag(db_session, tagged["python"].id)
    await db_session.commit()

    remaining_links = (await db_session.execute(
        select(func.count()).select_from(bookmark_tags).where(
            bookmark_tags.c.tag_id == tagged["python"].id,
        ),
    )).scalar_one()
    bookmark_count = (await db_session.execute(
        select(func.count()).select_from(Bookmark),
    )).scalar_one()
    assert remaining_links == 0
    assert bookmark_count == 2


async def test__delete_tag__not_found(db_session: AsyncSession) -> None:
    """Deleting a missing tag raises TagNotFoundError."""
    with pytest.raises(TagNotFoundError) as exc_info:
        await delete_tag(db_session, 999)
    assert exc_info.value.tag_id == 999


async def test__create_tag__trims_and_stores(
    db_session: AsyncSession, reconciler: EntityReconciler,
) -> None:
    """A new tag is stored under its trimmed name with no bookmarks."""
    tag = await create_tag(db_session, reconciler, "  rust ")
    await db_session.commit()

    assert tag.id is not None
    assert tag.name == "rust"
    counts = await get_tags_with_counts(db_session)
    assert [(t.name, t.bookmark_count) for t in counts] == [("rust", 0)]


async def test__create_tag__existing_name_raises(
    db_session: AsyncSession, reconciler: EntityReconciler, tagged: dict[str, Tag],
) -> None:
    """Tag names are unique."""
    with pytest.raises(TagAlreadyExistsError) as exc_info:
        await create_tag(db_session, reconciler, "python")
    assert exc_info.value.tag_name == "python"


async def test__create_tag__case_distinct_name_allowed(
    db_session: AsyncSession, reconciler: EntityReconciler, tagged: dict[str, Tag],
) -> None:
    """Names differing only in case are separate tags."""
    tag = await create_tag(db_session, reconciler, "Python")
    assert tag.id != tagged["python"].id


async def test__create_tag__invalid_name_raises(
    db_session: AsyncSession, reconciler: EntityReconciler,
) -> None:
    """Names over the limit or with control characters are refused."""
    with pytest.raises(InvalidEntityNameError):
        await create_tag(db_session, reconciler, "x" * 101)
    with pytest.raises(InvalidEntityNameError):
        await create_tag(db_session, reconciler, "bell\x07")


async def test__create_tag__constraint_conflict_raises_already_exists(
    db_session: AsyncSession, reconciler: EntityReconciler, tagged: dict[str, Tag],
) -> None:
    """A name taken after the existence check is reported as already existing."""

    async def not_taken(db: AsyncSession, name: str) -> bool:
        return False

    with patch.object(tag_service, "_name_taken", new=not_taken), \
            pytest.raises(TagAlreadyExistsError):
        await create_tag(db_session, reconciler, "web")


async def test__rename_tag__bookmarks_follow(
    db_session: AsyncSession, reconciler: EntityReconciler, tagged: dict[str, Tag],
) -> None:
    """Renaming keeps the tag's id and its bookmarks."""
    renamed = await rename_tag(db_session, reconciler, tagged["web"].id, "internet")
    await db_session.commit()

    assert renamed.id == tagged["web"].id
    counts = {t.name: t.bookmark_count for t in await get_tags_with_counts(db_session)}
    assert counts == {"python": 2, "internet": 1, "unused": 0}


async def test__rename_tag__same_name_is_noop(
    db_session: AsyncSession, reconciler: EntityReconciler, tagged: dict[str, Tag],
) -> None:
    """Renaming a tag to its own name succeeds."""
    tag = await rename_tag(db_session, reconciler, tagged["web"].id, " web ")
    assert tag.name == "web"


async def test__rename_tag__to_existing_name_raises(
    db_session: AsyncSession, reconciler: EntityReconciler, tagged: dict[str, Tag],
) -> None:
    """A tag cannot take another tag's name."""
    with pytest.raises(TagAlreadyExistsError):
        await rename_tag(db_session, reconciler, tagged["web"].id, "python")


async def test__rename_tag__not_found(
    db_session: AsyncSession, reconciler: EntityReconciler,
) -> None:
    """Renaming a missing tag raises TagNotFoundError."""
    with pytest.raises(TagNotFoundError):
        await rename_tag(db_session, reconciler, 999, "anything")
