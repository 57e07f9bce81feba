"""Tests for folder service layer functionality."""
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from models.folder import Folder
from services import folder_service
from services.entity_reconciler import EntityReconciler, InvalidEntityNameError
from services.folder_service import (
    FolderAlreadyExistsError,
    FolderNotFoundError,
    create_folder,
    delete_folder,
    get_folder_bookmarks,
    get_folders_with_counts,
    rename_folder,
)


@pytest.fixture
async def folders(db_session: AsyncSession) -> dict[str, Folder]:
    """Create folders Research (2 bookmarks) and Archive (empty), plus one loose bookmark."""
    research = Folder(name="Research")
    archive = Folder(name="Archive")
    db_session.add_all([
        Bookmark(title="Paper", link="https://a.example.com", folder=research),
        Bookmark(title="Notes", link="https://b.example.com", folder=research),
        Bookmark(title="Loose", link="https://c.example.com"),
        archive,
    ])
    await db_session.commit()
    return {"research": research, "archive": archive}


async def test__get_folders_with_counts__sorted_by_name(
    db_session: AsyncSession, folders: dict[str, Folder],
) -> None:
    """Each folder is listed once with its bookmark count."""
    result = await get_folders_with_counts(db_session)

    assert [(f.name, f.bookmark_count) for f in result] == [("Archive", 0), ("Research", 2)]


async def test__get_folder_bookmarks__only_that_folder(
    db_session: AsyncSession, folders: dict[str, Folder],
) -> None:
    """Only bookmarks filed in the folder are returned."""
    bookmarks = await get_folder_bookmarks(db_session, folders["research"].id)

    assert {b.title for b in bookmarks} == {"Paper", "Notes"}
    assert all(b.folder.name == "Research" for b in bookmarks)


async def test__get_folder_bookmarks__empty_folder(
    db_session: AsyncSession, folders: dict[str, Folder],
) -> None:
    """An existing folder without bookmarks gives an empty list."""
    assert await get_folder_bookmarks(db_session, folders["archive"].id) == []


async def test__get_folder_bookmarks__not_found(db_session: AsyncSession) -> None:
    """A missing folder raises FolderNotFoundError."""
    with pytest.raises(FolderNotFoundError):
        await get_folder_bookmarks(db_session, 404)


async def test__delete_folder__detaches_bookmarks(
    db_session: AsyncSession, folders: dict[str, Folder],
) -> None:
    """Deleting a folder keeps its bookmarks, now without a folder."""
    await delete_folder(db_session, folders["research"].id)
    await db_session.commit()
    db_session.expire_all()

    result = await db_session.execute(select(Bookmark).order_by(Bookmark.title))
    bookmarks = list(result.scalars())
    assert [b.title for b in bookmarks] == ["Loose", "Notes", "Paper"]
    assert all(b.folder_id is None for b in bookmarks)
    assert await db_session.get(Folder, folders["research"].id) is None


async def test__delete_folder__not_found(db_session: AsyncSession) -> None:
    """Deleting a missing folder raises FolderNotFoundError."""
    with pytest.raises(FolderNotFoundError) as exc_info:
        await delete_folder(db_session, 404)
    assert exc_info.value.folder_id == 404


async def test__create_folder__empty_folder_listed(
    db_session: AsyncSession, reconciler: EntityReconciler,
) -> None:
    """A created folder is listed with no bookmarks."""
    folder = await create_folder(db_session, reconciler, " Reading ")
    await db_session.commit()

    assert folder.name == "Reading"
    result = await get_folders_with_counts(db_session)
    assert [(f.name, f.bookmark_count) for f in result] == [("Reading", 0)]


async def test__create_folder__existing_name_raises(
    db_session: AsyncSession, reconciler: EntityReconciler, folders: dict[str, Folder],
) -> None:
    """Folder names are unique."""
    with pytest.raises(FolderAlreadyExistsError) as exc_info:
        await create_folder(db_session, reconciler, "Archive")
    assert exc_info.value.folder_name == "Archive"


async def test__create_folder__invalid_name_raises(
    db_session: AsyncSession, reconciler: EntityReconciler,
) -> None:
    """An unusable name is refused before touching the store."""
    with pytest.raises(InvalidEntityNameError):
        await create_folder(db_session, reconciler, "y" * 101)


async def test__create_folder__constraint_conflict_raises_already_exists(
    db_session: AsyncSession, reconciler: EntityReconciler, folders: dict[str, Folder],
) -> None:
    """A name taken after the existence check is reported as already existing."""

    async def always_free(db: AsyncSession, name: str, folder_id: int | None = None) -> None:
        return None

    with patch.object(folder_service, "_check_name_free", new=always_free), \
            pytest.raises(FolderAlreadyExistsError):
        await create_folder(db_session, reconciler, "Research")


async def test__rename_folder__bookmarks_stay(
    db_session: AsyncSession, reconciler: EntityReconciler, folders: dict[str, Folder],
) -> None:
    """Renaming keeps the folder's bookmarks in it."""
    renamed = await rename_folder(db_session, reconciler, folders["research"].id, "Papers")
    await db_session.commit()

    assert renamed.name == "Papers"
    bookmarks = await get_folder_bookmarks(db_session, folders["research"].id)
    assert {b.title for b in bookmarks} == {"Paper", "Notes"}


async def test__rename_folder__same_name_allowed(
    db_session: AsyncSession, reconciler: EntityReconciler, folders: dict[str, Folder],
) -> None:
    """A folder can be renamed to its current name."""
    folder = await rename_folder(db_session, reconciler, folders["archive"].id, "Archive")
    assert folder.name == "Archive"


async def test__rename_folder__to_existing_name_raises(
    db_session: AsyncSession, reconciler: EntityReconciler, folders: dict[str, Folder],
) -> None:
    """A folder cannot take another folder's name."""
    with pytest.raises(FolderAlreadyExistsError):
        await rename_folder(db_session, reconciler, folders["archive"].id, "Research")


async def test__rename_folder__not_found(
    db_session: AsyncSession, reconciler: EntityReconciler,
) -> None:
    """Renaming a missing folder raises FolderNotFoundError."""
    with pytest.raises(FolderNotFoundError):
        await rename_folder(db_session, reconciler, 404, "Anything")
