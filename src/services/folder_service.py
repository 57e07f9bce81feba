"""Service layer for folder operations."""
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.bookmark import Bookmark
from models.folder import Folder
from schemas.folder import FolderCount
from services.entity_reconciler import EntityReconciler
from services.utils import is_unique_violation


class FolderNotFoundError(Exception):
    """Raised when a folder is not found."""

    def __init__(self, folder_id: int) -> None:
        self.folder_id = folder_id
        super().__init__(f"Folder {folder_id} not found")


class FolderAlreadyExistsError(Exception):
    """Raised when creating or renaming a folder to a name that already exists."""

    def __init__(self, folder_name: str) -> None:
        self.folder_name = folder_name
        super().__init__(f"Folder '{folder_name}' already exists")


async def _check_name_free(db: AsyncSession, name: str, folder_id: int | None = None) -> None:
    """Raise FolderAlreadyExistsError if another folder has this name."""
    query = select(Folder.id).where(Folder.name == name)
    if folder_id is not None:
        query = query.where(Folder.id != folder_id)
    if (await db.execute(query)).first() is not None:
        raise FolderAlreadyExistsError(name)


async def _save_folder(db: AsyncSession, folder: Folder) -> Folder:
    """Flush a new or renamed folder; a name conflict becomes FolderAlreadyExistsError."""
    name = folder.name
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        # Another request took the name between the check and the flush
        if is_unique_violation(e, "uq_folders_name", "folders.name"):
            raise FolderAlreadyExistsError(name) from e
        raise
    await db.refresh(folder)
    return folder


async def get_folders_with_counts(db: AsyncSession) -> list[FolderCount]:
    """
    Get all folders with the number of bookmarks in each.

    Returns:
        List of FolderCount objects sorted by name.
    """
    result = await db.execute(
        select(Folder.id, Folder.name, func.count(Bookmark.id).label("bookmark_count"))
        .outerjoin(Bookmark, Bookmark.folder_id == Folder.id)
        .group_by(Folder.id, Folder.name)
        .order_by(Folder.name.asc()),
    )
    return [
        FolderCount(id=row.id, name=row.name, bookmark_count=row.bookmark_count)
        for row in result
    ]


async def get_folder_bookmarks(db: AsyncSession, folder_id: int) -> list[Bookmark]:
    """
    Get the bookmarks filed in a folder, newest first.

    Raises:
        FolderNotFoundError: If the folder doesn't exist.
    """
    folder = await db.get(Folder, folder_id)
    if folder is None:
        raise FolderNotFoundError(folder_id)

    result = await db.execute(
        select(Bookmark)
        .options(selectinload(Bookmark.tags), selectinload(Bookmark.folder))
        .where(Bookmark.folder_id == folder_id)
        .order_by(Bookmark.date_added.desc(), Bookmark.id.desc()),
    )
    return list(result.scalars().all())


async def create_folder(db: AsyncSession, reconciler: EntityReconciler, name: str) -> Folder:
    """
    Create an empty folder.

    Raises:
        InvalidEntityNameError: If the name cannot be stored.
        FolderAlreadyExistsError: If a folder with this name already exists.
    """
    name = reconciler.validate_name("folder", name.strip())
    await _check_name_free(db, name)
    folder = Folder(name=name)
    db.add(folder)
    return await _save_folder(db, folder)


async def rename_folder(
    db: AsyncSession,
    reconciler: EntityReconciler,
    folder_id: int,
    new_name: str,
) -> Folder:
    """
    Rename a folder; its bookmarks stay in it.

    Raises:
        FolderNotFoundError: If the folder doesn't exist.
        InvalidEntityNameError: If the new name cannot be stored.
        FolderAlreadyExistsError: If another folder already has the new name.
    """
    folder = await db.get(Folder, folder_id)
    if folder is None:
        raise FolderNotFoundError(folder_id)
    new_name = reconciler.validate_name("folder", new_name.strip())
    await _check_name_free(db, new_name, folder_id)
    folder.name = new_name
    return await _save_folder(db, folder)


async def delete_folder(db: AsyncSession, folder_id: int) -> None:
    """
    Delete a folder. Its bookmarks are kept and left without a folder.

    Raises:
        FolderNotFoundError: If the folder doesn't exist.
    """
    folder = await db.get(Folder, folder_id)
    if folder is None:
        raise FolderNotFoundError(folder_id)
    await db.delete(folder)
    await db.flush()
