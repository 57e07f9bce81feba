"""Folder endpoints."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_reconciler
from schemas.bookmark import BookmarkResponse
from schemas.folder import FolderListResponse, FolderNameRequest, FolderResponse
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

router = APIRouter(prefix="/folders", tags=["folders"])


@router.get("/", response_model=FolderListResponse)
async def list_folders(
    db: AsyncSession = Depends(get_async_session),
) -> FolderListResponse:
    """Get all folders with the number of bookmarks in each, sorted by name."""
    folders = await get_folders_with_counts(db)
    return FolderListResponse(folders=folders)


@router.get("/{folder_id}/bookmarks", response_model=list[BookmarkResponse])
async def list_folder_bookmarks(
    folder_id: int,
    db: AsyncSession = Depends(get_async_session),
) -> list[BookmarkResponse]:
    """Get the bookmarks in a folder, newest first. Returns 404 if not found."""
    try:
        bookmarks = await get_folder_bookmarks(db, folder_id)
    except FolderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return [BookmarkResponse.model_validate(b) for b in bookmarks]


@router.post("/", response_model=FolderResponse, status_code=201)
async def create_folder_endpoint(
    data: FolderNameRequest,
    db: AsyncSession = Depends(get_async_session),
    reconciler: EntityReconciler = Depends(get_reconciler),
) -> FolderResponse:
    """Create an empty folder. Returns 400 for an unusable name, 409 if it exists."""
    try:
        folder = await create_folder(db, reconciler, data.name)
    except InvalidEntityNameError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except FolderAlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return FolderResponse.model_validate(folder)


@router.put("/{folder_id}", response_model=FolderResponse)
async def rename_folder_endpoint(
    folder_id: int,
    data: FolderNameRequest,
    db: AsyncSession = Depends(get_async_session),
    reconciler: EntityReconciler = Depends(get_reconciler),
) -> FolderResponse:
    """Rename a folder. Returns 404 if not found, 400 for an unusable name, 409 on conflict."""
    try:
        folder = await rename_folder(db, reconciler, folder_id, data.name)
    except FolderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidEntityNameError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except FolderAlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return FolderResponse.model_validate(folder)


@router.delete("/{folder_id}", status_code=204)
async def delete_folder_endpoint(
    folder_id: int,
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """Delete a folder. Its bookmarks are kept without a folder. Returns 404 if not found."""
    try:
        await delete_folder(db, folder_id)
    except FolderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
