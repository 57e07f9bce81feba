"""Tag management endpoints."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_reconciler
from schemas.tag import TagListResponse, TagNameRequest, TagResponse
from services.entity_reconciler import EntityReconciler, InvalidEntityNameError
from services.tag_service import (
    TagAlreadyExistsError,
    TagNotFoundError,
    create_tag,
    delete_tag,
    get_tags_with_counts,
    rename_tag,
)

router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("/", response_model=TagListResponse)
async def list_tags(
    include_inactive: bool = True,
    db: AsyncSession = Depends(get_async_session),
) -> TagListResponse:
    """
    Get all tags with their bookmark counts.

    Use include_inactive=false to hide tags no bookmark carries.
    Results are sorted by bookmark_count DESC, then name ASC.
    """
    tags = await get_tags_with_counts(db, include_zero_count=include_inactive)
    return TagListResponse(tags=tags)


@router.post("/", response_model=TagResponse, status_code=201)
async def create_tag_endpoint(
    data: TagNameRequest,
    db: AsyncSession = Depends(get_async_session),
    reconciler: EntityReconciler = Depends(get_reconciler),
) -> TagResponse:
    """
    Create a tag.

    Returns 400 if the name cannot be stored, 409 if the tag already exists.
    """
    try:
        tag = await create_tag(db, reconciler, data.name)
    except InvalidEntityNameError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except TagAlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return TagResponse.model_validate(tag)


@router.put("/{tag_id}", response_model=TagResponse)
async def rename_tag_endpoint(
    tag_id: int,
    data: TagNameRequest,
    db: AsyncSession = Depends(get_async_session),
    reconciler: EntityReconciler = Depends(get_reconciler),
) -> TagResponse:
    """
    Rename a tag; every bookmark carrying it shows the new name.

    Returns 404 if the tag doesn't exist, 400 for an unusable name and
    409 if another tag already has it.
    """
    try:
        tag = await rename_tag(db, reconciler, tag_id, data.name)
    except TagNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidEntityNameError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except TagAlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return TagResponse.model_validate(tag)


@router.delete("/{tag_id}", status_code=204)
async def delete_tag_endpoint(
    tag_id: int,
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """Delete a tag and remove it from every bookmark. Returns 404 if not found."""
    try:
        await delete_tag(db, tag_id)
    except TagNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
