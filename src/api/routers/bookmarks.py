"""Bookmark ingestion and CRUD endpoints."""
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_ingestor, get_orchestrator, get_reconciler
from schemas.bookmark import (
    BookmarkIngest,
    BookmarkIngestResponse,
    BookmarkListResponse,
    BookmarkResponse,
    BookmarkUpdate,
    ThoughtTraceResponse,
)
from schemas.errors import ErrorResponse
from services import bookmark_service
from services.analysis_service import AnalysisOrchestrator
from services.bookmark_service import BookmarkIngestor, normalize_url
from services.entity_reconciler import EntityReconciler

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])

INGEST_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Missing or invalid URL"},
    409: {"model": ErrorResponse, "description": "A bookmark with this link already exists"},
    500: {"model": ErrorResponse, "description": "The bookmark store failed"},
}


@router.post(
    "/",
    response_model=BookmarkIngestResponse,
    status_code=201,
    responses=INGEST_ERROR_RESPONSES,
)
async def ingest_bookmark(
    data: BookmarkIngest,
    ingestor: BookmarkIngestor = Depends(get_ingestor),
) -> BookmarkIngestResponse:
    """
    Ingest a bookmark.

    The URL is normalized, the bookmark is analysed (falling back to input-derived
    metadata if analysis fails), tags and folder are found or created, and the
    bookmark is stored with its links in one transaction.

    Returns 400 with MISSING_URL or INVALID_URL, 409 with DUPLICATE_BOOKMARK.
    """
    result = await ingestor.ingest(data)
    trace = result.analysis.thought_trace
    return BookmarkIngestResponse.model_validate(result.bookmark).model_copy(
        update={
            "confidence": result.analysis.confidence_value(),
            "rejected_names": result.rejected_names,
            "thought_trace": (
                ThoughtTraceResponse(ideation=trace.ideation, critique=trace.critique)
                if trace is not None else None
            ),
        },
    )


@router.post("/analyze", responses={400: INGEST_ERROR_RESPONSES[400]})
async def analyze_bookmark(
    data: BookmarkIngest,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """
    Preview the analysis of a bookmark without storing anything.

    Returns the metadata as produced by the analysis service (or the fallback),
    plus the normalized `link`.
    """
    link = normalize_url(data.url)
    metadata = await orchestrator.analyze(data.model_copy(update={"url": link}))
    return {"link": link, **metadata.to_dict()}


@router.get("/", response_model=BookmarkListResponse)
async def list_bookmarks(
    q: str | None = Query(default=None, description="Search title, summary, category and group"),
    tag: str | None = Query(default=None, description="Filter by exact tag name"),
    folder: str | None = Query(default=None, description="Filter by exact folder name"),
    status: str | None = Query(default=None, description="Filter by reading status"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    limit: int = Query(default=50, ge=1, le=100, description="Pagination limit"),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkListResponse:
    """List bookmarks, newest first, with optional filters."""
    bookmarks, total = await bookmark_service.search_bookmarks(
        db=db,
        query=q,
        tag=tag,
        folder=folder,
        status=status,
        offset=offset,
        limit=limit,
    )
    items = [BookmarkResponse.model_validate(b) for b in bookmarks]
    return BookmarkListResponse(items=items, total=total)


@router.get("/{bookmark_id}", response_model=BookmarkResponse)
async def get_bookmark(
    bookmark_id: int,
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Get a single bookmark by ID."""
    bookmark = await bookmark_service.get_bookmark(db, bookmark_id)
    if bookmark is None:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return BookmarkResponse.model_validate(bookmark)


@router.patch("/{bookmark_id}", response_model=BookmarkResponse)
async def update_bookmark(
    bookmark_id: int,
    data: BookmarkUpdate,
    db: AsyncSession = Depends(get_async_session),
    reconciler: EntityReconciler = Depends(get_reconciler),
) -> BookmarkResponse:
    """
    Update a bookmark.

    Providing `tags` replaces the whole tag set. `folder` moves the bookmark to the
    named folder (created if needed); `folder: null` removes it from its folder.
    """
    bookmark = await bookmark_service.update_bookmark(db, reconciler, bookmark_id, data)
    if bookmark is None:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return BookmarkResponse.model_validate(bookmark)


@router.delete("/{bookmark_id}", status_code=204)
async def delete_bookmark(
    bookmark_id: int,
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """Delete a bookmark. Its tags and folder are kept."""
    deleted = await bookmark_service.delete_bookmark(db, bookmark_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Bookmark not found")
