"""Service layer for bookmark ingestion and CRUD operations."""
import logging
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any
from urllib.parse import urlsplit

from sqlalchemy import func, insert, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from models.bookmark import Bookmark
from models.folder import Folder
from models.tag import Tag, bookmark_tags
from schemas.bookmark import BookmarkIngest, BookmarkUpdate
from schemas.validators import normalize_folder_name, normalize_names
from services.analysis_service import AnalysisMetadata, AnalysisOrchestrator
from services.entity_reconciler import EntityReconciler, ReconciledEntities
from services.utils import escape_like, is_unique_violation

logger = logging.getLogger(__name__)

DEFAULT_SCHEME = "https"
SCHEME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")

# Column widths on Bookmark; model output is clipped to fit
TITLE_MAX = 500
CATEGORY_MAX = 200
GROUP_MAX = 200
STATUS_MAX = 100


class IngestionStage(StrEnum):
    """Stages one ingestion passes through, in order."""

    RECEIVED = "received"
    NORMALIZING = "normalizing"
    ANALYZING = "analyzing"
    RECONCILING = "reconciling"
    PERSISTING = "persisting"
    COMMITTED = "committed"
    FAILED = "failed"


class IngestionError(Exception):
    """Base class for ingestion failures reported to the caller as {code, message}."""

    code = "SERVER_ERROR"
    status_code = 500
    stage = IngestionStage.FAILED

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MissingUrlError(IngestionError):
    """Raised when the input has no URL."""

    code = "MISSING_URL"
    status_code = 400
    stage = IngestionStage.NORMALIZING

    def __init__(self) -> None:
        super().__init__("A URL is required")


class InvalidUrlError(IngestionError):
    """Raised when the URL does not parse as a well-formed URL after normalization."""

    code = "INVALID_URL"
    status_code = 400
    stage = IngestionStage.NORMALIZING

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid URL '{url}': {reason}")


class DuplicateBookmarkError(IngestionError):
    """Raised when a bookmark with the same link already exists."""

    code = "DUPLICATE_BOOKMARK"
    status_code = 409
    stage = IngestionStage.PERSISTING

    def __init__(self, link: str) -> None:
        self.link = link
        super().__init__(f"A bookmark with link '{link}' already exists")


def normalize_url(url: str | None) -> str:
    """
    Normalize a user-supplied URL.

    Trims whitespace and prepends "https://" when no scheme is present
    ("example.com" -> "https://example.com"). Paths are left untouched.

    Raises:
        MissingUrlError: If the URL is missing or blank.
        InvalidUrlError: If the result has no host or does not parse.
    """
    if url is None or not url.strip():
        raise MissingUrlError()

    candidate = url.strip()
    if not SCHEME_PATTERN.match(candidate):
        candidate = f"{DEFAULT_SCHEME}://{candidate}"

    if any(char.isspace() for char in candidate):
        raise InvalidUrlError(url, "contains whitespace")
    try:
        parts = urlsplit(candidate)
        hostname = parts.hostname
        parts.port  # noqa: B018 - raises ValueError for a malformed port
    except ValueError as e:
        raise InvalidUrlError(url, str(e)) from e
    if not parts.scheme or not hostname:
        raise InvalidUrlError(url, "no host")
    return candidate


def _as_text(value: Any, max_length: int | None = None) -> str | None:
    """Render a model-provided value as column text."""
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
    elif isinstance(value, list):
        text = ", ".join(str(item) for item in value)
    else:
        text = str(value)
    if max_length is not None:
        text = text[:max_length]
    return text


@dataclass
class IngestionResult:
    """Outcome of a completed ingestion."""

    bookmark: Bookmark
    analysis: AnalysisMetadata
    rejected_names: list[str] = field(default_factory=list)
    stage: IngestionStage = IngestionStage.COMMITTED


async def _link_exists(db: AsyncSession, link: str) -> bool:
    result = await db.execute(select(Bookmark.id).where(Bookmark.link == link))
    return result.first() is not None


async def _link_tags(db: AsyncSession, bookmark: Bookmark, tag_ids: list[int]) -> None:
    """Insert the bookmark_tags rows for an already-flushed bookmark."""
    if tag_ids:
        await db.execute(
            insert(bookmark_tags),
            [{"bookmark_id": bookmark.id, "tag_id": tag_id} for tag_id in tag_ids],
        )
    await db.flush()


class BookmarkIngestor:
    """
    Turns a raw bookmark into a persisted, enriched bookmark.

    received -> normalizing -> analyzing -> reconciling -> persisting -> committed.
    Only normalizing (bad or missing URL) and persisting (duplicate link, store
    errors) can fail; analysis and reconciliation degrade instead.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        orchestrator: AnalysisOrchestrator,
        reconciler: EntityReconciler,
    ) -> None:
        self._session_factory = session_factory
        self.orchestrator = orchestrator
        self.reconciler = reconciler

    async def ingest(self, raw: BookmarkIngest) -> IngestionResult:
        """
        Ingest one bookmark.

        Args:
            raw: The submitted bookmark.

        Returns:
            IngestionResult holding the committed bookmark with tags and folder loaded.

        Raises:
            MissingUrlError: If no URL was given.
            InvalidUrlError: If the URL is malformed.
            DuplicateBookmarkError: If the link is already bookmarked.
        """
        logger.debug("Ingestion %s: %s", IngestionStage.RECEIVED, raw.url)
        try:
            link = normalize_url(raw.url)
        except IngestionError as e:
            logger.info("Rejected bookmark input (%s): %s", e.code, e.message)
            raise

        logger.debug("Ingestion %s: %s", IngestionStage.ANALYZING, link)
        analysis = await self.orchestrator.analyze(raw.model_copy(update={"url": link}))

        logger.debug("Ingestion %s: %s", IngestionStage.RECONCILING, link)
        proposed_tags = [*raw.tags, *normalize_names(analysis.tags)]
        proposed_folder = (
            raw.folder if raw.folder is not None
            else normalize_folder_name(analysis.suggested_folder)
        )
        entities = await self.reconciler.reconcile(proposed_tags, proposed_folder)

        logger.debug("Ingestion %s: %s", IngestionStage.PERSISTING, link)
        bookmark_id = await self._persist(link, raw, analysis, entities)

        async with self._session_factory() as session:
            bookmark = await get_bookmark(session, bookmark_id)
        if bookmark is None:
            raise RuntimeError(f"Bookmark {bookmark_id} vanished after commit")

        logger.info(
            "Ingested bookmark %s (id=%s, tags=%d, folder=%s, degraded=%s)",
            link, bookmark.id, len(entities.tag_ids), entities.folder_id, analysis.degraded,
        )
        return IngestionResult(
            bookmark=bookmark,
            analysis=analysis,
            rejected_names=entities.rejected,
        )

    async def _persist(
        self,
        link: str,
        raw: BookmarkIngest,
        analysis: AnalysisMetadata,
        entities: ReconciledEntities,
    ) -> int:
        """Write the bookmark and its relation rows as one transaction."""
        async with self._session_factory() as session:
            if await _link_exists(session, link):
                raise DuplicateBookmarkError(link)

            bookmark = Bookmark(
                title=_as_text(analysis.title, TITLE_MAX) or raw.title or link,
                category=_as_text(analysis.category, CATEGORY_MAX),
                group=_as_text(analysis.group, GROUP_MAX),
                status=_as_text(analysis.status, STATUS_MAX),
                link=link,
                summary=_as_text(analysis.summary),
                source=str(raw.source),
                analysis=analysis.to_dict(),
                folder_id=entities.folder_id,
            )
            session.add(bookmark)
            try:
                await session.flush()
                await _link_tags(session, bookmark, entities.tag_ids)
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                # Fallback for race condition: another request stored the same link
                if is_unique_violation(e, "uq_bookmarks_link", "bookmarks.link"):
                    raise DuplicateBookmarkError(link) from e
                raise
            return bookmark.id


async def get_bookmark(db: AsyncSession, bookmark_id: int) -> Bookmark | None:
    """Get a bookmark by ID with tags and folder loaded."""
    result = await db.execute(
        select(Bookmark)
        .options(selectinload(Bookmark.tags), selectinload(Bookmark.folder))
        .where(Bookmark.id == bookmark_id),
    )
    return result.scalar_one_or_none()


async def search_bookmarks(
    db: AsyncSession,
    query: str | None = None,
    tag: str | None = None,
    folder: str | None = None,
    status: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[Bookmark], int]:
    """
    Filter bookmarks, newest first.

    Args:
        db: Database session.
        query: Case-insensitive text search across title, summary, category and group.
        tag: Only bookmarks carrying this exact tag name.
        folder: Only bookmarks in the folder with this exact name.
        status: Only bookmarks with this status.
        offset: Pagination offset.
        limit: Pagination limit.

    Returns:
        Tuple of (list of bookmarks, total count).
    """
    base_query = select(Bookmark).options(
        selectinload(Bookmark.tags), selectinload(Bookmark.folder),
    )

    if status:
        base_query = base_query.where(Bookmark.status == status)
    if folder:
        base_query = base_query.where(Bookmark.folder.has(Folder.name == folder))
    if tag:
        base_query = base_query.where(Bookmark.tags.any(Tag.name == tag))
    if query:
        pattern = f"%{escape_like(query)}%"
        base_query = base_query.where(
            or_(
                Bookmark.title.ilike(pattern, escape="\\"),
                Bookmark.summary.ilike(pattern, escape="\\"),
                Bookmark.category.ilike(pattern, escape="\\"),
                Bookmark.group.ilike(pattern, escape="\\"),
            ),
        )

    count_query = select(func.count()).select_from(base_query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    base_query = (
        base_query
        .order_by(Bookmark.date_added.desc(), Bookmark.id.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(base_query)
    return list(result.scalars().all()), total


async def update_bookmark(
    db: AsyncSession,
    reconciler: EntityReconciler,
    bookmark_id: int,
    data: BookmarkUpdate,
) -> Bookmark | None:
    """
    Update a bookmark. Returns None if not found.

    A provided tag list replaces the whole tag set; names go through the
    reconciler like on ingestion. `folder` set to a name moves the bookmark
    (a name the reconciler rejects leaves the folder as it was),
    explicit null detaches it.

    Note: Does not commit. Caller (session generator) handles commit at request end.
    """
    bookmark = await get_bookmark(db, bookmark_id)
    if bookmark is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    new_tags = update_data.pop("tags", None)
    folder_given = "folder" in update_data
    new_folder = update_data.pop("folder", None)

    # Resolve names before touching the bookmark so no write is pending meanwhile
    entities = ReconciledEntities()
    if new_tags is not None or new_folder is not None:
        entities = await reconciler.reconcile(new_tags or [], new_folder)

    for field_name, value in update_data.items():
        setattr(bookmark, field_name, value)

    if new_tags is not None:
        tags: list[Tag] = []
        if entities.tag_ids:
            result = await db.execute(select(Tag).where(Tag.id.in_(entities.tag_ids)))
            by_id = {tag.id: tag for tag in result.scalars()}
            tags = [by_id[tag_id] for tag_id in entities.tag_ids if tag_id in by_id]
        bookmark.tags = tags
    if folder_given:
        if new_folder is None:
            bookmark.folder = None
        elif entities.folder_id is not None:
            bookmark.folder = await db.get(Folder, entities.folder_id)
        else:
            # Name was rejected by the reconciler; the current folder stays
            logger.warning(
                "Keeping folder of bookmark %s, rejected name %r", bookmark_id, new_folder,
            )

    bookmark.updated_at = func.now()
    await db.flush()
    await db.refresh(bookmark)
    await db.refresh(bookmark, attribute_names=["tags", "folder"])
    return bookmark


async def delete_bookmark(db: AsyncSession, bookmark_id: int) -> bool:
    """
    Delete a bookmark. Tag links cascade; tags and folder are kept.

    Returns:
        True if deleted, False if not found.
    """
    bookmark = await db.get(Bookmark, bookmark_id)
    if bookmark is None:
        return False
    await db.delete(bookmark)
    await db.flush()
    return True
