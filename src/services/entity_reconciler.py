"""
Resolve proposed tag and folder names to stored entities.

Each name is looked up and, if absent, inserted and committed in its own short
transaction. When two requests race to create the same name, the unique
constraint lets exactly one insert win; the loser gets an IntegrityError, rolls
back and looks the name up again, ending on the winner's row. No locks are held
and nothing here spans an analysis call.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.folder import Folder
from models.tag import Tag
from schemas.validators import FORBIDDEN_NAME_CHARS, normalize_names
from services.utils import is_unique_violation

logger = logging.getLogger(__name__)

# Find -> create -> conflict -> find again. More than one retry only happens if the
# conflicting row is deleted between the conflict and the lookup.
MAX_RESOLVE_ATTEMPTS = 3

# Model -> (unique constraint name, qualified column) used to recognise conflicts
_UNIQUE_NAME = {
    Tag: ("uq_tags_name", "tags.name"),
    Folder: ("uq_folders_name", "folders.name"),
}


class InvalidEntityNameError(Exception):
    """Raised when a tag or folder name cannot be stored."""

    def __init__(self, entity_type: str, name: str, reason: str) -> None:
        self.entity_type = entity_type
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid {entity_type} name '{name}': {reason}")


@dataclass
class ReconciledEntities:
    """Identifiers ready for linking, plus the names that had to be dropped."""

    tag_ids: list[int] = field(default_factory=list)
    folder_id: int | None = None
    rejected: list[str] = field(default_factory=list)


async def _find_id(session: AsyncSession, model: type[Tag | Folder], name: str) -> int | None:
    """Return the id of the entity with exactly this name, if any."""
    result = await session.execute(select(model.id).where(model.name == name))
    return result.scalar_one_or_none()


class EntityReconciler:
    """Find-or-create for tags and folders, safe under concurrent ingestion."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_name_length: int = 100,
    ) -> None:
        self._session_factory = session_factory
        self.max_name_length = max_name_length

    def validate_name(self, entity_type: str, name: str) -> str:
        """
        Check that a (trimmed) name can be stored.

        Raises:
            InvalidEntityNameError: If the name is empty, too long or has control characters.
        """
        if not name:
            raise InvalidEntityNameError(entity_type, name, "name is empty")
        if len(name) > self.max_name_length:
            raise InvalidEntityNameError(
                entity_type, name, f"longer than {self.max_name_length} characters",
            )
        if FORBIDDEN_NAME_CHARS.search(name):
            raise InvalidEntityNameError(entity_type, name, "contains control characters")
        return name

    async def resolve_tag(self, name: str) -> int:
        """Return the id of the tag named `name`, creating it if needed."""
        return await self._find_or_create(Tag, self.validate_name("tag", name.strip()))

    async def resolve_folder(self, name: str) -> int:
        """Return the id of the folder named `name`, creating it if needed."""
        return await self._find_or_create(Folder, self.validate_name("folder", name.strip()))

    async def reconcile(
        self,
        tag_names: list[str],
        folder_name: str | None = None,
    ) -> ReconciledEntities:
        """
        Resolve proposed tag names and an optional folder name.

        Names are trimmed, empty ones dropped and duplicates removed (case-sensitive,
        first occurrence kept) before resolution. Invalid names are dropped and
        reported in `rejected`; the remaining names still resolve. Tags and the
        folder resolve concurrently, each on its own session.

        Args:
            tag_names: Proposed tag names.
            folder_name: Proposed folder name, or None for no folder.

        Returns:
            ReconciledEntities with tag ids in input order and the folder id.

        Raises:
            SQLAlchemyError: The first store failure among the resolutions; the
                ones still running are cancelled.
        """
        result = ReconciledEntities()

        valid_tags = []
        for name in normalize_names(tag_names):
            try:
                valid_tags.append(self.validate_name("tag", name))
            except InvalidEntityNameError as e:
                logger.warning("Dropping tag: %s", e)
                result.rejected.append(name)

        folder = (folder_name or "").strip() or None
        if folder is not None:
            try:
                self.validate_name("folder", folder)
            except InvalidEntityNameError as e:
                logger.warning("Dropping folder: %s", e)
                result.rejected.append(folder)
                folder = None

        # A failing resolution cancels the others still in flight
        try:
            async with asyncio.TaskGroup() as group:
                tag_tasks = [
                    group.create_task(self._find_or_create(Tag, name)) for name in valid_tags
                ]
                folder_task = group.create_task(self._resolve_optional_folder(folder))
        except ExceptionGroup as eg:
            raise eg.exceptions[0] from None

        result.tag_ids = [task.result() for task in tag_tasks]
        result.folder_id = folder_task.result()
        return result

    async def _resolve_optional_folder(self, name: str | None) -> int | None:
        if name is None:
            return None
        return await self._find_or_create(Folder, name)

    async def _find_or_create(self, model: type[Tag | Folder], name: str) -> int:
        """
        Look the name up; insert it if missing; on a unique conflict, look it up again.

        Raises:
            IntegrityError: For integrity errors other than the name conflict, or if
                the name keeps conflicting without becoming visible.
        """
        constraint, column = _UNIQUE_NAME[model]
        last_error: IntegrityError | None = None

        for _attempt in range(MAX_RESOLVE_ATTEMPTS):
            async with self._session_factory() as session:
                entity_id = await _find_id(session, model, name)
                if entity_id is not None:
                    return entity_id

                entity = model(name=name)
                session.add(entity)
                try:
                    await session.commit()
                except IntegrityError as e:
                    await session.rollback()
                    if not is_unique_violation(e, constraint, column):
                        raise
                    # Race condition: another request created the row between our
                    # SELECT and INSERT. Loop to read the winner's row.
                    logger.info(
                        "%s '%s' created concurrently, retrying as lookup",
                        model.__tablename__, name,
                    )
                    last_error = e
                    continue

                logger.debug("Created %s '%s' (id=%s)", model.__tablename__, name, entity.id)
                return entity.id

        if last_error is not None:
            raise last_error
        raise RuntimeError("Unexpected state in _find_or_create")
