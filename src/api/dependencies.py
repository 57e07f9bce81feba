"""FastAPI dependencies for injection."""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import get_settings
from db.session import get_async_session, get_session_factory
from services.analysis_service import AnalysisOrchestrator
from services.bookmark_service import BookmarkIngestor
from services.entity_reconciler import EntityReconciler


def get_orchestrator(request: Request) -> AnalysisOrchestrator:
    """Return the analysis orchestrator created at startup."""
    return request.app.state.orchestrator


def get_reconciler(request: Request) -> EntityReconciler:
    """Return the entity reconciler created at startup."""
    return request.app.state.reconciler


def get_ingestor(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    reconciler: EntityReconciler = Depends(get_reconciler),
) -> BookmarkIngestor:
    """Build the ingestion pipeline for a request."""
    return BookmarkIngestor(session_factory, orchestrator, reconciler)


__all__ = [
    "get_async_session",
    "get_ingestor",
    "get_orchestrator",
    "get_reconciler",
    "get_session_factory",
    "get_settings",
]
