"""Service health report."""
import logging
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_orchestrator
from core.config import AnalysisMode
from services.analysis_service import AnalysisOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Bookmark store state plus the analysis mode ingestion runs in."""

    status: Literal["healthy", "degraded"]
    database: Literal["healthy", "unhealthy"]
    analysis_mode: AnalysisMode


async def _store_answers(db: AsyncSession) -> bool:
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Bookmark store did not answer the health probe")
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_async_session),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
) -> HealthResponse:
    """
    Report whether bookmarks can be stored and how they are analysed.

    The analysis service is reported by mode only. Ingestion falls back to
    default metadata when it is down, so it is never probed here.
    """
    store_ok = await _store_answers(db)
    return HealthResponse(
        status="healthy" if store_ok else "degraded",
        database="healthy" if store_ok else "unhealthy",
        analysis_mode=orchestrator.mode,
    )
