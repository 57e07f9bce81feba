"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.routers import bookmarks, folders, health, tags
from core.config import get_settings
from db.session import build_engine, build_session_factory, init_models
from services.analysis_client import build_analysis_client
from services.analysis_service import AnalysisOrchestrator
from services.bookmark_service import IngestionError
from services.entity_reconciler import EntityReconciler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()

    # Startup: database
    engine = build_engine(app_settings)
    await init_models(engine)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)

    # Startup: analysis service client and the pipeline components built on it
    analysis_client = build_analysis_client(app_settings)
    app.state.analysis_client = analysis_client
    app.state.orchestrator = AnalysisOrchestrator.from_settings(analysis_client, app_settings)
    app.state.reconciler = EntityReconciler(
        app.state.session_factory,
        max_name_length=app_settings.max_entity_name_length,
    )

    yield

    # Shutdown: close the HTTP client, then the connection pool
    await analysis_client.aclose()
    await engine.dispose()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add security headers to response."""
        response = await call_next(request)
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking - API shouldn't be framed
        response.headers["X-Frame-Options"] = "DENY"
        return response


app_settings = get_settings()

app = FastAPI(
    title="Bookmark Enrichment API",
    description="Bookmark ingestion with automatic analysis, tagging and filing.",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(IngestionError)
async def ingestion_exception_handler(
    _request: Request, exc: IngestionError,
) -> JSONResponse:
    """Render ingestion failures as {code, message}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "message": exc.message},
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(
    _request: Request, exc: SQLAlchemyError,
) -> JSONResponse:
    """Render unexpected store failures as SERVER_ERROR without leaking details."""
    logger.error("Database error: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"code": "SERVER_ERROR", "message": "The bookmark store failed to process the request"},
    )


# Security headers middleware (runs after CORS, adds headers to responses)
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(bookmarks.router)
app.include_router(tags.router)
app.include_router(folders.router)
