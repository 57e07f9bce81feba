"""Error response schemas for API endpoints."""
from typing import Literal

from pydantic import BaseModel, Field

ErrorCode = Literal["MISSING_URL", "INVALID_URL", "DUPLICATE_BOOKMARK", "SERVER_ERROR"]


class ErrorResponse(BaseModel):
    """Structured error body returned when ingestion cannot complete."""

    code: ErrorCode = Field(description="Machine-readable error identifier")
    message: str = Field(description="Human-readable description of the failed precondition")
