"""API request and response schemas for the StoreLens REST API.

Successful analyses are returned as the camelCase StoreMetrics document
itself; these models cover the request body and the error and health
payloads.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class AnalyzeRequest(BaseModel):
    """Request body for POST /analyze."""

    url: Optional[str] = Field(
        default=None,
        description="Absolute http(s) URL of the store homepage",
        examples=["https://example-store.com"]
    )


class ErrorResponse(BaseModel):
    """Error payload returned for 4xx and 5xx responses."""

    error: str = Field(..., description="Short error summary")
    details: Optional[str] = Field(default=None, description="Underlying error message")


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal['healthy'] = Field(..., description="Service status")
    version: str = Field(..., description="Application version")
    environment: str = Field(..., description="Active configuration environment")
    timestamp: datetime = Field(..., description="Time of the check")
    uptime_seconds: float = Field(..., description="Seconds since the app was created")
