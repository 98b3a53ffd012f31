"""Analysis API routes for StoreLens."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..audit.utils.url_normalizer import URLNormalizationError, validate_http_url
from .schemas import AnalyzeRequest, ErrorResponse
from .service import StoreAnalysisService

logger = logging.getLogger(__name__)

ANALYSIS_FAILED_MESSAGE = "Failed to analyze site"

router = APIRouter(
    tags=["Analysis"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request"},
        500: {"model": ErrorResponse, "description": "Analysis Failed"},
    }
)


def get_analysis_service(request: Request) -> StoreAnalysisService:
    """Dependency providing the application's analysis service."""
    return request.app.state.analysis_service


def error_response(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    """Build a JSON error response."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, details=details).model_dump(mode="json", exclude_none=True)
    )


@router.post(
    "/analyze",
    summary="Analyze a store",
    description="""
    Load the store homepage and one product page in a browser and return
    the GA4 events, timing, consent mode and Elevar configuration found.

    The response uses camelCase field names. `productPage` is null when no
    product link was found or the product page could not be analyzed.
    """
)
async def analyze(
    payload: Optional[AnalyzeRequest] = None,
    service: StoreAnalysisService = Depends(get_analysis_service)
):
    """Analyze the store at the requested URL."""
    logger.info(f"Received analyze request: {payload.model_dump() if payload else None}")

    if payload is None or not payload.url:
        logger.error("No URL provided")
        return error_response(400, "URL is required")

    try:
        url = validate_http_url(payload.url)
    except URLNormalizationError as e:
        return error_response(400, "Invalid URL format", str(e))

    try:
        metrics = await service.analyze(url)
    except Exception as e:
        logger.error(f"Analysis failed for {url}: {e}", exc_info=True)
        return error_response(500, ANALYSIS_FAILED_MESSAGE, str(e))

    return JSONResponse(content=metrics.to_json_dict())
