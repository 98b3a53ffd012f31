"""FastAPI application for the StoreLens REST API.

This module configures the FastAPI application with CORS, request logging,
error handling and the analysis routes.
"""

import logging
import os
import time
import uuid
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..audit.capture.config import AnalysisSettings, load_settings
from .routes import error_response, router
from .schemas import HealthResponse
from .service import StoreAnalysisService


logger = logging.getLogger(__name__)

# Application metadata
APP_TITLE = "StoreLens API"
APP_DESCRIPTION = """
StoreLens analyzes a storefront's analytics instrumentation in a real browser.

## Features

* **GA4 Events**: Beacons captured on the wire, partitioned by page
* **Performance**: Navigation timing for the homepage and a product page
* **Consent Mode**: Google consent mode state and whether it is set explicitly
* **Elevar**: The shop's Elevar data layer configuration
"""


def create_app(
    settings: Optional[AnalysisSettings] = None,
    analysis_service: Optional[StoreAnalysisService] = None
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Analysis settings (loaded from config/analysis.yaml if None)
        analysis_service: Service running analyses (built from settings if None)

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or load_settings()
    app_start_time = datetime.utcnow()

    app = FastAPI(
        title=APP_TITLE,
        description=APP_DESCRIPTION,
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )

    app.state.settings = settings
    app.state.analysis_service = analysis_service or StoreAnalysisService(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    @app.middleware("http")
    async def add_request_id_and_logging(request: Request, call_next):
        """Add request ID and logging middleware."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "client_host": request.client.host if request.client else None,
            }
        )

        try:
            response = await call_next(request)

            response.headers["X-Request-ID"] = request_id

            duration = time.time() - start_time
            logger.info(
                f"Request completed: {request.method} {request.url.path} - {response.status_code}",
                extra={
                    "request_id": request_id,
                    "status_code": response.status_code,
                    "duration_ms": round(duration * 1000, 2),
                }
            )

            return response

        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Request failed: {request.method} {request.url.path} - {str(e)}",
                extra={
                    "request_id": request_id,
                    "error": str(e),
                    "duration_ms": round(duration * 1000, 2),
                },
                exc_info=True
            )
            raise

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Report malformed request bodies as bad requests."""
        messages = [error["msg"] for error in exc.errors()]
        return error_response(400, "Invalid request body", "; ".join(messages) or None)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        request_id = getattr(request.state, "request_id", None)

        logger.error(
            f"Unhandled exception in request {request_id}: {str(exc)}",
            exc_info=True
        )

        return error_response(500, "Internal Server Error", str(exc))

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check():
        """Health check endpoint for monitoring and operational purposes."""
        uptime = (datetime.utcnow() - app_start_time).total_seconds()

        return HealthResponse(
            status="healthy",
            version=__version__,
            environment=settings.environment,
            timestamp=datetime.utcnow(),
            uptime_seconds=uptime
        )

    app.include_router(router)

    return app


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)

    # Development server configuration
    uvicorn.run(
        "storelens.api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "3001")),
        log_level="info",
        access_log=True,
    )
