"""StoreLens REST API package.

Run with ``uvicorn storelens.api.main:create_app --factory``.
"""

from .main import create_app
from .service import StoreAnalysisService

__all__ = [
    'create_app',
    'StoreAnalysisService',
]
