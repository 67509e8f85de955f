"""FastAPI router modules for the service endpoints."""

from .health import router as health_router
from .analysis import router as analysis_router
from .fixes import router as fixes_router
from .ai import router as ai_router
from .pdfs import router as pdfs_router

__all__ = [
    "health_router",
    "analysis_router",
    "fixes_router",
    "ai_router",
    "pdfs_router",
]
