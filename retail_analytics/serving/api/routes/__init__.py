"""
API Routes Module
"""
from .analysis import router as analysis_router
from .dashboard import router as dashboard_router
from .export import router as export_router
from .health import router as health_router
from .ingestion import router as ingestion_router

__all__ = [
    "analysis_router",
    "dashboard_router",
    "export_router",
    "health_router",
    "ingestion_router",
]
