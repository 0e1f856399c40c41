"""
app/api/routers package marker.
"""

from app.api.routers.dashboard_router import router as dashboard_router
from app.api.routers.history_router import router as history_router
from app.api.routers.metrics_router import router as metrics_router
from app.api.routers.sections_router import router as sections_router

__all__ = [
    "dashboard_router",
    "history_router",
    "metrics_router",
    "sections_router",
]
