"""
app/api/routers package marker.
"""

from app.api.routers.ingestion import router as ingestion_router
from app.api.routers.ingestion_events import router as ingestion_events_router

__all__ = [
    "ingestion_events_router",
    "ingestion_router",
]
