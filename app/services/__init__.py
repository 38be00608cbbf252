"""
app/services package marker.
"""

from app.services.batch_processor import BatchProcessor, get_batch_processor
from app.services.ingestion_coordinator import IngestionCoordinator, get_ingestion_coordinator
from app.services.ingestion_intake_service import (
    IngestionIntakeService,
    get_ingestion_intake_service,
)

__all__ = [
    "BatchProcessor",
    "get_batch_processor",
    "IngestionCoordinator",
    "get_ingestion_coordinator",
    "IngestionIntakeService",
    "get_ingestion_intake_service",
]
