"""Services built on top of detection and resolution."""

from canonlink.services.catalog import CatalogService
from canonlink.services.ingestion import IngestionPipeline
from canonlink.services.review import ReviewService

__all__ = [
    "CatalogService",
    "IngestionPipeline",
    "ReviewService",
]
