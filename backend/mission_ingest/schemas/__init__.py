"""Public schema exports shared across API route modules."""

from mission_ingest.schemas.ingest import IngestEventCreate, IngestResponse

__all__ = [
    "IngestEventCreate",
    "IngestResponse",
]
