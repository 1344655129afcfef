"""File tailing, roster reconciliation, and document sync for OpenClaw runtimes."""

from mission_ingest.services.ingestion.offset_store import OffsetStore
from mission_ingest.services.ingestion.roster import RosterCache, RosterSync
from mission_ingest.services.ingestion.tailer import FileTailer, TailResult

__all__ = ["FileTailer", "OffsetStore", "RosterCache", "RosterSync", "TailResult"]
