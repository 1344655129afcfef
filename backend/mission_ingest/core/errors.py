"""Exception taxonomy for the ingestion service."""

from __future__ import annotations


class IngestionError(Exception):
    """Base class for ingestion failures."""


class StartupConfigError(IngestionError):
    """Required runtime configuration is missing or invalid."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"missing required configuration: {', '.join(self.missing)}")


class RosterConfigError(IngestionError):
    """The OpenClaw agent config could not be read or parsed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class IngestionPersistError(IngestionError):
    """One or more record chunks failed to persist during a tail pass."""

    def __init__(self, target: str, failed_chunks: int, total_chunks: int) -> None:
        self.target = target
        self.failed_chunks = failed_chunks
        self.total_chunks = total_chunks
        super().__init__(f"{target}: {failed_chunks}/{total_chunks} chunks failed to persist")
