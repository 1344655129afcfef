"""Model exports for SQLAlchemy/SQLModel metadata discovery."""

from mission_ingest.models.agents import Agent
from mission_ingest.models.cost_events import CostEvent
from mission_ingest.models.events import Event
from mission_ingest.models.ingestion_state import IngestionState
from mission_ingest.models.missions import Mission
from mission_ingest.models.scheduled_tasks import ScheduledTask
from mission_ingest.models.sessions import AgentSession

__all__ = [
    "Agent",
    "AgentSession",
    "CostEvent",
    "Event",
    "IngestionState",
    "Mission",
    "ScheduledTask",
]
