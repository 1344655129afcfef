"""Authenticated ingestion endpoint for externally reported events."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse
from sqlmodel import col, select

from mission_ingest.core.auth import require_ingest_token
from mission_ingest.core.logging import get_logger
from mission_ingest.core.time import parse_timestamp, utcnow
from mission_ingest.db.session import get_session
from mission_ingest.models.agents import Agent
from mission_ingest.models.cost_events import CostEvent
from mission_ingest.models.events import Event
from mission_ingest.schemas.ingest import IngestEventCreate, IngestResponse
from mission_ingest.services.ingestion.cost_parser import normalize_provider

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)

router = APIRouter(tags=["ingest"])
SESSION_DEP = Depends(get_session)
INGEST_AUTH_DEP = Depends(require_ingest_token)
PAYLOAD_BODY = Body(...)


async def _known_agent_ids(session: AsyncSession, items: list[IngestEventCreate]) -> set[str]:
    requested = {item.agent_id for item in items if item.agent_id}
    if not requested:
        return set()
    rows = await session.exec(select(Agent.id).where(col(Agent.id).in_(requested)))
    return set(rows.all())


def _event_row(item: IngestEventCreate, known_ids: set[str]) -> Event:
    return Event(
        agent_id=item.agent_id if item.agent_id in known_ids else None,
        event_type=item.event_type,
        source=item.source or "api",
        title=item.title,
        detail=item.detail,
        severity=item.severity,
        occurred_at=parse_timestamp(item.occurred_at) or utcnow(),
    )


def _cost_row(item: IngestEventCreate, known_ids: set[str]) -> CostEvent:
    model = item.model or "unknown"
    return CostEvent(
        agent_id=item.agent_id if item.agent_id in known_ids else None,
        model=model,
        provider=normalize_provider(item.provider, model),
        input_tokens=item.input_tokens,
        output_tokens=item.output_tokens,
        cost_usd=item.cost_usd,
        session_id=item.session_id,
        occurred_at=parse_timestamp(item.occurred_at) or utcnow(),
    )


def _error_response(status_code: int, message: str, *, inserted: int = 0) -> JSONResponse:
    body: dict[str, Any] = IngestResponse(inserted=inserted, costs=0, error=message).model_dump()
    return JSONResponse(status_code=status_code, content=body)


@router.post("/ingest", response_model=IngestResponse)
async def ingest_events(
    payload: IngestEventCreate | list[IngestEventCreate] = PAYLOAD_BODY,
    session: AsyncSession = SESSION_DEP,
    _auth: None = INGEST_AUTH_DEP,
) -> IngestResponse | JSONResponse:
    """Insert events; ``cost_event`` items go to cost_events plus a feed mirror."""
    items = payload if isinstance(payload, list) else [payload]
    regular = [item for item in items if not item.is_cost_event]
    costs = [item for item in items if item.is_cost_event]
    known_ids = await _known_agent_ids(session, items)

    inserted_regular = 0
    if regular:
        try:
            session.add_all([_event_row(item, known_ids) for item in regular])
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.exception("ingest.api.events_failed", extra={"count": len(regular)})
            return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))
        inserted_regular = len(regular)

    inserted_costs = 0
    if costs:
        try:
            session.add_all([_cost_row(item, known_ids) for item in costs])
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.exception("ingest.api.costs_failed", extra={"count": len(costs)})
            status_code = (
                status.HTTP_207_MULTI_STATUS if inserted_regular > 0 else status.HTTP_500_INTERNAL_SERVER_ERROR
            )
            return _error_response(status_code, str(exc), inserted=inserted_regular)
        inserted_costs = len(costs)

        try:
            session.add_all([_event_row(item, known_ids) for item in costs])
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.warning("ingest.api.cost_mirror_failed", extra={"count": len(costs), "error": str(exc)})

    logger.info(
        "ingest.api.accepted",
        extra={"inserted": inserted_regular + inserted_costs, "costs": inserted_costs},
    )
    return IngestResponse(inserted=inserted_regular + inserted_costs, costs=inserted_costs)
