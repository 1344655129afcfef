"""Parse sessions JSONL lines into session summary records."""

from __future__ import annotations

import hashlib
import json

from mission_ingest.core.time import utcnow_iso
from mission_ingest.services.ingestion.records import ParsedSession


def line_digest(line: str) -> str:
    """Return a stable content hash for one raw log line."""
    return hashlib.sha256(line.strip().encode("utf-8")).hexdigest()


def _optional_text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text or None


def _as_int(value: object, default: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return int(value)


def _as_float(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _tool_names(value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item) for item in value if isinstance(item, (str, int, float)) and str(item).strip())


def parse_session_line(line: str) -> ParsedSession | None:
    """Return a session record for JSON lines carrying an ``agent_id``."""
    try:
        data = json.loads(line)
    except (ValueError, TypeError):
        return None
    if not isinstance(data, dict):
        return None

    agent_id = _optional_text(data.get("agent_id"))
    if agent_id is None:
        return None

    started_at = _optional_text(data.get("started_at")) or _optional_text(data.get("timestamp")) or utcnow_iso()
    return ParsedSession(
        agent_id=agent_id,
        started_at=started_at,
        ended_at=_optional_text(data.get("ended_at")),
        message_count=_as_int(data.get("message_count")),
        total_cost=_as_float(data.get("total_cost")),
        tools_used=_tool_names(data.get("tools_used")),
        summary=_optional_text(data.get("summary")),
        line_hash=line_digest(line),
    )
